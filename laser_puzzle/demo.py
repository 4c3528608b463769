"""Simple command line demo for the puzzle generator."""

from __future__ import annotations

import argparse
import json
import logging
from typing import List, Optional, Sequence

from .errors import LaserPuzzleError
from .generator import PuzzleGenerator
from .grid import Difficulty
from .scoring import calculate_score, position_label


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Generate a laser reflection puzzle")
    parser.add_argument(
        "--difficulty",
        choices=[d.value for d in Difficulty],
        default=Difficulty.EASY.value,
        help="Difficulty to generate (default: %(default)s)",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible run")
    parser.add_argument("--show-grid", action="store_true", help="Print the generated grid")
    parser.add_argument("--json", action="store_true", help="Print the puzzle as JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def render_grid(puzzle) -> List[str]:
    rows = puzzle.grid.to_rows()
    lines = ["   " + "".join(chr(ord("A") + x) for x in range(puzzle.grid.size))]
    for y, row in enumerate(rows):
        cells = list(row)
        if puzzle.entry.y == y:
            cells[puzzle.entry.x] = "E"
        lines.append(f"{y + 1:>2} " + "".join(cells))
    return lines


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    generator = PuzzleGenerator(seed=args.seed)
    try:
        puzzle = generator.generate(args.difficulty)
    except LaserPuzzleError as exc:
        print(f"Generation failed: {exc}")
        return 1

    if args.json:
        print(json.dumps(puzzle.to_dict(), indent=2))
        return 0

    metadata = puzzle.metadata
    print("=== Laser Puzzle Demo ===")
    print(f"Puzzle: {puzzle.id} ({puzzle.difficulty.value}, {puzzle.grid.size}x{puzzle.grid.size})")
    print(f"Entry: {position_label(puzzle.entry)} heading {puzzle.entry_direction:.1f} deg")
    print(f"Exit: {position_label(puzzle.exit)}")
    print(f"Segments: {len(puzzle.solution_path.segments)}, complexity {puzzle.complexity}")
    print(
        f"Algorithm: {metadata.algorithm}, attempts {metadata.attempts}, "
        f"confidence {metadata.confidence_score:.0f}, density {metadata.density_achieved:.2f}"
    )
    for warning in metadata.warnings:
        print(f"  warning: {warning}")
    if args.show_grid:
        for line in render_grid(puzzle):
            print(line)
    best = calculate_score(puzzle.base_score, 0, 0, puzzle.max_time, True)
    print(f"Best possible score: {best.final_score}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

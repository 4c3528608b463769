import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from laser_puzzle import demo


def test_demo_prints_summary(capsys):
    assert demo.main(["--seed", "3", "--show-grid"]) == 0

    output = capsys.readouterr().out
    assert "=== Laser Puzzle Demo ===" in output
    assert "Exit:" in output
    assert "Best possible score: 150" in output


def test_demo_emits_json(capsys):
    assert demo.main(["--seed", "3", "--difficulty", "Medium", "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["difficulty"] == "Medium"
    assert payload["grid_size"] == 8


def test_render_grid_marks_entry():
    from laser_puzzle.generator import PuzzleGenerator

    puzzle = PuzzleGenerator(seed=4).generate("Easy")

    lines = demo.render_grid(puzzle)

    assert lines[0].strip() == "ABCDEF"
    assert len(lines) == 7
    assert lines[puzzle.entry.y + 1][3 + puzzle.entry.x] == "E"

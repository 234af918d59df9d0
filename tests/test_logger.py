import json

from board import Board
from logger import MetricLogger, format_metric


def test_format_metric():
    assert format_metric(5120.4) == "5120.40"
    assert format_metric(0.0) == "0.00"
    assert format_metric(0.001) == "1.00e-03"
    assert format_metric(20480) == "20480"


def test_block_goes_to_stdout_only_without_log_dir(capsys):
    with MetricLogger() as logger:
        assert logger.log_file is None
        logger.log_block(1000, {"avg_score": 5120.4, "max_score": 20480})

    out = capsys.readouterr().out
    assert "--- Episode 1000 ---" in out
    assert "  avg_score: 5120.40" in out
    assert "  max_score: 20480" in out
    assert "final board" not in out


def test_block_is_appended_as_json(tmp_path, capsys):
    board = Board.from_grid([[1, 2, 0, 0], [0, 0, 0, 0], [0, 0, 0, 0], [0, 0, 0, 3]])
    with MetricLogger(log_dir=tmp_path / "logs", run_name="train_tdl") as logger:
        logger.log_block(1, {"avg_score": 12.0})
        logger.log_block(2, {"avg_score": 20.0}, final_board=board)
        log_file = logger.log_file

    assert log_file.parent == tmp_path / "logs"
    assert log_file.name.startswith("train_tdl_")
    first, second = [json.loads(line) for line in log_file.read_text().splitlines()]
    assert first["episode"] == 1
    assert "final_board" not in first
    assert second["avg_score"] == 20.0
    assert second["final_board"] == f"{board.raw:016x}"
    assert second["final_tile_sum"] == 14
    assert "final board of the last episode" in capsys.readouterr().out


def test_runs_get_separate_files(tmp_path):
    with MetricLogger(log_dir=tmp_path) as first:
        pass
    with MetricLogger(log_dir=tmp_path) as second:
        pass
    assert first.log_file != second.log_file
    assert first.log_file.name.endswith("_001.jsonl")
    assert second.log_file.name.endswith("_002.jsonl")

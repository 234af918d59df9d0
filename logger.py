"""Block-level reporting for training and evaluation runs."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any

import typer

from board import Board


def format_metric(value: Any) -> str:
    if isinstance(value, float):
        if value != 0 and (abs(value) < 0.01 or abs(value) >= 1e7):
            return f"{value:.2e}"
        return f"{value:.2f}"
    return str(value)


class MetricLogger:
    """
    Reports one statistics block every ``unit`` episodes.

    A block goes to stdout as

        --- Episode 1000 ---
          avg_score: 5120.40
          reach_2048: 12.50

    followed by the last episode's final board. When ``log_dir`` is set, the same
    block is appended as one JSON object to ``<run_name>_<date>_<NNN>.jsonl``; with
    ``use_wandb`` it is also sent to Weights & Biases under the episode number.
    """

    def __init__(
        self,
        log_dir: str | Path | None = None,
        run_name: str = "tdl",
        use_wandb: bool = False,
        wandb_project: str | None = None,
        wandb_run_name: str | None = None,
        wandb_config: dict[str, Any] | None = None,
    ):
        self.log_file: Path | None = None
        self._file_handle = None
        self._wandb = None

        if log_dir is not None:
            self.log_file = self._next_log_file(Path(log_dir), run_name)
            self._file_handle = open(self.log_file, "a")
            typer.echo(f"Logging to: {self.log_file}")

        if use_wandb:
            try:
                import wandb
            except ImportError:
                typer.echo("Warning: wandb not installed. Install with 'pip install wandb'")
            else:
                wandb.init(
                    project=wandb_project, name=wandb_run_name, config=wandb_config, reinit=True
                )
                self._wandb = wandb

    @staticmethod
    def _next_log_file(log_dir: Path, run_name: str) -> Path:
        log_dir.mkdir(parents=True, exist_ok=True)
        stem = f"{run_name}_{datetime.now():%Y%m%d}"
        suffix = 1
        while (log_dir / f"{stem}_{suffix:03d}.jsonl").exists():
            suffix += 1
        return log_dir / f"{stem}_{suffix:03d}.jsonl"

    def log_block(
        self, episode: int, summary: dict[str, float], final_board: Board | None = None
    ) -> None:
        """Report the block ending at ``episode``; ``final_board`` is the last episode's board."""
        typer.echo(f"--- Episode {episode} ---")
        for key, value in summary.items():
            typer.echo(f"  {key}: {format_metric(value)}")

        record: dict[str, Any] = {"episode": episode, **summary}
        if final_board is not None:
            typer.echo("  final board of the last episode:")
            typer.echo(str(final_board))
            record["final_board"] = f"{final_board.raw:016x}"
            record["final_tile_sum"] = final_board.score()

        if self._file_handle is not None:
            record["timestamp"] = datetime.now().isoformat()
            self._file_handle.write(json.dumps(record) + "\n")
            self._file_handle.flush()

        if self._wandb is not None:
            self._wandb.log(summary, step=episode)

    def print(self, message: str = "") -> None:
        """Print a message to stdout only."""
        typer.echo(message)

    def close(self) -> None:
        if self._file_handle is not None:
            self._file_handle.close()
            self._file_handle = None
        if self._wandb is not None:
            self._wandb.finish()
            self._wandb = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

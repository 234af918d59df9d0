"""
CLI training interface for the n-tuple TD player.
Run with: python train.py [command]
"""

from pathlib import Path
from typing import Optional

import typer
from tqdm import tqdm

from config import ConfigError, EnvironmentConfig, PlayerConfig
from environment import TileEnvironment
from episode import EpisodeResult, play_episode
from logger import MetricLogger
from player import Player
from weights import WeightFileError

app = typer.Typer(help="Train and evaluate n-tuple TD agents for the sliding-tile puzzle")

# how many of the largest tiles the block summary reports
TILE_ROWS = 6


class Statistics:
    """
    Collects finished episodes and summarises them every ``unit`` episodes.

    For each of the largest tiles seen in the block the summary reports how many
    episodes reached it ("reach") and how many ended with it as their largest
    tile ("end"), both as percentages of the block.
    """

    def __init__(self, unit: int):
        self.unit = unit
        self.scores: list[int] = []
        self.max_ranks: list[int] = []
        self.steps: list[int] = []
        self.td_errors: list[float] = []

    def add(self, result: EpisodeResult, td_errors: list[float] | None = None) -> dict | None:
        """Record an episode. Returns the block summary when the block is full."""
        self.scores.append(result.score)
        self.max_ranks.append(result.max_rank)
        self.steps.append(result.steps)
        if td_errors:
            self.td_errors.append(sum(abs(e) for e in td_errors) / len(td_errors))

        if len(self.scores) < self.unit:
            return None
        summary = self.summary()
        self.reset()
        return summary

    def reset(self) -> None:
        self.scores.clear()
        self.max_ranks.clear()
        self.steps.clear()
        self.td_errors.clear()

    def summary(self) -> dict[str, float]:
        count = len(self.scores)
        metrics: dict[str, float] = {
            "avg_score": sum(self.scores) / count,
            "max_score": max(self.scores),
            "avg_steps": sum(self.steps) / count,
        }
        if self.td_errors:
            metrics["avg_abs_td_error"] = sum(self.td_errors) / len(self.td_errors)

        top = max(self.max_ranks)
        for rank in range(max(top - TILE_ROWS + 1, 1), top + 1):
            reached = sum(1 for r in self.max_ranks if r >= rank)
            ended = sum(1 for r in self.max_ranks if r == rank)
            metrics[f"reach_{2**rank}"] = reached / count * 100
            metrics[f"end_{2**rank}"] = ended / count * 100
        return metrics


def load_configs(player_args: str, env_args: str) -> tuple[PlayerConfig, EnvironmentConfig]:
    try:
        return PlayerConfig.from_args(player_args), EnvironmentConfig.from_args(env_args)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def build_player(config: PlayerConfig) -> Player:
    try:
        return Player(config)
    except WeightFileError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def run_episodes(
    player: Player,
    environment: TileEnvironment,
    episodes: int,
    unit: int,
    logger: MetricLogger,
    max_steps: int | None = None,
    desc: str = "Training",
) -> list[EpisodeResult]:
    """Play ``episodes`` games, training after each one when the player's alpha is non-zero."""
    stats = Statistics(unit)
    results = []
    for episode in tqdm(range(1, episodes + 1), desc=desc):
        result = play_episode(
            player,
            environment,
            max_steps=max_steps,
            initial_tiles=environment.config.initial_tiles,
        )
        td_errors = player.train()
        environment.close_episode()
        results.append(result)

        summary = stats.add(result, td_errors)
        if summary is not None:
            logger.log_block(episode, summary, result.final_board)
    return results


@app.command()
def train(
    episodes: int = typer.Option(
        1000, "--episodes", "-n", min=1, help="Number of training episodes"
    ),
    player_args: str = typer.Option(
        "",
        "--player",
        help="Player arguments, e.g. 'alpha=0.1 load=weights.bin save=weights.bin'",
    ),
    env_args: str = typer.Option(
        "", "--env", help="Environment arguments, e.g. 'seed=7 bag=1,2,3'"
    ),
    unit: int = typer.Option(
        1000, "--unit", min=1, help="Print statistics every N episodes"
    ),
    max_steps: Optional[int] = typer.Option(
        None, "--max-steps", help="Stop an episode after this many player moves"
    ),
    log_dir: Optional[str] = typer.Option(
        None, "--log-dir", help="Directory for JSONL logs (disabled if not set)"
    ),
    use_wandb: bool = typer.Option(False, "--wandb", help="Enable Weights & Biases logging"),
    wandb_project: Optional[str] = typer.Option(
        "ntuple-tdl", "--wandb-project", help="W&B project name"
    ),
    wandb_run_name: Optional[str] = typer.Option(
        None, "--wandb-run", help="W&B run name (auto-generated if not set)"
    ),
):
    """Train the n-tuple player by self-play against the tile environment."""
    player_config, env_config = load_configs(player_args, env_args)

    logger = MetricLogger(
        log_dir=log_dir,
        run_name=f"train_{player_config.name}",
        use_wandb=use_wandb,
        wandb_project=wandb_project,
        wandb_run_name=wandb_run_name,
        wandb_config={
            "episodes": episodes,
            "player": player_config.model_dump(mode="json"),
            "environment": env_config.model_dump(mode="json"),
        },
    )

    with logger:
        topology = player_config.network
        logger.print(
            f"Creating n-tuple network (move={topology.move_radix}, hint={topology.hint_radix}, "
            f"rank={topology.rank_radix}, {topology.table_size:,} weights per table)"
        )
        if player_config.load:
            logger.print(f"Loading weights from: {player_config.load}")
        player = build_player(player_config)
        environment = TileEnvironment(env_config)
        logger.print(f"Player {player.name} against environment {environment.name}")

        run_episodes(player, environment, episodes, unit, logger, max_steps=max_steps)

        try:
            player.close()
        except WeightFileError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1)
        if player_config.save:
            logger.print(f"Saved weights to: {player_config.save}")


@app.command()
def evaluate(
    weights: Path = typer.Argument(..., help="Path to a trained weight file"),
    games: int = typer.Option(100, "--games", "-g", min=1, help="Number of games to evaluate"),
    init: str = typer.Option(
        "", "--init", help="Network topology the weights were trained with, e.g. 'hint=12,rank=15'"
    ),
    env_args: str = typer.Option("", "--env", help="Environment arguments, e.g. 'seed=7'"),
    max_steps: Optional[int] = typer.Option(
        None, "--max-steps", help="Stop an episode after this many player moves"
    ),
    log_dir: Optional[str] = typer.Option(
        None, "--log-dir", help="Directory for JSONL logs (disabled if not set)"
    ),
):
    """Evaluate a trained player without updating its weights."""
    player_config, env_config = load_configs(f"alpha=0 init={init}", env_args)
    player_config = player_config.model_copy(update={"load": weights})

    typer.echo(f"Evaluating weights from: {weights}")
    typer.echo(f"Running {games} evaluation games...")

    with MetricLogger(log_dir=log_dir, run_name="evaluate") as logger:
        player = build_player(player_config)
        environment = TileEnvironment(env_config)
        results = run_episodes(
            player, environment, games, games, logger, max_steps=max_steps, desc="Evaluating"
        )

    scores = sorted(result.score for result in results)
    typer.echo(f"\n{'=' * 25}")
    typer.echo(f"Max Score: {scores[-1]}")
    typer.echo(f"Median Score: {scores[len(scores) // 2]}")
    typer.echo(f"Avg Score: {sum(scores) / len(scores):.1f}")
    typer.echo(f"{'=' * 25}\n")


if __name__ == "__main__":
    app()

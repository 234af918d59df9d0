"""
Typed configuration for players, tile environments and n-tuple network topology.

Agents are configured with whitespace-separated ``key=value`` tokens, e.g.
``"alpha=0.1 load=weights.bin save=weights.bin"``. The tokens are parsed once
and validated by pydantic; unknown keys or unparsable values raise ConfigError.
"""

from pathlib import Path
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from board import MAX_RANK

TUPLE_LENGTH = 6


class ConfigError(ValueError):
    """Raised when agent arguments are malformed or fail validation."""


def parse_agent_args(args: str) -> dict[str, str]:
    pairs = {}
    for token in args.split():
        key, sep, value = token.partition("=")
        if not sep or not key:
            raise ConfigError(f"malformed agent argument '{token}', expected key=value")
        pairs[key] = value
    return pairs


def _validate(model: type[BaseModel], values: dict[str, Any]):
    try:
        return model.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"invalid {model.__name__}: {e}") from e


class AgentConfig(BaseModel):
    """Common parsing for agent configurations built from key=value tokens."""

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_args(cls, args: str = ""):
        return _validate(cls, parse_agent_args(args))

    def updated(self, message: str):
        """Return a copy with ``key=value`` tokens from ``message`` applied."""
        return _validate(type(self), {**self.model_dump(), **parse_agent_args(message)})


class NetworkConfig(BaseModel):
    """Radices of the feature key: previous move, hint tile, and one digit per tuple cell."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    move_radix: int = Field(4, ge=1, le=4)
    hint_radix: int = Field(12, ge=1, le=MAX_RANK + 1)
    rank_radix: int = Field(15, ge=2, le=MAX_RANK + 1)

    @property
    def table_size(self) -> int:
        return self.move_radix * self.hint_radix * self.rank_radix**TUPLE_LENGTH

    @classmethod
    def from_init(cls, init: str) -> "NetworkConfig":
        """
        Parse an ``init`` topology string such as ``"hint=12,rank=15"``.
        Any subset of ``move``, ``hint`` and ``rank`` may be given; an empty string means defaults.
        """
        values = {}
        for item in filter(None, init.split(",")):
            key, sep, value = item.partition("=")
            if not sep or key not in ("move", "hint", "rank"):
                raise ConfigError(f"unknown topology entry '{item}' in init={init}")
            values[f"{key}_radix"] = value
        return _validate(cls, values)


class PlayerConfig(AgentConfig):
    name: str = "tdl"
    alpha: float = Field(0.1, ge=0.0)
    init: str | None = None
    load: Path | None = None
    save: Path | None = None
    # accepted so every agent takes the same keys; move selection is deterministic
    seed: int | None = None

    @property
    def network(self) -> NetworkConfig:
        return NetworkConfig.from_init(self.init or "")


class EnvironmentConfig(AgentConfig):
    """
    Tile environment settings.

    bag: ranks dealt in shuffled order, refilled whenever exhausted.
    initial_tiles: placements made before the player's first slide.
    bonus_*: once the board's max rank exceeds bonus_threshold for bonus_trip_count
        placements, the next hint becomes a random rank in
        [bonus_base_rank, max_rank - bonus_gap].
    """

    name: str = "rndenv"
    seed: int | None = None
    bag: tuple[int, ...] = (1, 2, 3)
    initial_tiles: int = Field(9, ge=1, le=16)
    bonus_threshold: int = Field(7, ge=1, le=MAX_RANK)
    bonus_trip_count: int = Field(21, ge=1)
    bonus_base_rank: int = Field(4, ge=1, le=MAX_RANK)
    bonus_gap: int = Field(3, ge=0)

    @field_validator("bag", mode="before")
    @classmethod
    def split_bag(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(item for item in value.split(",") if item)
        return value

    @field_validator("bag")
    @classmethod
    def check_bag(cls, value: tuple[int, ...]) -> tuple[int, ...]:
        if not value:
            raise ValueError("bag must hold at least one rank")
        if not all(1 <= rank <= MAX_RANK for rank in value):
            raise ValueError(f"bag ranks must be within 1..{MAX_RANK}")
        return value

    @model_validator(mode="after")
    def check_bonus_range(self) -> "EnvironmentConfig":
        # the bonus fires only above the threshold, so the lowest max rank it sees is threshold + 1
        if self.bonus_threshold + 1 - self.bonus_gap < self.bonus_base_rank:
            raise ValueError(
                "bonus range is empty: bonus_threshold + 1 - bonus_gap must reach bonus_base_rank"
            )
        return self

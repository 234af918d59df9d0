"""
Tile environment: decides where the next tile goes and which rank it has.

Opening placements go to any empty cell and draw straight from the bag. Once
the player has slid, new tiles enter only on the wall opposite the slide, and
the placed rank is always the hint the player was shown. A rare bonus hint
replaces the bag's next rank once the board has held a large tile for a while.
"""

from dataclasses import replace

import torch

from board import Board, Direction, NUM_CELLS, Place
from config import EnvironmentConfig
from episode import EpisodeContext

# cells a tile may enter after each slide: the edge the tiles moved away from
FAR_WALL: dict[Direction, tuple[int, ...]] = {
    Direction.UP: (12, 13, 14, 15),
    Direction.RIGHT: (0, 4, 8, 12),
    Direction.DOWN: (0, 1, 2, 3),
    Direction.LEFT: (3, 7, 11, 15),
}


class TileBag:
    """A fixed multiset of ranks dealt in a shuffled order, reshuffled whenever exhausted."""

    def __init__(self, ranks: tuple[int, ...], generator: torch.Generator):
        self.ranks = ranks
        self.generator = generator
        self.refill()

    def refill(self) -> None:
        self.order = torch.randperm(len(self.ranks), generator=self.generator).tolist()
        self.current = 0

    def peek(self) -> int:
        return self.ranks[self.order[self.current]]

    def advance(self) -> None:
        self.current += 1
        if self.current == len(self.ranks):
            self.refill()

    def draw(self) -> int:
        tile = self.peek()
        self.advance()
        return tile


class TileEnvironment:
    def __init__(self, config: EnvironmentConfig | None = None):
        self.config = config or EnvironmentConfig()
        self._configure()

    def _configure(self) -> None:
        self.generator = torch.Generator()
        if self.config.seed is not None:
            self.generator.manual_seed(self.config.seed)
        else:
            self.generator.seed()
        self.bag = TileBag(self.config.bag, self.generator)
        self.bonus_counter = 0

    @property
    def name(self) -> str:
        return self.config.name

    def open_episode(self) -> EpisodeContext:
        self.bag.refill()
        self.bonus_counter = 0
        return EpisodeContext(previous_move=None, hint_tile=self.bag.peek())

    def close_episode(self) -> None:
        pass

    def notify(self, message: str) -> None:
        self.config = self.config.updated(message)
        self._configure()

    def _shuffled(self, cells: tuple[int, ...]) -> list[int]:
        order = torch.randperm(len(cells), generator=self.generator).tolist()
        return [cells[i] for i in order]

    def take_action(
        self, board: Board, context: EpisodeContext
    ) -> tuple[Place | None, EpisodeContext]:
        """
        Choose the next placement for ``board`` without modifying it.
        Returns (None, context) when no candidate cell is empty.
        """
        if context.previous_move is None:
            candidates = self._shuffled(tuple(range(NUM_CELLS)))
        else:
            candidates = self._shuffled(FAR_WALL[context.previous_move])

        position = next((pos for pos in candidates if board.cell(pos) == 0), None)
        if position is None:
            return None, context

        if context.previous_move is None:
            tile = self.bag.draw()
            hint = self.bag.peek()
        else:
            tile = context.hint_tile
            # a bonus hint is not in the bag, so the bag keeps its next rank for later
            if self.bag.peek() == tile:
                self.bag.advance()
            hint = self._next_hint(board)

        return Place(position, tile), replace(context, hint_tile=hint)

    def _next_hint(self, board: Board) -> int:
        max_rank = board.max_rank()
        if max_rank > self.config.bonus_threshold:
            self.bonus_counter += 1
            if self.bonus_counter >= self.config.bonus_trip_count:
                self.bonus_counter = 0
                low = self.config.bonus_base_rank
                high = max_rank - self.config.bonus_gap
                return int(torch.randint(low, high + 1, (1,), generator=self.generator).item())
        return self.bag.peek()

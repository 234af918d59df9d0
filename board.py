from dataclasses import dataclass
from enum import Enum
from typing import TypeAlias

GRID_SIZE = 4
NUM_CELLS = GRID_SIZE * GRID_SIZE
MAX_RANK = 15

# slide reward reported when a move leaves the board unchanged
ILLEGAL = -1

Grid: TypeAlias = list[list[int]]


class Direction(Enum):
    UP = 0
    RIGHT = 1
    DOWN = 2
    LEFT = 3

    @property
    def label(self) -> str:
        return self.name.lower()


@dataclass(frozen=True)
class Slide:
    direction: Direction

    def __str__(self) -> str:
        return f"#{self.direction.label}"


@dataclass(frozen=True)
class Place:
    position: int
    rank: int

    def __str__(self) -> str:
        return f"{self.position}@{self.rank}"


Action: TypeAlias = Slide | Place


def _merge_and_shift_left_with_score(row: list[int]) -> tuple[list[int], int]:
    """Merge and shift a row to the left, returning (new_row, score_gained). Row contains ranks."""
    non_zero = [x for x in row if x != 0]

    merged = []
    score = 0
    i = 0
    while i < len(non_zero):
        # a rank-15 pair has nowhere to go in 4 bits, so it stays put
        if (
            i + 1 < len(non_zero)
            and non_zero[i] == non_zero[i + 1]
            and non_zero[i] < MAX_RANK
        ):
            new_rank = non_zero[i] + 1
            merged.append(new_rank)
            score += 2**new_rank  # points = value of merged tile
            i += 2
        else:
            merged.append(non_zero[i])
            i += 1

    return merged + [0] * (GRID_SIZE - len(merged)), score


def _pack_row(tiles: list[int]) -> int:
    return sum(tile << (4 * i) for i, tile in enumerate(tiles))


def _unpack_row(row: int) -> list[int]:
    return [(row >> (4 * i)) & 0xF for i in range(GRID_SIZE)]


def _build_row_table() -> tuple[list[int], list[int], list[int]]:
    left, right, score = [], [], []
    for row in range(1 << 16):
        tiles = _unpack_row(row)
        moved, points = _merge_and_shift_left_with_score(tiles)
        left.append(_pack_row(moved))
        moved, _ = _merge_and_shift_left_with_score(tiles[::-1])
        right.append(_pack_row(moved[::-1]))
        score.append(points)
    return left, right, score


# precomputed result of sliding every possible 16-bit row
ROW_LEFT, ROW_RIGHT, ROW_SCORE = _build_row_table()


def format_grid(grid: Grid, indent: str = "  ") -> str:
    """
    Format a grid for pretty printing.
    Grid contains ranks (0 = empty, 1 = 2, 2 = 4, etc.)
    """
    lines = []
    # Find max width needed for any cell
    max_val = max(2**cell if cell > 0 else 0 for row in grid for cell in row)
    cell_width = max(4, len(str(max_val)) + 1)

    # Top border
    lines.append(indent + "┌" + "─" * (cell_width * 4 + 3) + "┐")

    for i, row in enumerate(grid):
        cells = []
        for cell in row:
            if cell == 0:
                cells.append(".".center(cell_width))
            else:
                cells.append(str(2**cell).center(cell_width))
        lines.append(indent + "│" + "│".join(cells) + "│")
        if i < 3:
            lines.append(indent + "├" + "─" * (cell_width * 4 + 3) + "┤")

    # Bottom border
    lines.append(indent + "└" + "─" * (cell_width * 4 + 3) + "┘")

    return "\n".join(lines)


class Board:
    """
    4x4 board packed into a 64-bit integer, 4 bits per cell.

    Cell i lives in bits 4i..4i+3, so row r is the 16-bit chunk starting at bit 16r:

     0  1  2  3
     4  5  6  7
     8  9 10 11
    12 13 14 15

    A cell stores a rank: 0 is empty and rank n is the tile 2^n.
    """

    raw: int

    def __init__(self, raw: int = 0):
        self.raw = int(raw)

    @classmethod
    def from_grid(cls, grid: Grid) -> "Board":
        if len(grid) != GRID_SIZE or any(len(row) != GRID_SIZE for row in grid):
            raise ValueError("dimensions are inappropriate for a grid")
        # Valid values are 0 (empty) or ranks 1-15 (representing 2^1 to 2^15)
        if not all(0 <= s <= MAX_RANK for row in grid for s in row):
            raise ValueError(f"grid ranks must be within 0..{MAX_RANK}")

        board = cls()
        for r, row in enumerate(grid):
            for c, rank in enumerate(row):
                board.set(r * GRID_SIZE + c, rank)
        return board

    def copy(self) -> "Board":
        return Board(self.raw)

    def cell(self, i: int) -> int:
        return (self.raw >> (i << 2)) & 0xF

    def set(self, i: int, rank: int) -> None:
        if not 0 <= rank <= MAX_RANK:
            raise ValueError(f"rank {rank} cannot be stored in a cell")
        self.raw = (self.raw & ~(0xF << (i << 2))) | (rank << (i << 2))

    def __getitem__(self, i: int) -> int:
        return self.cell(i)

    def __setitem__(self, i: int, rank: int) -> None:
        self.set(i, rank)

    def __eq__(self, other) -> bool:
        return isinstance(other, Board) and self.raw == other.raw

    def __hash__(self) -> int:
        return hash(self.raw)

    def __repr__(self) -> str:
        return f"Board(0x{self.raw:016x})"

    def __str__(self) -> str:
        return format_grid(self.to_grid())

    def row(self, r: int) -> int:
        return (self.raw >> (r << 4)) & 0xFFFF

    def to_grid(self) -> Grid:
        return [
            [self.cell(r * GRID_SIZE + c) for c in range(GRID_SIZE)]
            for r in range(GRID_SIZE)
        ]

    def max_rank(self) -> int:
        return max(self.cell(i) for i in range(NUM_CELLS))

    def empty_cells(self) -> list[int]:
        return [i for i in range(NUM_CELLS) if self.cell(i) == 0]

    def score(self) -> int:
        """Sum of tile values on the board."""
        return sum(2**k for k in (self.cell(i) for i in range(NUM_CELLS)) if k > 0)

    def apply(self, action: Action) -> int:
        """
        Apply an action in place.
        Returns the slide reward, 0 for a placement, or ILLEGAL if nothing could change.
        """
        if isinstance(action, Slide):
            return self.slide(action.direction)
        if isinstance(action, Place):
            if not 0 <= action.position < NUM_CELLS or self.cell(action.position) != 0:
                return ILLEGAL
            self.set(action.position, action.rank)
            return 0
        return ILLEGAL

    def slide(self, direction: Direction) -> int:
        """
        Slide every row or column toward the given edge, merging equal neighbours once.
        Returns the summed value of merged tiles, or ILLEGAL if the board did not change.
        """
        if direction == Direction.LEFT:
            return self._slide_rows(ROW_LEFT)
        if direction == Direction.RIGHT:
            return self._slide_rows(ROW_RIGHT)

        # columns become rows, so up is left and down is right
        self.transpose()
        reward = self._slide_rows(ROW_LEFT if direction == Direction.UP else ROW_RIGHT)
        self.transpose()
        return reward

    def _slide_rows(self, table: list[int]) -> int:
        prev = self.raw
        moved = 0
        score = 0
        for r in range(GRID_SIZE):
            row = self.row(r)
            moved |= table[row] << (r << 4)
            score += ROW_SCORE[row]
        self.raw = moved
        return score if moved != prev else ILLEGAL

    def direction_has_step(self, direction: Direction) -> bool:
        return self.copy().slide(direction) != ILLEGAL

    def legal_directions(self) -> list[Direction]:
        return [d for d in Direction if self.direction_has_step(d)]

    def has_legal_move(self) -> bool:
        return any(self.direction_has_step(d) for d in Direction)

    def transpose(self) -> None:
        """Swap rows and columns."""
        raw = self.raw
        raw = (
            (raw & 0xF0F00F0FF0F00F0F)
            | ((raw & 0x0000F0F00000F0F0) << 12)
            | ((raw & 0x0F0F00000F0F0000) >> 12)
        )
        raw = (
            (raw & 0xFF00FF0000FF00FF)
            | ((raw & 0x00000000FF00FF00) << 24)
            | ((raw & 0x00FF00FF00000000) >> 24)
        )
        self.raw = raw

    def mirror(self) -> None:
        """Reflect horizontally, i.e. exchange columns."""
        raw = self.raw
        self.raw = (
            ((raw & 0x000F000F000F000F) << 12)
            | ((raw & 0x00F000F000F000F0) << 4)
            | ((raw & 0x0F000F000F000F00) >> 4)
            | ((raw & 0xF000F000F000F000) >> 12)
        )

    def flip(self) -> None:
        """Reflect vertically, i.e. exchange rows."""
        raw = self.raw
        self.raw = (
            ((raw & 0x000000000000FFFF) << 48)
            | ((raw & 0x00000000FFFF0000) << 16)
            | ((raw & 0x0000FFFF00000000) >> 16)
            | ((raw & 0xFFFF000000000000) >> 48)
        )

    def rotate_clockwise(self) -> None:
        self.transpose()
        self.mirror()

    def rotate(self, times: int = 1) -> None:
        for _ in range(times % 4):
            self.rotate_clockwise()

    def transform(self, symmetry: int) -> "Board":
        """
        Return a copy under one of the 8 board symmetries.
        Symmetries 0-3 are clockwise rotations; 4-7 mirror first, then rotate.
        """
        if not 0 <= symmetry < 8:
            raise ValueError(f"symmetry must be within 0..7, got {symmetry}")
        board = self.copy()
        if symmetry >= 4:
            board.mirror()
        board.rotate(symmetry)
        return board

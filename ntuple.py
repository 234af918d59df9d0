"""
N-tuple feature extraction and value estimation.

The network reads four 6-cell tuple shapes, each expanded to its 8 symmetric
placements (4 rotations x 2 reflections). The 8 placements of one shape share a
single weight table, so updating one board also updates its rotations and
reflections. A feature key mixes the previous slide, the revealed hint tile and
the six cell ranks in fixed radix:

    key = (move * hint_radix + hint) * rank_radix**6 + ranks read as base-rank_radix digits

with the first cell of the tuple as the most significant digit.
"""

from board import Board, Direction, NUM_CELLS
from config import NetworkConfig
from weights import WeightStore

# canonical shapes on the cell layout
#  0  1  2  3
#  4  5  6  7
#  8  9 10 11
# 12 13 14 15
TUPLE_SHAPES: tuple[tuple[int, ...], ...] = (
    (0, 1, 2, 3, 4, 5),
    (4, 5, 6, 7, 8, 9),
    (0, 1, 2, 4, 5, 6),
    (4, 5, 6, 8, 9, 10),
)

NUM_SYMMETRIES = 8


class FeatureOverflowError(RuntimeError):
    """
    A rank, hint or move does not fit the configured radix, so its key would leave the table.

    With the default rank radix of 15 this is raised as soon as an after-state holds a
    32768 tile; networks meant to reach it need ``init=rank=16``.
    """


def _symmetry_maps() -> list[list[int]]:
    """
    For each symmetry s, map[s][i] is the cell of the original board that lands on cell i
    after Board.transform(s). Found by transforming a board whose cell i holds i.
    """
    identity = Board(0xFEDCBA9876543210)
    maps = []
    for s in range(NUM_SYMMETRIES):
        moved = identity.transform(s)
        maps.append([moved.cell(i) for i in range(NUM_CELLS)])
    return maps


SYMMETRY_MAPS = _symmetry_maps()

# SYMMETRIC_PLACEMENTS[g][s] is shape g read on the board as seen through symmetry s
SYMMETRIC_PLACEMENTS: tuple[tuple[tuple[int, ...], ...], ...] = tuple(
    tuple(tuple(cell_map[c] for c in shape) for cell_map in SYMMETRY_MAPS)
    for shape in TUPLE_SHAPES
)


def feature_key(
    board: Board,
    cells: tuple[int, ...],
    move: Direction,
    hint: int,
    config: NetworkConfig,
) -> int:
    move_id = move.value
    if not 0 <= move_id < config.move_radix:
        raise FeatureOverflowError(f"move {move.label} exceeds move radix {config.move_radix}")
    if not 0 <= hint < config.hint_radix:
        raise FeatureOverflowError(f"hint tile {hint} exceeds hint radix {config.hint_radix}")

    key = move_id * config.hint_radix + hint
    for c in cells:
        rank = board.cell(c)
        if rank >= config.rank_radix:
            raise FeatureOverflowError(
                f"rank {rank} at cell {c} exceeds rank radix {config.rank_radix}"
            )
        key = key * config.rank_radix + rank
    return key


class NTupleNetwork:
    """Sums 4 shapes x 8 symmetric placements of weights into one value estimate."""

    def __init__(self, config: NetworkConfig, store: WeightStore | None = None):
        self.config = config
        if store is None:
            store = WeightStore.zeros(len(TUPLE_SHAPES), config.table_size)
        if len(store) != len(TUPLE_SHAPES) or store.table_size != config.table_size:
            raise ValueError(
                f"weight store holds {len(store)} tables of {store.table_size}, "
                f"expected {len(TUPLE_SHAPES)} of {config.table_size}"
            )
        self.store = store

    @property
    def num_features(self) -> int:
        return len(TUPLE_SHAPES) * NUM_SYMMETRIES

    def keys(self, board: Board, move: Direction, hint: int) -> list[list[int]]:
        """Feature keys of ``board``, one list of 8 per table."""
        return [
            [feature_key(board, cells, move, hint, self.config) for cells in placements]
            for placements in SYMMETRIC_PLACEMENTS
        ]

    def estimate(self, board: Board, move: Direction, hint: int) -> float:
        return sum(
            self.store.gather(group, keys)
            for group, keys in enumerate(self.keys(board, move, hint))
        )

    def update(self, board: Board, move: Direction, hint: int, fix: float) -> None:
        """Add ``fix`` to every weight that contributes to the board's estimate."""
        for group, keys in enumerate(self.keys(board, move, hint)):
            self.store.scatter_add(group, keys, fix)

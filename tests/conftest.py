import pytest

from board import Board
from config import NetworkConfig
from ntuple import NTupleNetwork

# ranks up to 6 (the 64 tile) and hints up to 3 keep each table at a few MB
SMALL_TOPOLOGY = "hint=4,rank=7"


@pytest.fixture
def small_config() -> NetworkConfig:
    return NetworkConfig.from_init(SMALL_TOPOLOGY)


@pytest.fixture
def network(small_config) -> NTupleNetwork:
    return NTupleNetwork(small_config)


@pytest.fixture
def asymmetric_board() -> Board:
    # no two symmetric placements of any tuple shape read the same ranks
    return Board.from_grid(
        [
            [1, 2, 3, 4],
            [5, 0, 1, 2],
            [3, 4, 5, 0],
            [1, 3, 2, 4],
        ]
    )

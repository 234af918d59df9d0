import pytest

from board import Board, Direction, Place, Slide
from config import EnvironmentConfig, PlayerConfig
from environment import TileEnvironment
from episode import EpisodeContext, play_episode
from player import EVALUATION_ORDER, Player

SMALL_TOPOLOGY = "hint=4,rank=7"


@pytest.fixture
def player(network) -> Player:
    return Player(PlayerConfig(alpha=0.1, init=SMALL_TOPOLOGY), network=network)


def test_evaluation_order_is_fixed():
    assert EVALUATION_ORDER == (Direction.DOWN, Direction.LEFT, Direction.RIGHT, Direction.UP)


def test_input_board_is_not_mutated(player, asymmetric_board):
    before = asymmetric_board.copy()
    player.take_action(asymmetric_board, EpisodeContext(Direction.UP, 1))
    assert asymmetric_board == before


def test_no_action_on_dead_board(player):
    board = Board.from_grid([[1, 2, 1, 2], [2, 1, 2, 1], [1, 2, 1, 2], [2, 1, 2, 1]])
    context = EpisodeContext(Direction.LEFT, 2)
    action, returned = player.take_action(board, context)
    assert action is None
    assert returned == context
    assert len(player.trajectory) == 0


def test_first_seen_wins_ties(player):
    board = Board()
    board.set(5, 1)
    # every direction is legal, earns nothing, and has no value before the first move
    action, context = player.take_action(board, EpisodeContext(None, 3))
    assert action == Slide(Direction.DOWN)
    assert context == EpisodeContext(Direction.DOWN, 3)

    after = board.copy()
    after.slide(Direction.DOWN)
    assert player.trajectory.boards == [after]
    assert player.trajectory.rewards == [0]
    assert player.trajectory.hints == [3]
    assert player.trajectory.moves == [Direction.DOWN]


def test_prefers_merge_reward(player):
    board = Board.from_grid([[1, 1, 0, 0], [3, 0, 2, 0], [0] * 4, [0] * 4])
    action, _ = player.take_action(board, EpisodeContext(None, 1))
    # left and right both merge for 4; left is tried first
    assert action == Slide(Direction.LEFT)
    assert player.trajectory.rewards == [4]


def test_value_estimate_steers_choice(player, monkeypatch):
    board = Board.from_grid([[1, 1, 0, 0], [3, 0, 2, 0], [0] * 4, [0] * 4])
    favoured = board.copy()
    favoured.slide(Direction.RIGHT)
    seen = []

    def estimate(after, move, hint):
        seen.append((move, hint))
        return 100.0 if after == favoured else 0.0

    monkeypatch.setattr(player.network, "estimate", estimate)
    action, context = player.take_action(board, EpisodeContext(Direction.UP, 2))
    assert action == Slide(Direction.RIGHT)
    assert context.previous_move == Direction.RIGHT
    # candidates are read with the move made on the previous turn
    assert set(seen) == {(Direction.UP, 2)}

    candidates = player.evaluate(board, EpisodeContext(Direction.UP, 2))
    assert [c.direction for c in candidates] == [
        Direction.DOWN,
        Direction.LEFT,
        Direction.RIGHT,
        Direction.UP,
    ]
    best = max(candidates, key=lambda c: c.score)
    assert best.direction == Direction.RIGHT
    assert best.score == 104.0


def test_trajectory_keys_after_state_by_chosen_slide(player, monkeypatch):
    board = Board.from_grid([[1, 1, 0, 0], [3, 0, 2, 0], [0] * 4, [0] * 4])
    seen = []

    def estimate(after, move, hint):
        seen.append(move)
        return 0.0

    monkeypatch.setattr(player.network, "estimate", estimate)
    action, _ = player.take_action(board, EpisodeContext(Direction.UP, 2))
    assert action == Slide(Direction.LEFT)
    assert set(seen) == {Direction.UP}
    assert player.trajectory.moves == [Direction.LEFT]
    assert player.trajectory.hints == [2]
    assert player.trajectory.rewards == [4]


def test_notify_updates_alpha(player):
    player.notify("alpha=0")
    assert player.alpha == 0
    assert player.learner.alpha == 0


def test_save_on_close(tmp_path, small_config):
    path = tmp_path / "weights.bin"
    player = Player(PlayerConfig(init=SMALL_TOPOLOGY, save=path))
    player.network.store.accumulate(2, 17, 1.5)
    player.close()

    loaded = Player(PlayerConfig(init=SMALL_TOPOLOGY, load=path))
    assert loaded.network.store.lookup(2, 17) == 1.5
    assert loaded.network.config == small_config


def test_episode_runs_to_completion_and_trains(player):
    environment = TileEnvironment(EnvironmentConfig(seed=3))
    result = play_episode(
        player,
        environment,
        max_steps=10,
        initial_tiles=environment.config.initial_tiles,
    )

    slides = [a for a in result.actions if isinstance(a, Slide)]
    places = [a for a in result.actions if isinstance(a, Place)]
    assert isinstance(result.actions[0], Place)
    assert len(slides) == result.steps <= 10
    assert len(places) >= environment.config.initial_tiles
    assert len(player.trajectory) == result.steps
    assert sum(player.trajectory.rewards) == result.score

    errors = player.train()
    assert len(errors) == result.steps
    assert len(player.trajectory) == 0


def test_episode_ends_without_legal_move(player):
    dead = Board.from_grid([[1, 2, 1, 2], [2, 1, 2, 1], [1, 2, 1, 2], [2, 1, 2, 1]])
    environment = TileEnvironment(EnvironmentConfig(seed=1))
    result = play_episode(player, environment, board=dead, initial_tiles=0)
    assert result.steps == 0
    assert result.score == 0
    assert result.final_board == dead

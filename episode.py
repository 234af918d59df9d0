"""
Per-episode state shared between the tile environment and the player, and the episode loop.
"""

from dataclasses import dataclass, field
from typing import Protocol

from board import Action, Board, Direction, ILLEGAL


@dataclass(frozen=True)
class EpisodeContext:
    """
    What the environment and the player tell each other between turns.

    previous_move: the last slide of this episode, None until the player has moved.
    hint_tile: the rank the environment will place next, revealed ahead of time.
    """

    previous_move: Direction | None = None
    hint_tile: int = 0


@dataclass
class Trajectory:
    """After-states of one episode with the reward, hint tile and move that produced each."""

    boards: list[Board] = field(default_factory=list)
    rewards: list[int] = field(default_factory=list)
    hints: list[int] = field(default_factory=list)
    moves: list[Direction] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.boards)

    def append(self, board: Board, reward: int, hint: int, move: Direction) -> None:
        self.boards.append(board)
        self.rewards.append(reward)
        self.hints.append(hint)
        self.moves.append(move)

    def pop(self) -> tuple[Board, int, int, Direction]:
        return self.boards.pop(), self.rewards.pop(), self.hints.pop(), self.moves.pop()

    def clear(self) -> None:
        self.boards.clear()
        self.rewards.clear()
        self.hints.clear()
        self.moves.clear()


class Agent(Protocol):
    def open_episode(self) -> EpisodeContext | None: ...

    def close_episode(self) -> None: ...

    def take_action(
        self, board: Board, context: EpisodeContext
    ) -> tuple[Action | None, EpisodeContext]: ...

    def notify(self, message: str) -> None: ...


@dataclass
class EpisodeResult:
    score: int
    steps: int
    final_board: Board
    actions: list[Action] = field(default_factory=list)

    @property
    def max_rank(self) -> int:
        return self.final_board.max_rank()


def play_episode(
    player: Agent,
    environment: Agent,
    board: Board | None = None,
    max_steps: int | None = None,
    initial_tiles: int = 1,
) -> EpisodeResult:
    """
    Play one episode: ``initial_tiles`` opening placements, then player and environment
    alternate until one of them has no action (or the player has made ``max_steps`` moves).

    The player's trajectory is left untouched; call ``player.close_episode()`` to learn from it.
    """
    board = Board() if board is None else board.copy()
    context = environment.open_episode()
    player.open_episode()

    actions: list[Action] = []
    score = 0
    steps = 0

    def place() -> bool:
        nonlocal context
        action, context = environment.take_action(board, context)
        if action is None or board.apply(action) == ILLEGAL:
            return False
        actions.append(action)
        return True

    for _ in range(initial_tiles):
        if not place():
            break

    while not max_steps or steps < max_steps:
        action, context = player.take_action(board, context)
        if action is None:
            break
        reward = board.apply(action)
        if reward == ILLEGAL:
            raise RuntimeError(f"player chose an illegal action {action}")
        actions.append(action)
        score += reward
        steps += 1
        if not place():
            break

    return EpisodeResult(score=score, steps=steps, final_board=board, actions=actions)


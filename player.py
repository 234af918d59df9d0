"""
The learning player: one-ply lookahead over an n-tuple value function, trained by TD(0).
"""

from dataclasses import dataclass, replace

from board import Board, Direction, ILLEGAL, Slide
from config import PlayerConfig
from episode import EpisodeContext, Trajectory
from learner import TDLearner
from ntuple import NTupleNetwork, TUPLE_SHAPES
from weights import WeightStore

# order in which slides are tried; on equal scores the earlier one is kept
EVALUATION_ORDER = (Direction.DOWN, Direction.LEFT, Direction.RIGHT, Direction.UP)


@dataclass
class Candidate:
    direction: Direction
    after: Board
    reward: int
    value: float

    @property
    def score(self) -> float:
        return self.reward + self.value


class Player:
    def __init__(
        self, config: PlayerConfig | None = None, network: NTupleNetwork | None = None
    ):
        self.config = config or PlayerConfig()
        self.network = network if network is not None else self._build_network()
        self.learner = TDLearner(self.network, self.config.alpha)
        self.trajectory = Trajectory()

    def _build_network(self) -> NTupleNetwork:
        topology = self.config.network
        if self.config.load is not None:
            store = WeightStore.load(
                self.config.load, len(TUPLE_SHAPES), topology.table_size
            )
            return NTupleNetwork(topology, store)
        return NTupleNetwork(topology)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def alpha(self) -> float:
        return self.config.alpha

    def open_episode(self) -> None:
        self.trajectory.clear()

    def close_episode(self) -> None:
        self.train()

    def train(self) -> list[float]:
        """Learn from the recorded episode; the trajectory is empty afterwards."""
        return self.learner.learn(self.trajectory)

    def notify(self, message: str) -> None:
        self.config = self.config.updated(message)
        self.learner.alpha = self.config.alpha

    def close(self) -> None:
        if self.config.save is not None:
            self.network.store.save(self.config.save)

    def evaluate(self, board: Board, context: EpisodeContext) -> list[Candidate]:
        """Score every legal slide of ``board`` in EVALUATION_ORDER; ``board`` is not modified."""
        candidates = []
        for direction in EVALUATION_ORDER:
            after = board.copy()
            reward = after.slide(direction)
            if reward == ILLEGAL:
                continue

            # nothing to condition on before the first slide of an episode
            value = 0.0
            if context.previous_move is not None:
                value = self.network.estimate(after, context.previous_move, context.hint_tile)
            candidates.append(Candidate(direction, after, reward, value))
        return candidates

    def best_move(self, board: Board, context: EpisodeContext) -> Candidate | None:
        best = None
        for candidate in self.evaluate(board, context):
            if best is None or candidate.score > best.score:
                best = candidate
        return best

    def take_action(
        self, board: Board, context: EpisodeContext
    ) -> tuple[Slide | None, EpisodeContext]:
        """
        Pick the slide with the highest reward plus estimated after-state value.
        Returns (None, context) when no slide changes the board, which ends the episode.
        """
        best = self.best_move(board, context)
        if best is None:
            return None, context

        # recorded under the chosen slide, whereas evaluate() reads under the previous one;
        # the two keys coincide only when a slide is repeated
        self.trajectory.append(best.after, best.reward, context.hint_tile, best.direction)
        return Slide(best.direction), replace(context, previous_move=best.direction)

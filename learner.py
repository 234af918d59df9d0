from episode import Trajectory
from ntuple import NTupleNetwork


class TDLearner:
    """
    Backward TD(0) over the after-states of one finished episode.

    The terminal after-state is pulled toward 0. Walking from newest to oldest,
    each predecessor is pulled toward its successor's current estimate plus the
    reward earned reaching it, so corrections made to later states already
    count when earlier ones are updated. The error is shared evenly across
    every weight that contributed to the estimate.
    """

    def __init__(self, network: NTupleNetwork, alpha: float):
        self.network = network
        self.alpha = alpha

    def learn(self, trajectory: Trajectory) -> list[float]:
        """Train on ``trajectory`` and drain it. Returns the TD errors, newest first."""
        errors: list[float] = []
        if not trajectory:
            return errors
        if self.alpha == 0:
            trajectory.clear()
            return errors

        rate = self.alpha / self.network.num_features

        board, reward, hint, move = trajectory.pop()
        error = 0 - self.network.estimate(board, move, hint)
        self.network.update(board, move, hint, error * rate)
        errors.append(error)

        while trajectory:
            prev_board, prev_reward, prev_hint, prev_move = trajectory.pop()
            error = (
                self.network.estimate(board, move, hint)
                - self.network.estimate(prev_board, prev_move, prev_hint)
                + reward
            )
            self.network.update(prev_board, prev_move, prev_hint, error * rate)
            errors.append(error)
            board, reward, hint, move = prev_board, prev_reward, prev_hint, prev_move

        return errors

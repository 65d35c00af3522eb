"""
Simplified performance counters for a bot run.

Trade outcomes are simulated: each position change is scored a win with a
fixed probability rather than from subsequent price movement.
"""

import random
from typing import Optional


class PerformanceTracker:
    """Trade/win counters plus equity bookkeeping."""

    def __init__(
        self,
        win_probability: float = 0.6,
        initial_equity: float = 10000.0,
        rng: Optional[random.Random] = None,
    ):
        if not 0.0 <= win_probability <= 1.0:
            raise ValueError("win_probability must be between 0 and 1")
        self.win_probability = win_probability
        self.rng = rng or random.Random()
        self.trade_count = 0
        self.win_count = 0
        self.initial_equity = initial_equity
        self.equity = initial_equity

    def record_position_change(self) -> bool:
        """
        Count a new trade and draw its simulated outcome.

        Returns:
            True if the trade was scored a win
        """
        self.trade_count += 1
        won = self.rng.random() > (1.0 - self.win_probability)
        if won:
            self.win_count += 1
        return won

    def win_rate(self) -> float:
        """Winning trades as a percentage of all trades; 0 before the first trade."""
        if self.trade_count == 0:
            return 0.0
        return self.win_count / self.trade_count * 100

    def profit_loss(self) -> float:
        return self.equity - self.initial_equity

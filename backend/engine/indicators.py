"""
Technical indicator library.

Pure functions over a newest-last price sequence. Each returns a defined
sentinel while history is too short instead of raising.
"""

import math
from typing import Sequence, Tuple


def sma(series: Sequence[float], period: int) -> float:
    """
    Simple moving average of the last `period` prices.

    Returns:
        Mean of the trailing window, or 0.0 if len(series) < period
    """
    if period <= 0 or len(series) < period:
        return 0.0
    return sum(series[-period:]) / period


def rsi(series: Sequence[float], period: int) -> float:
    """
    Relative strength index using simple (non-smoothed) average gain/loss
    over the last `period` price changes.

    Returns:
        50.0 with fewer than period+1 prices, 100.0 when there was no loss
        in the window, else 100 - 100 / (1 + avg_gain / avg_loss)
    """
    if period <= 0 or len(series) < period + 1:
        return 50.0
    gain = 0.0
    loss = 0.0
    for i in range(len(series) - period, len(series)):
        change = series[i] - series[i - 1]
        if change > 0:
            gain += change
        else:
            loss -= change
    if loss == 0:
        return 100.0
    rs = (gain / period) / (loss / period)
    return 100.0 - (100.0 / (1.0 + rs))


def stochastic(series: Sequence[float], period: int) -> float:
    """
    Stochastic oscillator %K over the trailing window.

    Returns:
        50.0 with insufficient history or a flat window
    """
    if period <= 0 or len(series) < period:
        return 50.0
    window = series[-period:]
    high = max(window)
    low = min(window)
    if high == low:
        return 50.0
    return (series[-1] - low) / (high - low) * 100


def bollinger_bands(series: Sequence[float], period: int, k: float) -> Tuple[float, float, float]:
    """
    Bollinger bands using the population standard deviation.

    Returns:
        (upper, middle, lower), or (0.0, 0.0, 0.0) with insufficient history
    """
    if period <= 0 or len(series) < period:
        return 0.0, 0.0, 0.0
    mean = sma(series, period)
    squared = 0.0
    for price in series[-period:]:
        deviation = price - mean
        squared += deviation * deviation
    std = math.sqrt(squared / period)
    return mean + (std * k), mean, mean - (std * k)

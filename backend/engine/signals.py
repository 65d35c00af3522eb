"""
Signal Generators.

Each generator turns the current price history plus strategy parameters into
a Signal. Crossover-style generators (SMA crossover, RSI threshold) are
edge-triggered and carry the previous tick's indicator values in an
IndicatorMemory; oscillator generators (stochastic, Bollinger) are
level-triggered and stateless.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Sequence

from config.strategy_config import get_default_parameters
from engine.indicators import sma, rsi, stochastic, bollinger_bands


class Signal(Enum):
    """Trading signal types."""
    HOLD = "hold"
    BUY = "buy"
    SELL = "sell"

    @property
    def label(self) -> str:
        return self.name


@dataclass
class IndicatorMemory:
    """Indicator values carried over from the previous ready tick."""
    last_short_sma: float = 0.0
    last_long_sma: float = 0.0
    last_rsi: float = 0.0


class SignalGenerator(ABC):
    """
    Abstract base class for all signal generators.

    generate() is called on every tick, including ticks where history is
    still shorter than required_history(); those calls return HOLD and leave
    the memory untouched.
    """

    key: str = ""

    def param(self, params: Dict[str, float], name: str) -> float:
        """Read a strategy parameter, falling back to the catalog default."""
        if name in params:
            return float(params[name])
        return get_default_parameters(self.key)[name]

    @abstractmethod
    def required_history(self, params: Dict[str, float]) -> int:
        """Minimum number of prices before the generator can emit BUY/SELL."""
        pass

    @abstractmethod
    def generate(
        self,
        prices: Sequence[float],
        params: Dict[str, float],
        memory: IndicatorMemory,
    ) -> Signal:
        """
        Evaluate the latest price history.

        Args:
            prices: Newest-last price history
            params: Strategy parameters (periods, thresholds, multipliers)
            memory: Carried-over indicator state, updated in place

        Returns:
            Signal for this tick
        """
        pass

    def display_indicators(self, prices: Sequence[float], params: Dict[str, float]) -> Dict[str, float]:
        """Indicator values to chart alongside the price. Default: none."""
        return {}


class SmaCrossoverSignal(SignalGenerator):
    """
    Moving average crossover.

    Logic:
    - BUY when the short SMA moves above the long SMA.
    - SELL when the short SMA moves below the long SMA.
    """

    key = "sma_crossover"

    def required_history(self, params: Dict[str, float]) -> int:
        return int(self.param(params, "sma_long_period"))

    def generate(self, prices, params, memory):
        short_period = int(self.param(params, "sma_short_period"))
        long_period = int(self.param(params, "sma_long_period"))
        if len(prices) < long_period:
            return Signal.HOLD

        short_sma = sma(prices, short_period)
        long_sma = sma(prices, long_period)
        signal = Signal.HOLD
        if short_sma > long_sma and memory.last_short_sma <= memory.last_long_sma:
            signal = Signal.BUY
        if short_sma < long_sma and memory.last_short_sma >= memory.last_long_sma:
            signal = Signal.SELL
        memory.last_short_sma = short_sma
        memory.last_long_sma = long_sma
        return signal

    def display_indicators(self, prices, params):
        indicators: Dict[str, float] = {}
        short_period = int(self.param(params, "sma_short_period"))
        long_period = int(self.param(params, "sma_long_period"))
        if len(prices) >= short_period:
            indicators["sma_short"] = sma(prices, short_period)
        if len(prices) >= long_period:
            indicators["sma_long"] = sma(prices, long_period)
        return indicators


class RsiThresholdSignal(SignalGenerator):
    """
    RSI threshold crossing.

    Fires once when RSI drops under the oversold level (BUY) or rises over
    the overbought level (SELL).
    """

    key = "rsi_basic"

    def required_history(self, params: Dict[str, float]) -> int:
        return int(self.param(params, "rsi_period")) + 1

    def generate(self, prices, params, memory):
        period = int(self.param(params, "rsi_period"))
        overbought = self.param(params, "rsi_overbought")
        oversold = self.param(params, "rsi_oversold")
        if len(prices) < period + 1:
            return Signal.HOLD

        current = rsi(prices, period)
        signal = Signal.HOLD
        if current < oversold and memory.last_rsi >= oversold:
            signal = Signal.BUY
        if current > overbought and memory.last_rsi <= overbought:
            signal = Signal.SELL
        memory.last_rsi = current
        return signal


class StochasticSignal(SignalGenerator):
    """Stochastic oscillator level check: BUY under oversold, SELL over overbought."""

    key = "stochastic"

    def required_history(self, params: Dict[str, float]) -> int:
        return int(self.param(params, "period"))

    def generate(self, prices, params, memory):
        period = int(self.param(params, "period"))
        overbought = self.param(params, "overbought")
        oversold = self.param(params, "oversold")
        if len(prices) < period:
            return Signal.HOLD

        k = stochastic(prices, period)
        signal = Signal.HOLD
        if k < oversold:
            signal = Signal.BUY
        if k > overbought:
            signal = Signal.SELL
        return signal


class BollingerSignal(SignalGenerator):
    """Bollinger band touch: BUY at or under the lower band, SELL at or over the upper band."""

    key = "bollinger"

    def required_history(self, params: Dict[str, float]) -> int:
        return int(self.param(params, "period"))

    def generate(self, prices, params, memory):
        period = int(self.param(params, "period"))
        std_dev = self.param(params, "std_dev")
        if len(prices) < period:
            return Signal.HOLD

        upper, _, lower = bollinger_bands(prices, period, std_dev)
        price = prices[-1]
        signal = Signal.HOLD
        if price <= lower:
            signal = Signal.BUY
        # A flat window puts both bands on the price; SELL takes precedence.
        if price >= upper:
            signal = Signal.SELL
        return signal

    def display_indicators(self, prices, params):
        upper, _, lower = bollinger_bands(prices, int(self.param(params, "period")), self.param(params, "std_dev"))
        return {"bollinger_upper": upper, "bollinger_lower": lower}


STRATEGY_REGISTRY: Dict[str, SignalGenerator] = {
    generator.key: generator
    for generator in (
        SmaCrossoverSignal(),
        RsiThresholdSignal(),
        StochasticSignal(),
        BollingerSignal(),
    )
}


def get_signal_generator(key: str) -> SignalGenerator:
    """
    Look up a registered generator.

    Raises:
        KeyError: If no generator is registered under key
    """
    try:
        return STRATEGY_REGISTRY[key]
    except KeyError:
        raise KeyError(f"Unknown strategy: {key}") from None

"""
Trading engine module.

Core components:
- Indicator library
- Signal generators and strategy registry
- Performance counters

The tick loop itself lives in engine.bot_engine and is imported directly.
"""

from engine.signals import (
    Signal,
    IndicatorMemory,
    SignalGenerator,
    STRATEGY_REGISTRY,
    get_signal_generator,
)
from engine.performance import PerformanceTracker

__all__ = [
    "Signal",
    "IndicatorMemory",
    "SignalGenerator",
    "STRATEGY_REGISTRY",
    "get_signal_generator",
    "PerformanceTracker",
]

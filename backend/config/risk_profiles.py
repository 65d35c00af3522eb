"""
Risk Level Configurations.

Maps each risk tier to the fixed quote-currency notional risked per live order:
- Conservative: smallest order size
- Moderate: default order size
- Aggressive: largest order size
"""

from typing import Dict, Any, Union
from enum import Enum


class RiskLevel(str, Enum):
    """Risk level types."""
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


RISK_PROFILES: Dict[str, Dict[str, Any]] = {
    "conservative": {
        "name": "Conservative",
        "description": "Smallest fixed order size per signal",
        "order_notional": 10.0,
    },
    "moderate": {
        "name": "Moderate",
        "description": "Balanced fixed order size per signal",
        "order_notional": 20.0,
    },
    "aggressive": {
        "name": "Aggressive",
        "description": "Largest fixed order size per signal",
        "order_notional": 50.0,
    },
}


def get_risk_profile(level: Union[RiskLevel, str]) -> Dict[str, Any]:
    """
    Get configuration for a risk level.

    Args:
        level: Risk level enum value or its string form

    Returns:
        Configuration dictionary for the level

    Raises:
        ValueError: If level is not recognized
    """
    level_str = level.value if isinstance(level, RiskLevel) else str(level)

    if level_str not in RISK_PROFILES:
        raise ValueError(f"Unknown risk level: {level_str}")

    return RISK_PROFILES[level_str]


def get_order_notional(level: Union[RiskLevel, str]) -> float:
    """Quote-currency amount sized for one order at the given risk level."""
    return float(get_risk_profile(level)["order_notional"])


def get_all_profiles() -> Dict[str, Dict[str, Any]]:
    """
    Get all available risk levels.

    Returns:
        Dictionary mapping level names to their configurations
    """
    return RISK_PROFILES.copy()

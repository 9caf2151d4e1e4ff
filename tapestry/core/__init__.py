"""
Core analytics: Sentinel (threat detection), Horizon (intention analysis)
and Valkyrie (policy-driven response).
"""

from .horizon import IntentionAnalysis, analyze_intentions
from .sentinel import MAX_DEFCON, MIN_DEFCON, Sentinel, SentinelConfig
from .valkyrie import (
    ActionExecutor, NotifyingExecutor, PolicyConfig, Valkyrie,
    default_rules, validate_policy,
)

__all__ = [
    "IntentionAnalysis", "analyze_intentions",
    "MAX_DEFCON", "MIN_DEFCON", "Sentinel", "SentinelConfig",
    "ActionExecutor", "NotifyingExecutor", "PolicyConfig", "Valkyrie",
    "default_rules", "validate_policy",
]

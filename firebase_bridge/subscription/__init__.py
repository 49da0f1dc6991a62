"""Subscription sync engine module."""

from .bridge import BridgeConfig, SubscriptionBridge
from .diff import Diff, DiffCalculator, compute_diff
from .entries import field_identity
from .record import SubscriptionRecord

__all__ = [
    "BridgeConfig",
    "Diff",
    "DiffCalculator",
    "SubscriptionBridge",
    "SubscriptionRecord",
    "compute_diff",
    "field_identity",
]

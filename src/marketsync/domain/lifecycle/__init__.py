"""Lifecycle state machine and the monitor that drives it."""

from __future__ import annotations

from .fsm import TRANSITIONS, allowed_targets, can_transition, validate_transition
from .monitor import LifecycleMonitor, LifecyclePolicy, final_outcome

__all__ = [
    "TRANSITIONS",
    "LifecycleMonitor",
    "LifecyclePolicy",
    "allowed_targets",
    "can_transition",
    "final_outcome",
    "validate_transition",
]

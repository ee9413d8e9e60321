"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EntityState(StrEnum):
    PROPOSED = "proposed"
    APPROVED = "approved"
    ACTIVE = "active"
    RESOLVING = "resolving"
    DISPUTED = "disputed"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({EntityState.FINALIZED, EntityState.CANCELLED})


class VoteType(StrEnum):
    PROPOSAL = "proposal"
    DISPUTE = "dispute"


class Outcome(StrEnum):
    YES = "yes"
    NO = "no"
    INVALID = "invalid"

    def overturned(self) -> Outcome:
        """Return the opposite binary outcome; ``INVALID`` has no opposite."""
        if self is Outcome.YES:
            return Outcome.NO
        if self is Outcome.NO:
            return Outcome.YES
        return self


class Trigger(StrEnum):
    """What caused a lifecycle transition."""

    VOTE_THRESHOLD = "vote_threshold"
    MANUAL = "manual"
    ORACLE = "oracle"
    RESOLUTION_ELAPSED = "resolution_elapsed"
    DISPUTE_WINDOW_ELAPSED = "dispute_window_elapsed"
    DISPUTE_AGGREGATED = "dispute_aggregated"
    ADMINISTRATIVE = "administrative"


class Severity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertType(StrEnum):
    AGGREGATION_SUBMIT_FAILED = "aggregation_submit_failed"
    LIFECYCLE_TRANSITION_FAILED = "lifecycle_transition_failed"
    CIRCUIT_OPEN = "circuit_open"
    ENTITY_STUCK = "entity_stuck"
    STATE_DRIFT = "state_drift"
    LEDGER_ACCOUNT_MISSING = "ledger_account_missing"
    EVENT_PROCESSING_FAILED = "event_processing_failed"


class Channel(StrEnum):
    """Broadcast channels for outbound notifications."""

    ENTITY_STATE_CHANGED = "entity_state_changed"
    TALLY_UPDATED = "tally_updated"

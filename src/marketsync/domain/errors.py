"""Error taxonomy shared by the aggregator, lifecycle monitor and indexer."""

from __future__ import annotations


class MarketSyncError(Exception):
    """Root of all domain errors."""


# Validation ------------------------------------------------------------------


class ValidationError(MarketSyncError):
    """Bad input; rejected synchronously and never retried."""


class EntityNotFoundError(ValidationError):
    def __init__(self, entity_id: str) -> None:
        super().__init__(f"Unknown entity: {entity_id}")
        self.entity_id = entity_id


class IneligibleStateError(ValidationError):
    """The entity is not in a state that accepts the requested operation."""


class InvalidVoterError(ValidationError):
    """The voter id is malformed or the voter holds no qualifying position."""


class DuplicateVoteError(ValidationError):
    def __init__(self, entity_id: str, voter_id: str, vote_type: str) -> None:
        super().__init__(f"Voter {voter_id} already cast a {vote_type} vote on {entity_id}")
        self.entity_id = entity_id
        self.voter_id = voter_id
        self.vote_type = vote_type


class InvalidTransitionError(ValidationError):
    def __init__(self, from_state: str, to_state: str) -> None:
        super().__init__(f"Transition {from_state} -> {to_state} is not allowed")
        self.from_state = from_state
        self.to_state = to_state


# Ledger ----------------------------------------------------------------------


class LedgerError(MarketSyncError):
    """Base for failures talking to the ledger."""


class TransientLedgerError(LedgerError):
    """Network, timeout or RPC availability failure; safe to retry."""


class PersistentLedgerError(LedgerError):
    """The ledger rejected the request (e.g. malformed transaction); never retried."""


class CircuitOpenError(LedgerError):
    """The ledger call was short-circuited by an open circuit breaker."""


# Consistency and coordination ------------------------------------------------


class ConsistencyError(MarketSyncError):
    """Cached state disagrees with ledger truth."""


class LockContentionError(MarketSyncError):
    """The resource is leased by someone else. Benign; callers skip."""

    def __init__(self, resource_key: str) -> None:
        super().__init__(f"Lease already held: {resource_key}")
        self.resource_key = resource_key


class DuplicateEventError(MarketSyncError):
    """A ledger event with this transaction signature is already stored."""

    def __init__(self, signature: str) -> None:
        super().__init__(f"Ledger event already stored: {signature}")
        self.signature = signature


class AuthenticationError(MarketSyncError):
    """An inbound notification failed origin verification."""


class TallyStoreError(MarketSyncError):
    """The tally cache is unreachable; callers fall back to the vote records."""


class EventDecodingError(ValidationError):
    """A stored ledger event payload does not match its declared type."""

"""The market lifecycle state machine."""

from __future__ import annotations

from typing import Final

from marketsync.domain.errors import InvalidTransitionError
from marketsync.domain.model import EntityState, Trigger

_S = EntityState

# (from, to) -> triggers that may cause it. Anything absent is rejected.
TRANSITIONS: Final[dict[tuple[EntityState, EntityState], frozenset[Trigger]]] = {
    (_S.PROPOSED, _S.APPROVED): frozenset({Trigger.VOTE_THRESHOLD}),
    (_S.APPROVED, _S.ACTIVE): frozenset({Trigger.MANUAL}),
    (_S.ACTIVE, _S.RESOLVING): frozenset({Trigger.ORACLE}),
    (_S.RESOLVING, _S.FINALIZED): frozenset({Trigger.RESOLUTION_ELAPSED}),
    (_S.DISPUTED, _S.FINALIZED): frozenset(
        {Trigger.DISPUTE_WINDOW_ELAPSED, Trigger.DISPUTE_AGGREGATED}
    ),
    (_S.PROPOSED, _S.CANCELLED): frozenset({Trigger.ADMINISTRATIVE}),
    (_S.APPROVED, _S.CANCELLED): frozenset({Trigger.ADMINISTRATIVE}),
}


def can_transition(
    from_state: EntityState, to_state: EntityState, trigger: Trigger | None = None
) -> bool:
    triggers = TRANSITIONS.get((from_state, to_state))
    if triggers is None:
        return False
    return trigger is None or trigger in triggers


def validate_transition(
    from_state: EntityState, to_state: EntityState, trigger: Trigger | None = None
) -> None:
    if not can_transition(from_state, to_state, trigger):
        raise InvalidTransitionError(from_state, to_state)


def allowed_targets(state: EntityState) -> frozenset[EntityState]:
    return frozenset(to for (frm, to) in TRANSITIONS if frm is state)

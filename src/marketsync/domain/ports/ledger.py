"""Port for the authoritative ledger."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from marketsync.domain.model import EntityState, Outcome

# Instruction identifiers understood by the governance program.
APPROVE_PROPOSAL: Final = "approve_proposal"
AGGREGATE_DISPUTE_VOTES: Final = "aggregate_dispute_votes"
ACTIVATE_MARKET: Final = "activate_market"
CANCEL_MARKET: Final = "cancel_market"
FINALIZE_MARKET: Final = "finalize_market"


@dataclass(frozen=True, slots=True)
class LedgerAccountState:
    """Canonical snapshot of one market account as the ledger reports it."""

    entity_id: str
    state: EntityState
    slot: int
    proposed_outcome: Outcome | None = None
    final_outcome: Outcome | None = None


@runtime_checkable
class LedgerPort(Protocol):
    """Everything the core needs from the ledger.

    Implementations raise ``TransientLedgerError`` for failures that are safe to
    retry and ``PersistentLedgerError`` for rejections.
    """

    @property
    def program_address(self) -> str: ...

    def submit_signed_instruction(
        self,
        program_address: str,
        instruction_id: str,
        accounts: Sequence[str],
        args: Mapping[str, Any],
    ) -> str: ...

    def read_account_state(self, entity_id: str) -> LedgerAccountState | None: ...

    def read_position(self, entity_id: str, owner: str) -> int: ...

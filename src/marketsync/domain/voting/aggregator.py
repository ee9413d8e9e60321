"""Vote intake and the periodic threshold aggregation sweeps."""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from marketsync.domain.clock import utcnow
from marketsync.domain.errors import (
    DuplicateVoteError,
    EntityNotFoundError,
    InvalidVoterError,
    LedgerError,
    TallyStoreError,
)
from marketsync.domain.leasing import entity_lease_key, hold_lease
from marketsync.domain.lifecycle.fsm import validate_transition
from marketsync.domain.model import (
    AggregationResult,
    AlertType,
    Channel,
    EntityState,
    Severity,
    Tally,
    TransitionAttempt,
    Trigger,
    VoteRecord,
    VoteType,
)
from marketsync.domain.ports.ledger import AGGREGATE_DISPUTE_VOTES, APPROVE_PROPOSAL
from marketsync.domain.resilience import BackoffPolicy, retry_transient
from marketsync.domain.sweeps import SweepGuard, SweepSummary, fan_out
from marketsync.domain.voting.eligibility import (
    ensure_accepts_votes,
    validate_voter_id,
    voting_state,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from marketsync.domain.clock import Clock
    from marketsync.domain.ports import (
        Alerter,
        GovernanceUnitOfWork,
        LeaseManager,
        LedgerPort,
        Publisher,
        TallyStore,
        UnitOfWorkFactory,
    )

log = logging.getLogger(__name__)

_INSTRUCTIONS = {
    VoteType.PROPOSAL: APPROVE_PROPOSAL,
    VoteType.DISPUTE: AGGREGATE_DISPUTE_VOTES,
}


@dataclass(frozen=True, slots=True)
class VotingPolicy:
    proposal_threshold_bps: int = 7000
    dispute_threshold_bps: int = 6000
    min_votes_required: int = 1
    lease_ttl_seconds: float = 60.0
    max_workers: int = 4

    def threshold_for(self, vote_type: VoteType) -> int:
        if vote_type is VoteType.PROPOSAL:
            return self.proposal_threshold_bps
        return self.dispute_threshold_bps


class VoteAggregator:
    """Accepts votes and turns winning tallies into ledger instructions.

    Every entity is processed under its lease so that reading the tally,
    deciding, submitting and recording happen at most once concurrently.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: UnitOfWorkFactory,
        ledger: LedgerPort,
        tally_store: TallyStore,
        leases: LeaseManager,
        publisher: Publisher,
        alerter: Alerter,
        policy: VotingPolicy | None = None,
        backoff: BackoffPolicy | None = None,
        clock: Clock = utcnow,
        sleep: Callable[[float], None] = time.sleep,
        holder: str | None = None,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self._ledger = ledger
        self._tally_store = tally_store
        self._leases = leases
        self._publisher = publisher
        self._alerter = alerter
        self.policy = policy or VotingPolicy()
        self.backoff = backoff or BackoffPolicy()
        self._clock = clock
        self._sleep = sleep
        self.holder = holder or f"aggregator-{uuid.uuid4().hex[:12]}"
        self._guards = {vote_type: SweepGuard(f"{vote_type}-sweep") for vote_type in VoteType}

    # Intake -----------------------------------------------------------------

    def submit_vote(self, entity_id: str, voter_id: str, vote_type: VoteType, value: bool) -> Tally:
        """Validate and store one vote; return the updated tally."""

        validate_voter_id(voter_id)
        with self._uow_factory() as uow:
            entity = uow.repositories.entities.get(entity_id)
            if entity is None:
                raise EntityNotFoundError(entity_id)
            ensure_accepts_votes(entity, vote_type)
            if uow.repositories.votes.exists(entity_id, voter_id, vote_type):
                raise DuplicateVoteError(entity_id, voter_id, vote_type)

        weight = self._vote_weight(entity_id, voter_id, vote_type)

        with self._uow_factory() as uow:
            uow.repositories.votes.add(
                VoteRecord(
                    entity_id=entity_id,
                    voter_id=voter_id,
                    vote_type=vote_type,
                    value=value,
                    weight=weight,
                    created_at=self._clock(),
                )
            )
            uow.commit()

        tally = self._count_vote(entity_id, voter_id, vote_type, value=value, weight=weight)
        log.info(
            "Vote stored: entity=%s type=%s value=%s weight=%d tally=%d/%d",
            entity_id,
            vote_type,
            value,
            weight,
            tally.yes,
            tally.no,
        )
        self._publisher.publish(
            Channel.TALLY_UPDATED,
            {
                "entity_id": entity_id,
                "vote_type": str(vote_type),
                "yes": tally.yes,
                "no": tally.no,
                "voters": tally.voters,
                "percentage_bps": tally.percentage_bps,
            },
        )
        return tally

    def get_tally(self, entity_id: str, vote_type: VoteType) -> Tally:
        with self._uow_factory() as uow:
            return self._current_tally(uow, entity_id, vote_type)

    def _vote_weight(self, entity_id: str, voter_id: str, vote_type: VoteType) -> int:
        if vote_type is VoteType.PROPOSAL:
            return 1
        # Trading is closed once a market leaves Active, so the position read
        # now equals the stake held when the dispute opened.
        size = self._ledger.read_position(entity_id, voter_id)
        if size <= 0:
            raise InvalidVoterError(f"{voter_id} holds no position in {entity_id}")
        return size

    def _count_vote(
        self, entity_id: str, voter_id: str, vote_type: VoteType, *, value: bool, weight: int
    ) -> Tally:
        try:
            tally = self._tally_store.record_vote(
                entity_id, vote_type, voter_id, value=value, weight=weight
            )
        except TallyStoreError as exc:
            log.warning("Tally store unavailable, counting from vote records: %s", exc)
        else:
            if tally is not None:
                return tally
        # The vote is committed, so a rebuild from the records already counts it.
        with self._uow_factory() as uow:
            return self._rebuild_tally(uow, entity_id, vote_type)

    def _current_tally(
        self, uow: GovernanceUnitOfWork, entity_id: str, vote_type: VoteType
    ) -> Tally:
        try:
            cached = self._tally_store.read(entity_id, vote_type)
        except TallyStoreError as exc:
            log.warning("Tally store unavailable, counting from vote records: %s", exc)
            return uow.repositories.votes.tally(entity_id, vote_type)
        if cached is not None:
            return cached
        return self._rebuild_tally(uow, entity_id, vote_type)

    def _rebuild_tally(
        self, uow: GovernanceUnitOfWork, entity_id: str, vote_type: VoteType
    ) -> Tally:
        votes = uow.repositories.votes
        tally = votes.tally(entity_id, vote_type)
        try:
            written = self._tally_store.populate(
                entity_id, vote_type, tally, votes.voters(entity_id, vote_type)
            )
        except TallyStoreError as exc:
            log.warning("Could not repopulate tally store for %s: %s", entity_id, exc)
        else:
            if written:
                log.debug("Rebuilt %s tally for %s from vote records", vote_type, entity_id)
            else:
                log.debug("%s tally for %s was repopulated concurrently", vote_type, entity_id)
        return tally

    # Sweeps -----------------------------------------------------------------

    def run_proposal_sweep(self) -> SweepSummary:
        return self.run_sweep(VoteType.PROPOSAL)

    def run_dispute_sweep(self) -> SweepSummary:
        return self.run_sweep(VoteType.DISPUTE)

    def run_sweep(self, vote_type: VoteType) -> SweepSummary:
        summary = SweepSummary(name=f"{vote_type}-aggregation")
        guard = self._guards[vote_type]
        if not guard.try_enter():
            log.warning("%s still running, skipping this run", summary.name)
            summary.overlapped = True
            return summary
        try:
            with self._uow_factory() as uow:
                candidates = uow.repositories.entities.list_with_votes(
                    voting_state(vote_type), vote_type
                )
            log.info("%s: %d candidate(s)", summary.name, len(candidates))
            fan_out(
                summary,
                candidates,
                lambda entity_id: self.aggregate(entity_id, vote_type),
                max_workers=self.policy.max_workers,
            )
        finally:
            guard.exit()
        log.info("%s", summary)
        return summary

    def aggregate(self, entity_id: str, vote_type: VoteType) -> str | None:
        """Aggregate one entity's round under its lease.

        Returns a short outcome, or ``None`` when the entity is no longer
        eligible. Raises ``LockContentionError`` when the lease is taken and
        re-raises ledger failures after recording them.
        """

        with hold_lease(
            self._leases,
            entity_lease_key(entity_id),
            self.holder,
            self.policy.lease_ttl_seconds,
        ):
            return self._aggregate_locked(entity_id, vote_type)

    def _aggregate_locked(self, entity_id: str, vote_type: VoteType) -> str | None:
        threshold = self.policy.threshold_for(vote_type)
        with self._uow_factory() as uow:
            entity = uow.repositories.entities.get(entity_id)
            if entity is None or entity.state is not voting_state(vote_type):
                return None
            if vote_type is VoteType.DISPUTE and entity.dispute_aggregated_at is not None:
                return None
            tally = self._current_tally(uow, entity_id, vote_type)
            met = tally.meets(threshold, min_votes=self.policy.min_votes_required)
            if not met:
                entity.record_tally(vote_type, tally)
                uow.repositories.aggregation_results.add(
                    self._result(entity_id, vote_type, tally, threshold, met=False)
                )
                uow.commit()
                log.info(
                    "%s %s below threshold: %d < %d bps",
                    vote_type,
                    entity_id,
                    tally.percentage_bps,
                    threshold,
                )
                return "below_threshold"

        instruction = _INSTRUCTIONS[vote_type]
        try:
            signature = retry_transient(
                lambda: self._ledger.submit_signed_instruction(
                    self._ledger.program_address,
                    instruction,
                    [entity_id],
                    {"yes_votes": tally.yes, "no_votes": tally.no},
                ),
                self.backoff,
                sleep=self._sleep,
                label=f"{instruction}({entity_id})",
            )
        except LedgerError as exc:
            self._record_submit_failure(entity_id, vote_type, tally, threshold, exc)
            raise

        now = self._clock()
        with self._uow_factory() as uow:
            uow.repositories.aggregation_results.add(
                self._result(entity_id, vote_type, tally, threshold, met=True, signature=signature)
            )
            entity = uow.repositories.entities.get(entity_id)
            if entity is None:
                uow.commit()
                return "submitted"
            entity.record_tally(vote_type, tally)
            if vote_type is VoteType.PROPOSAL and entity.state is EntityState.PROPOSED:
                validate_transition(entity.state, EntityState.APPROVED)
                previous = entity.advance(EntityState.APPROVED, at=now)
                uow.repositories.transition_attempts.add(
                    TransitionAttempt(
                        entity_id=entity_id,
                        from_state=previous,
                        to_state=EntityState.APPROVED,
                        trigger=Trigger.VOTE_THRESHOLD,
                        success=True,
                        ledger_tx_signature=signature,
                        attempted_at=now,
                    )
                )
            elif vote_type is VoteType.DISPUTE:
                entity.dispute_aggregated_at = now
                entity.updated_at = now
            uow.commit()

        log.info("%s %s met threshold, submitted %s", vote_type, entity_id, signature)
        if vote_type is VoteType.PROPOSAL:
            self._publisher.publish(
                Channel.ENTITY_STATE_CHANGED,
                {
                    "entity_id": entity_id,
                    "from_state": str(EntityState.PROPOSED),
                    "to_state": str(EntityState.APPROVED),
                    "signature": signature,
                },
            )
            return "approved"
        return "dispute_aggregated"

    def _record_submit_failure(
        self,
        entity_id: str,
        vote_type: VoteType,
        tally: Tally,
        threshold: int,
        exc: LedgerError,
    ) -> None:
        with self._uow_factory() as uow:
            uow.repositories.aggregation_results.add(
                self._result(entity_id, vote_type, tally, threshold, met=True, error=str(exc))
            )
            uow.commit()
        self._alerter.raise_alert(
            AlertType.AGGREGATION_SUBMIT_FAILED,
            Severity.CRITICAL,
            {
                "entity_id": entity_id,
                "vote_type": str(vote_type),
                "yes": tally.yes,
                "no": tally.no,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )

    def _result(
        self,
        entity_id: str,
        vote_type: VoteType,
        tally: Tally,
        threshold: int,
        *,
        met: bool,
        signature: str | None = None,
        error: str | None = None,
    ) -> AggregationResult:
        return AggregationResult(
            entity_id=entity_id,
            vote_type=vote_type,
            yes_count=tally.yes,
            no_count=tally.no,
            percentage_bps=tally.percentage_bps,
            threshold_bps=threshold,
            threshold_met=met,
            ledger_tx_signature=signature,
            error=error,
            created_at=self._clock(),
        )

"""Pydantic models for pushed ledger transaction notifications."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from marketsync.domain.model import EntityState, Outcome

# 9999-12-31T23:59:59Z, the last second a datetime can hold.
MAX_BLOCK_TIME = 253_402_300_799


class WebhookBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LedgerNotification(WebhookBaseModel):
    """One decoded program event inside a delivered transaction.

    ``timestamp`` is the block time in Unix seconds when the provider knows it.
    """

    signature: str = Field(min_length=1)
    slot: int = Field(ge=0)
    event_type: str = Field(alias="type", min_length=1)
    market: str | None = None
    timestamp: int | None = Field(default=None, ge=0, le=MAX_BLOCK_TIME)
    data: dict[str, Any] = Field(default_factory=dict)


NOTIFICATION_BATCH: TypeAdapter[list[LedgerNotification]] = TypeAdapter(list[LedgerNotification])


class AcceptResponse(WebhookBaseModel):
    received: int
    accepted: int
    duplicates: int


# Event data payloads --------------------------------------------------------


def _outcome(value: object) -> object:
    # program events carry booleans for binary outcomes
    if value is True:
        return Outcome.YES
    if value is False:
        return Outcome.NO
    if isinstance(value, str):
        return value.lower()
    return value


class ApprovedData(WebhookBaseModel):
    yes_votes: int | None = Field(default=None, alias="yesVotes", ge=0)
    no_votes: int | None = Field(default=None, alias="noVotes", ge=0)


class ResolvedData(WebhookBaseModel):
    proposed_outcome: Outcome = Field(alias="proposedOutcome")

    @field_validator("proposed_outcome", mode="before")
    @classmethod
    def _normalise(cls, value: object) -> object:
        return _outcome(value)


class DisputeAggregatedData(WebhookBaseModel):
    yes_votes: int = Field(alias="yesVotes", ge=0)
    no_votes: int = Field(alias="noVotes", ge=0)


class FinalizedData(WebhookBaseModel):
    final_outcome: Outcome = Field(alias="finalOutcome")

    @field_validator("final_outcome", mode="before")
    @classmethod
    def _normalise(cls, value: object) -> object:
        return _outcome(value)


class StateChangedData(WebhookBaseModel):
    state: EntityState
    proposed_outcome: Outcome | None = Field(default=None, alias="proposedOutcome")
    final_outcome: Outcome | None = Field(default=None, alias="finalOutcome")

    @field_validator("state", mode="before")
    @classmethod
    def _lower_state(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value

    @field_validator("proposed_outcome", "final_outcome", mode="before")
    @classmethod
    def _normalise(cls, value: object) -> object:
        return _outcome(value)

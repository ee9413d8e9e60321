"""Vote tallies and the basis-point arithmetic applied to them."""

from __future__ import annotations

from dataclasses import dataclass

BPS_SCALE = 10_000


def percentage_bps(yes: int, no: int) -> int:
    """Return ``floor(yes * 10000 / (yes + no))``; zero votes yield 0."""

    total = yes + no
    if total <= 0:
        return 0
    return (yes * BPS_SCALE) // total


@dataclass(frozen=True, slots=True)
class Tally:
    """Weighted yes/no totals for one (entity, vote type) round."""

    yes: int = 0
    no: int = 0
    voters: int = 0

    @property
    def total(self) -> int:
        return self.yes + self.no

    @property
    def percentage_bps(self) -> int:
        return percentage_bps(self.yes, self.no)

    def meets(self, threshold_bps: int, *, min_votes: int = 1) -> bool:
        """Return whether the tally reaches ``threshold_bps`` (inclusive).

        An empty tally never meets a threshold, whatever ``min_votes`` says.
        """

        if self.total == 0 or self.voters < min_votes:
            return False
        return self.percentage_bps >= threshold_bps

    def with_vote(self, *, value: bool, weight: int) -> Tally:
        if value:
            return Tally(yes=self.yes + weight, no=self.no, voters=self.voters + 1)
        return Tally(yes=self.yes, no=self.no + weight, voters=self.voters + 1)

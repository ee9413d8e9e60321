"""Tally cache adapters: Redis for shared deployments, in-process for a single worker."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

import redis

from marketsync.domain.errors import TallyStoreError
from marketsync.domain.model import Tally

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import timedelta

    from marketsync.domain.model import VoteType

log = logging.getLogger(__name__)

_YES = "yes"
_NO = "no"

# KEYS: counts hash, voters set. ARGV: voter, counter field, weight, ttl.
# Nil when the round is not cached; the caller rebuilds it from vote records.
_RECORD_VOTE = """
if redis.call('EXISTS', KEYS[1]) == 0 then
    return false
end
if redis.call('SADD', KEYS[2], ARGV[1]) == 1 then
    redis.call('HINCRBY', KEYS[1], ARGV[2], ARGV[3])
end
redis.call('EXPIRE', KEYS[1], ARGV[4])
redis.call('EXPIRE', KEYS[2], ARGV[4])
return {
    redis.call('HGET', KEYS[1], 'yes') or '0',
    redis.call('HGET', KEYS[1], 'no') or '0',
    redis.call('SCARD', KEYS[2]),
}
"""

# KEYS: counts hash, voters set. ARGV: ttl, yes, no, voters...
# Leaves an already cached round alone so a stale rebuild cannot drop live votes.
_POPULATE = """
if redis.call('EXISTS', KEYS[1]) == 1 then
    return 0
end
redis.call('DEL', KEYS[2])
redis.call('HSET', KEYS[1], 'yes', ARGV[2], 'no', ARGV[3])
redis.call('EXPIRE', KEYS[1], ARGV[1])
if #ARGV > 3 then
    redis.call('SADD', KEYS[2], unpack(ARGV, 4))
    redis.call('EXPIRE', KEYS[2], ARGV[1])
end
return 1
"""


class RedisTallyStore:
    """Counters in a hash and voters in a set, both expiring with the voting window.

    Keys are ``{prefix}:tally:{entity}:{vote_type}`` and the same with
    ``:voters`` appended. Both mutations run as server-side scripts, so the
    dedup set and the counters never disagree.
    """

    def __init__(
        self, client: redis.Redis, *, ttl: timedelta, key_prefix: str = "marketsync"
    ) -> None:
        self._client = client
        self._ttl_seconds = max(int(ttl.total_seconds()), 1)
        self._prefix = key_prefix
        self._record_vote = client.register_script(_RECORD_VOTE)
        self._populate = client.register_script(_POPULATE)

    @classmethod
    def from_url(
        cls, url: str, *, ttl: timedelta, key_prefix: str = "marketsync"
    ) -> RedisTallyStore:
        return cls(redis.Redis.from_url(url, decode_responses=True), ttl=ttl, key_prefix=key_prefix)

    def _keys(self, entity_id: str, vote_type: VoteType) -> tuple[str, str]:
        base = f"{self._prefix}:tally:{entity_id}:{vote_type}"
        return base, f"{base}:voters"

    def record_vote(
        self, entity_id: str, vote_type: VoteType, voter_id: str, *, value: bool, weight: int
    ) -> Tally | None:
        keys = list(self._keys(entity_id, vote_type))
        try:
            result = self._record_vote(
                keys=keys,
                args=[voter_id, _YES if value else _NO, weight, self._ttl_seconds],
            )
        except redis.RedisError as exc:
            raise TallyStoreError(f"Recording vote for {entity_id} failed: {exc}") from exc
        if result is None:
            return None
        yes, no, voters = result
        return Tally(yes=int(yes), no=int(no), voters=int(voters))

    def read(self, entity_id: str, vote_type: VoteType) -> Tally | None:
        counts_key, voters_key = self._keys(entity_id, vote_type)
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.hgetall(counts_key)
            pipe.scard(voters_key)
            counts, voters = pipe.execute()
        except redis.RedisError as exc:
            raise TallyStoreError(f"Reading tally for {entity_id} failed: {exc}") from exc
        if not counts:
            return None
        return _tally_from(counts, voters)

    def populate(
        self, entity_id: str, vote_type: VoteType, tally: Tally, voters: list[str]
    ) -> bool:
        keys = list(self._keys(entity_id, vote_type))
        try:
            written = self._populate(
                keys=keys, args=[self._ttl_seconds, tally.yes, tally.no, *voters]
            )
        except redis.RedisError as exc:
            raise TallyStoreError(f"Writing tally for {entity_id} failed: {exc}") from exc
        return bool(written)

    def has_voted(self, entity_id: str, vote_type: VoteType, voter_id: str) -> bool:
        _, voters_key = self._keys(entity_id, vote_type)
        try:
            return bool(self._client.sismember(voters_key, voter_id))
        except redis.RedisError as exc:
            raise TallyStoreError(f"Checking voter for {entity_id} failed: {exc}") from exc


def _tally_from(counts: dict[str, str], voters: int) -> Tally:
    return Tally(yes=int(counts.get(_YES, 0)), no=int(counts.get(_NO, 0)), voters=int(voters))


class _Round:
    __slots__ = ("expires_at", "no", "voters", "yes")

    def __init__(self, expires_at: float) -> None:
        self.yes = 0
        self.no = 0
        self.voters: set[str] = set()
        self.expires_at = expires_at

    def tally(self) -> Tally:
        return Tally(yes=self.yes, no=self.no, voters=len(self.voters))


class InMemoryTallyStore:
    """Process-local tally cache with the same expiry semantics as the Redis store."""

    def __init__(
        self, *, ttl: timedelta, monotonic: Callable[[], float] = time.monotonic
    ) -> None:
        self._ttl_seconds = ttl.total_seconds()
        self._monotonic = monotonic
        self._rounds: dict[tuple[str, VoteType], _Round] = {}
        self._lock = threading.Lock()

    def _live(self, key: tuple[str, VoteType]) -> _Round | None:
        current = self._rounds.get(key)
        if current is not None and current.expires_at <= self._monotonic():
            del self._rounds[key]
            return None
        return current

    def record_vote(
        self, entity_id: str, vote_type: VoteType, voter_id: str, *, value: bool, weight: int
    ) -> Tally | None:
        with self._lock:
            current = self._live((entity_id, vote_type))
            if current is None:
                return None
            if voter_id not in current.voters:
                current.voters.add(voter_id)
                if value:
                    current.yes += weight
                else:
                    current.no += weight
            current.expires_at = self._monotonic() + self._ttl_seconds
            return current.tally()

    def read(self, entity_id: str, vote_type: VoteType) -> Tally | None:
        with self._lock:
            current = self._live((entity_id, vote_type))
            return None if current is None else current.tally()

    def populate(
        self, entity_id: str, vote_type: VoteType, tally: Tally, voters: list[str]
    ) -> bool:
        key = (entity_id, vote_type)
        with self._lock:
            if self._live(key) is not None:
                return False
            fresh = self._rounds[key] = _Round(self._monotonic() + self._ttl_seconds)
            fresh.yes = tally.yes
            fresh.no = tally.no
            fresh.voters = set(voters)
            return True

    def has_voted(self, entity_id: str, vote_type: VoteType, voter_id: str) -> bool:
        with self._lock:
            current = self._live((entity_id, vote_type))
            return current is not None and voter_id in current.voters

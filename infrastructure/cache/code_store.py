"""Pending one-time code stores.

A store maps a subject key ``(subject_id, method)`` to at most one pending
code with a fixed TTL. Codes are single use: a successful verify consumes the
entry, an expired entry is evicted the first time it is read, and a new issue
replaces whatever was pending for the same key.

Two implementations share the PendingCodeStore protocol:

  InMemoryCodeStore: process-local dict behind an asyncio.Lock. Correct only
                      when a single process serves every request for a subject.
  RedisCodeStore:    shared across processes. Check-and-consume runs as one
                      Lua script so concurrent verifiers cannot both succeed.

Expiry is checked lazily on read; nothing schedules per-entry timers.
"""

from __future__ import annotations

import asyncio
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional, Protocol, Union, runtime_checkable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from shared.logging import get_logger

log = get_logger(__name__)

DEFAULT_TTL_SECONDS = 600
DEFAULT_MAX_FAILED_ATTEMPTS = 5


class CodeMethod(str, Enum):
    """Channel a one-time code is delivered through."""

    EMAIL = "EMAIL"
    SMS = "SMS"


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def method_name(method: Union[CodeMethod, str]) -> str:
    return method.value if isinstance(method, CodeMethod) else str(method)


def subject_key(subject_id: str, method: Union[CodeMethod, str]) -> str:
    return f"mfa_code:{subject_id}:{method_name(method)}"


@dataclass
class PendingCode:
    code: str
    issued_at: datetime
    expires_at: datetime
    failed_attempts: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at


@runtime_checkable
class PendingCodeStore(Protocol):
    async def issue(
        self, subject_id: str, method: Union[CodeMethod, str], code: str
    ) -> PendingCode: ...

    async def verify(
        self, subject_id: str, method: Union[CodeMethod, str], submitted: str
    ) -> bool: ...

    async def cancel(
        self,
        subject_id: str,
        method: Union[CodeMethod, str],
        code: Optional[str] = None,
    ) -> None: ...

    async def purge_expired(self) -> int: ...

    async def aclose(self) -> None: ...


def _codes_match(expected: str, submitted: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), submitted.encode("utf-8"))


class InMemoryCodeStore:
    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_failed_attempts: Optional[int] = DEFAULT_MAX_FAILED_ATTEMPTS,
        clock: Clock = utc_now,
    ) -> None:
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_failed_attempts = max_failed_attempts
        self._clock = clock
        self._entries: dict[str, PendingCode] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    async def issue(
        self, subject_id: str, method: Union[CodeMethod, str], code: str
    ) -> PendingCode:
        now = self._clock()
        entry = PendingCode(code=code, issued_at=now, expires_at=now + self.ttl)
        async with self._lock:
            self._entries[subject_key(subject_id, method)] = entry
        return entry

    async def verify(
        self, subject_id: str, method: Union[CodeMethod, str], submitted: str
    ) -> bool:
        key = subject_key(subject_id, method)
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False

            if entry.is_expired(self._clock()):
                del self._entries[key]
                return False

            if _codes_match(entry.code, submitted):
                del self._entries[key]
                return True

            entry.failed_attempts += 1
            if (
                self.max_failed_attempts is not None
                and entry.failed_attempts >= self.max_failed_attempts
            ):
                del self._entries[key]
                log.warning(
                    "pending_code_attempts_exhausted",
                    subject_id=subject_id,
                    attempts=entry.failed_attempts,
                )
            return False

    async def cancel(
        self,
        subject_id: str,
        method: Union[CodeMethod, str],
        code: Optional[str] = None,
    ) -> None:
        """Drop the pending code. With *code*, only if it is still the pending one."""
        key = subject_key(subject_id, method)
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return
            if code is None or _codes_match(entry.code, code):
                del self._entries[key]

    async def purge_expired(self) -> int:
        now = self._clock()
        async with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for k in expired:
                del self._entries[k]
        return len(expired)

    async def aclose(self) -> None:
        async with self._lock:
            self._entries.clear()


# Return values: 1 consumed, 0 absent, -1 expired, -2 mismatch, -3 exhausted
_VERIFY_SCRIPT = """
local raw = redis.call('GET', KEYS[1])
if not raw then
  return 0
end
local entry = cjson.decode(raw)
if tonumber(ARGV[2]) > tonumber(entry['expires_at']) then
  redis.call('DEL', KEYS[1])
  return -1
end
if entry['code'] == ARGV[1] then
  redis.call('DEL', KEYS[1])
  return 1
end
entry['failed_attempts'] = (tonumber(entry['failed_attempts']) or 0) + 1
local max_attempts = tonumber(ARGV[3])
if max_attempts > 0 and entry['failed_attempts'] >= max_attempts then
  redis.call('DEL', KEYS[1])
  return -3
end
local ttl = redis.call('PTTL', KEYS[1])
if ttl > 0 then
  redis.call('SET', KEYS[1], cjson.encode(entry), 'PX', ttl)
end
return -2
"""

# Deletes the entry only while it still holds ARGV[1]; returns 1 if deleted
_CANCEL_SCRIPT = """
local raw = redis.call('GET', KEYS[1])
if not raw then
  return 0
end
if cjson.decode(raw)['code'] == ARGV[1] then
  return redis.call('DEL', KEYS[1])
end
return 0
"""


def _to_epoch_ms(value: datetime) -> int:
    return int(value.timestamp() * 1000)


class RedisCodeStore:
    """Redis-backed store for deployments with more than one server process.

    Entries are JSON with epoch-millisecond timestamps, written with a PX
    expiry so Redis sweeps abandoned codes on its own. The redis client is
    owned by the caller; aclose() does not close it.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_failed_attempts: Optional[int] = DEFAULT_MAX_FAILED_ATTEMPTS,
        clock: Clock = utc_now,
    ) -> None:
        self._redis = redis_client
        self.ttl = timedelta(seconds=ttl_seconds)
        self.max_failed_attempts = max_failed_attempts
        self._clock = clock

    async def issue(
        self, subject_id: str, method: Union[CodeMethod, str], code: str
    ) -> PendingCode:
        now = self._clock()
        entry = PendingCode(code=code, issued_at=now, expires_at=now + self.ttl)
        payload = json.dumps(
            {
                "code": code,
                "issued_at": _to_epoch_ms(entry.issued_at),
                "expires_at": _to_epoch_ms(entry.expires_at),
                "failed_attempts": 0,
            }
        )
        try:
            await self._redis.set(
                subject_key(subject_id, method),
                payload,
                px=int(self.ttl.total_seconds() * 1000),
            )
        except RedisError as e:
            log.error(
                "pending_code_issue_failed",
                subject_id=subject_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise
        return entry

    async def verify(
        self, subject_id: str, method: Union[CodeMethod, str], submitted: str
    ) -> bool:
        try:
            result = await self._redis.eval(
                _VERIFY_SCRIPT,
                1,
                subject_key(subject_id, method),
                submitted,
                _to_epoch_ms(self._clock()),
                self.max_failed_attempts or 0,
            )
        except RedisError as e:
            # Fail closed: an unreachable store never validates a code
            log.error(
                "pending_code_verify_failed",
                subject_id=subject_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if int(result) == -3:
            log.warning("pending_code_attempts_exhausted", subject_id=subject_id)
        return int(result) == 1

    async def cancel(
        self,
        subject_id: str,
        method: Union[CodeMethod, str],
        code: Optional[str] = None,
    ) -> None:
        key = subject_key(subject_id, method)
        try:
            if code is None:
                await self._redis.delete(key)
            else:
                await self._redis.eval(_CANCEL_SCRIPT, 1, key, code)
        except RedisError as e:
            log.error(
                "pending_code_cancel_failed",
                subject_id=subject_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def purge_expired(self) -> int:
        # Redis evicts entries itself once their PX expiry passes
        return 0

    async def aclose(self) -> None:
        return None

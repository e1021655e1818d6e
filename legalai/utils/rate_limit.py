import asyncio
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional

from legalai.errors import QuotaExceeded
from legalai.utils.clock import Clock, utcnow
from legalai.utils.logger import logger


@dataclass(frozen=True)
class Identity:
    """Who a request is counted against: a source IP or an authenticated user id."""
    key: str
    authenticated: bool = False


@dataclass(frozen=True)
class QuotaPolicy:
    limit: int
    window: timedelta
    wait_unit: timedelta = timedelta(minutes=1)
    label: str = "users"
    action: str = "Upload"

    @property
    def unit_name(self) -> str:
        return "hours" if self.wait_unit >= timedelta(hours=1) else "minutes"

    def describe(self) -> str:
        hours = self.window.total_seconds() / 3600
        if hours == 24:
            return f"{self.limit} per day"
        if hours >= 1 and hours.is_integer():
            return f"{self.limit} every {int(hours)} hours"
        return f"{self.limit} every {int(self.window.total_seconds() // 60)} minutes"


@dataclass
class UsageRecord:
    count: int
    timestamp: datetime
    is_authenticated: bool


@dataclass(frozen=True)
class QuotaStatus:
    used: int
    limit: int
    resets_at: datetime

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)

    def to_dict(self) -> dict:
        return {
            "used": self.used,
            "limit": self.limit,
            "remaining": self.remaining,
            "resetsAt": self.resets_at.isoformat(),
        }


class QuotaTracker:
    """
    In-memory per-identity quota over a rolling window that starts at first use.

    Anonymous and authenticated identities get separate policies. Counters live
    only in this process and are lost on restart; put them in Redis if the app
    ever runs on more than one node.
    """
    def __init__(self, anonymous: QuotaPolicy, authenticated: QuotaPolicy, clock: Clock = utcnow):
        self.anonymous = anonymous
        self.authenticated = authenticated
        self.clock = clock
        self._store: Dict[str, UsageRecord] = {}
        self._lock = threading.Lock()
        self._sweeper: Optional[asyncio.Task] = None

    def policy_for(self, authenticated: bool) -> QuotaPolicy:
        return self.authenticated if authenticated else self.anonymous

    def _record(self, identity: Identity, now: datetime) -> UsageRecord:
        """Returns the record for `identity` with the lazy window reset applied. Caller holds the lock."""
        record = self._store.get(identity.key)
        if record is None:
            record = UsageRecord(count=0, timestamp=now, is_authenticated=identity.authenticated)
            self._store[identity.key] = record
            return record

        if record.is_authenticated != identity.authenticated:
            # An IP and a user id never share a key, but a key must not carry the wrong policy
            record.is_authenticated = identity.authenticated

        window = self.policy_for(record.is_authenticated).window
        if now - record.timestamp >= window:
            record.count = 0
            record.timestamp = now
        return record

    def _status(self, record: UsageRecord, policy: QuotaPolicy) -> QuotaStatus:
        return QuotaStatus(used=record.count, limit=policy.limit, resets_at=record.timestamp + policy.window)

    def consume(self, identity: Identity) -> QuotaStatus:
        """Takes one unit of quota, or raises QuotaExceeded with the wait until the window resets."""
        policy = self.policy_for(identity.authenticated)
        with self._lock:
            now = self.clock()
            record = self._record(identity, now)

            if record.count >= policy.limit:
                time_left = policy.window - (now - record.timestamp)
                wait_time = math.ceil(time_left / policy.wait_unit)
                raise QuotaExceeded(
                    wait_time=wait_time,
                    unit=policy.unit_name,
                    limit=policy.limit,
                    message=f"{policy.action} limit reached for {policy.label} ({policy.describe()}). "
                            f"Please wait {wait_time} {policy.unit_name}.",
                )

            # The window start is only moved by a reset, never by activity
            record.count += 1
            return self._status(record, policy)

    def refund(self, identity: Identity) -> None:
        """Gives back a unit taken by consume() when the operation it paid for did not happen."""
        with self._lock:
            record = self._store.get(identity.key)
            if record is not None and record.count > 0:
                record.count -= 1

    def reclaim(self, identity: Identity) -> QuotaStatus:
        """A removed document returns one unit of quota and restarts the window."""
        policy = self.policy_for(identity.authenticated)
        with self._lock:
            now = self.clock()
            record = self._record(identity, now)
            record.count = max(record.count - 1, 0)
            record.timestamp = now
            return self._status(record, policy)

    def status(self, identity: Identity) -> QuotaStatus:
        """Read-only view; never creates or mutates a record."""
        policy = self.policy_for(identity.authenticated)
        with self._lock:
            now = self.clock()
            record = self._store.get(identity.key)
            if record is None or now - record.timestamp >= policy.window:
                return QuotaStatus(used=0, limit=policy.limit, resets_at=now + policy.window)
            return self._status(record, policy)

    def sweep(self) -> int:
        """Evicts records idle for at least twice their window. Returns how many were removed."""
        with self._lock:
            now = self.clock()
            stale = [
                key for key, record in self._store.items()
                if now - record.timestamp >= 2 * self.policy_for(record.is_authenticated).window
            ]
            for key in stale:
                del self._store[key]
        if stale:
            logger.info(f"Quota sweep evicted {len(stale)} stale entries ({len(self)} remaining)")
        return len(stale)

    async def _sweep_forever(self, interval: float):
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception as e:
                logger.error(f"Quota sweep failed: {str(e)}")

    def start_sweeper(self, interval: float = 3600) -> asyncio.Task:
        """Schedules the periodic sweep on the running loop. Cancel the task (or call stop_sweeper) to end it."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(self._sweep_forever(interval))
        return self._sweeper

    async def stop_sweeper(self):
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        return key in self._store

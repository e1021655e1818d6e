from datetime import datetime, timezone
from typing import Callable

# Anything returning a timezone-aware UTC datetime can be injected as a clock.
Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

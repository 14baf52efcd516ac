"""Flag price data whose newest observation is too old to trust."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from dealengine.config import settings
from dealengine.ingest.base import RawListing


@dataclass(frozen=True)
class Freshness:
    last_checked_overall: Optional[datetime]
    is_stale: bool


def relative_time(then: datetime, now: Optional[datetime] = None) -> str:
    """Coarse "N units ago" label for a timestamp."""
    now = now or datetime.now(timezone.utc)
    seconds = int((now - then).total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days} day{'' if days == 1 else 's'} ago"
    if hours > 0:
        return f"{hours} hour{'' if hours == 1 else 's'} ago"
    if minutes > 0:
        return f"{minutes} minute{'' if minutes == 1 else 's'} ago"
    return "just now"


class StalenessEvaluator:
    """Derive one product-level staleness flag from listing check times."""

    def __init__(self, stale_after_hours: Optional[int] = None):
        hours = stale_after_hours if stale_after_hours is not None else settings.stale_after_hours
        self.max_age = timedelta(hours=hours)

    def evaluate(
        self,
        listings: Iterable[RawListing],
        now: Optional[datetime] = None,
    ) -> Freshness:
        """Stale when the newest ``last_checked`` is strictly older than the max age."""
        now = now or datetime.now(timezone.utc)
        last_checked = max((l.last_checked for l in listings), default=None)
        if last_checked is None:
            return Freshness(last_checked_overall=None, is_stale=False)
        return Freshness(
            last_checked_overall=last_checked,
            is_stale=now - last_checked > self.max_age,
        )


staleness_evaluator = StalenessEvaluator()

"""
Adaptive refresh interval policy.

Feeds that publish often are polled more often; quiet or failing feeds are
polled less often. A feed that keeps failing for longer than the
deactivation threshold is marked unavailable and its schedule dropped.

The policy functions are pure: callers pass the current time in.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from enum import Enum

from .config import config


class FetchOutcome(str, Enum):
    """Result of one fetch attempt, as seen by the interval policy."""
    NEW_ENTRIES = "new_entries"
    NO_NEW_ENTRIES = "no_new_entries"
    TRANSIENT_FAILURE = "transient_failure"
    PERMANENT_FAILURE = "permanent_failure"

    @property
    def is_failure(self) -> bool:
        return self in (FetchOutcome.TRANSIENT_FAILURE, FetchOutcome.PERMANENT_FAILURE)


@dataclass(frozen=True)
class IntervalPolicy:
    min_interval: int = 900
    max_interval: int = 86400
    default_interval: int = 3600
    speedup_factor: float = 0.9
    slowdown_factor: float = 1.1
    deactivation_threshold: timedelta = timedelta(days=7)

    @classmethod
    def from_config(cls) -> "IntervalPolicy":
        return cls(
            min_interval=config.FEED_MIN_INTERVAL_SECS,
            max_interval=config.FEED_MAX_INTERVAL_SECS,
            default_interval=config.FEED_DEFAULT_INTERVAL_SECS,
            deactivation_threshold=timedelta(days=config.FEED_DEACTIVATION_DAYS),
        )

    def clamp(self, interval: float) -> int:
        return int(min(self.max_interval, max(self.min_interval, round(interval))))


DEFAULT_POLICY = IntervalPolicy()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class FeedScheduleState:
    """The slice of a feed's row the policy reads and writes."""
    fetch_interval_secs: int
    failing_since: datetime | None = None
    available: bool = True


@dataclass(frozen=True)
class ScheduleTransition:
    state: FeedScheduleState
    deactivated: bool = False

    @property
    def next_interval(self) -> int:
        return self.state.fetch_interval_secs


def compute_next_interval(
    current_interval: int,
    outcome: FetchOutcome,
    policy: IntervalPolicy = DEFAULT_POLICY,
) -> int:
    """
    Next fetch interval in seconds.

    New entries shorten the interval by 10%; anything else lengthens it by
    10%. The result is always within [min_interval, max_interval].
    """
    if outcome == FetchOutcome.NEW_ENTRIES:
        interval = current_interval * policy.speedup_factor
    else:
        interval = current_interval * policy.slowdown_factor
    return policy.clamp(interval)


def apply_outcome(
    state: FeedScheduleState,
    outcome: FetchOutcome,
    now: datetime,
    policy: IntervalPolicy = DEFAULT_POLICY,
) -> ScheduleTransition:
    """Compute a feed's schedule state after a fetch attempt."""
    interval = compute_next_interval(state.fetch_interval_secs, outcome, policy)

    if not outcome.is_failure:
        return ScheduleTransition(
            state=FeedScheduleState(fetch_interval_secs=interval, failing_since=None, available=True)
        )

    # First failure of a streak starts the clock; later failures keep it
    failing_since = state.failing_since or now
    new_state = replace(state, fetch_interval_secs=interval, failing_since=failing_since)

    if now - failing_since > policy.deactivation_threshold:
        return ScheduleTransition(
            state=replace(new_state, available=False),
            deactivated=state.available,
        )

    return ScheduleTransition(state=new_state)


def classify_fetch(new_entries: int) -> FetchOutcome:
    return FetchOutcome.NEW_ENTRIES if new_entries > 0 else FetchOutcome.NO_NEW_ENTRIES

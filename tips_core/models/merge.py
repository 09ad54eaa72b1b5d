"""
Timer merge rule.

One function decides between two candidate timers everywhere the core
reconciles sources: local file vs key-value fallback, local vs remote.
"""

from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional

from tips_core.models.timer import TreatmentTimer


class MergeSource(str, Enum):
    """Which side a merge winner came from."""

    LOCAL = "local"
    REMOTE = "remote"
    NONE = "none"


class MergeResult(NamedTuple):
    timer: Optional[TreatmentTimer]
    source: MergeSource


def merge_timer_states(
    local: Optional[TreatmentTimer],
    remote: Optional[TreatmentTimer],
    now: datetime,
) -> MergeResult:
    """
    Pick the authoritative timer between a local and a remote candidate.

    Rules:
    - both effective: the later ``end_time`` wins (equal end times keep remote)
    - only one effective: it wins
    - otherwise: no timer

    A timer that is inactive or whose end time is not after ``now`` is
    never returned.

    Args:
        local: Timer from this device's storage
        remote: Timer from the shared room record
        now: Current time

    Returns:
        MergeResult with the winner and its source

    Example:
        >>> result = merge_timer_states(local, remote, clock.now())
        >>> if result.source is MergeSource.LOCAL:
        ...     await mirror.set(room_id, result.timer)
    """
    local_ok = local is not None and local.is_effective(now)
    remote_ok = remote is not None and remote.is_effective(now)

    if local_ok and remote_ok:
        if local.end_time > remote.end_time:
            return MergeResult(local, MergeSource.LOCAL)
        return MergeResult(remote, MergeSource.REMOTE)
    if local_ok:
        return MergeResult(local, MergeSource.LOCAL)
    if remote_ok:
        return MergeResult(remote, MergeSource.REMOTE)
    return MergeResult(None, MergeSource.NONE)


def latest_timer(*candidates: Optional[TreatmentTimer], now: datetime) -> Optional[TreatmentTimer]:
    """
    Fold any number of candidates with ``merge_timer_states``.

    Earlier candidates have priority on equal end times.
    """
    winner: Optional[TreatmentTimer] = None
    for candidate in candidates:
        # the incumbent sits on the remote side: ties keep it
        winner = merge_timer_states(candidate, winner, now).timer
    return winner

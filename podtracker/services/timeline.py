"""
POD Timeline Service.

Rebuilds the status ledger of one POD into contiguous, non-overlapping
intervals, one sequence per track (``status`` and ``substatus``).

The ledger never stores a POD's initial value: an entry is written only on
the *next* change. The first interval of every track is therefore
synthesized from the POD creation time and tagged ``synthesized``; every later
interval comes from a ledger row and is tagged ``ledger``.

Usage:
    from podtracker.services.timeline import get_pod_timeline

    data = get_pod_timeline(pod_id)
    data["statusTrack"]       # [{"value": "Initial", "duration": "2d 3h", ...}, ...]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from podtracker.core.exceptions import NotFoundError
from podtracker.models import db
from podtracker.models.identity import User
from podtracker.models.pod import Pod, PodStatusHistory
from podtracker.utils.helpers import as_utc

TRACK_STATUS = "status"
TRACK_SUBSTATUS = "substatus"

SOURCE_SYNTHESIZED = "synthesized"
SOURCE_LEDGER = "ledger"

# entry attribute names per track: (new value, previous value)
_TRACK_FIELDS = {
    TRACK_STATUS: ("status", "previous_status"),
    TRACK_SUBSTATUS: ("sub_status", "previous_sub_status"),
}


def format_duration(span: timedelta) -> str:
    """Render an elapsed span as ``"1d 2h 3m"``.

    Zero-valued units are omitted and every unit is truncated, not rounded.
    Spans under a minute render in seconds; an empty span renders ``"0m"``.
    """
    total = int(span.total_seconds())
    if total <= 0:
        return "0m"

    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes = rest // 60

    parts = []
    if days:
        parts.append(f"{days}d")
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if not parts:
        return f"{total}s"
    return " ".join(parts)


@dataclass
class Interval:
    track: str
    value: str | None
    start: datetime
    end: datetime | None = None
    is_open: bool = True
    duration: str = "0m"
    previous_value: str | None = None
    changed_by_id: str | None = None
    source: str = SOURCE_LEDGER
    created_at: datetime | None = None

    def close(self, end: datetime, *, still_open: bool = False) -> None:
        self.end = end
        self.is_open = still_open
        self.duration = format_duration(end - self.start)

    def to_dict(self) -> dict:
        return {
            "type": self.track,
            "value": self.value,
            "startDate": self.start.isoformat(),
            "endDate": self.end.isoformat() if self.end else None,
            "isOpen": self.is_open,
            "duration": self.duration,
            "previousValue": self.previous_value,
            "changedById": self.changed_by_id,
            "source": self.source,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass
class Timeline:
    status_track: list[Interval] = field(default_factory=list)
    substatus_track: list[Interval] = field(default_factory=list)

    def track(self, name: str) -> list[Interval]:
        return self.status_track if name == TRACK_STATUS else self.substatus_track

    def intervals(self) -> list[Interval]:
        """Both tracks merged in chronological order (status before substatus on ties)."""
        merged = self.status_track + self.substatus_track
        return sorted(merged, key=lambda i: (i.start, i.track != TRACK_STATUS))


def _initial_value(track: str, entries: list, current_value: str | None) -> str | None:
    value_attr, previous_attr = _TRACK_FIELDS[track]
    for entry in entries:
        if getattr(entry, value_attr, None) is not None:
            return getattr(entry, previous_attr, None)
    return current_value


def build_timeline(
    created_at: datetime,
    current_status: str | None,
    current_sub_status: str | None,
    entries: list,
    as_of: datetime | None = None,
) -> Timeline:
    """Reconstruct both tracks from ledger entries ordered by ``created_at`` ascending.

    Pure function. ``entries`` may be ORM rows or any objects exposing the
    ledger attributes. The last interval of each track is closed at ``as_of``
    for its duration but stays flagged open.
    """
    as_of = as_utc(as_of) or datetime.now(timezone.utc)
    anchor = as_utc(created_at)
    timeline = Timeline()

    current = {TRACK_STATUS: current_status, TRACK_SUBSTATUS: current_sub_status}
    for track in (TRACK_STATUS, TRACK_SUBSTATUS):
        timeline.track(track).append(Interval(
            track=track,
            value=_initial_value(track, entries, current[track]),
            start=anchor,
            source=SOURCE_SYNTHESIZED,
            created_at=anchor,
        ))

    for entry in entries:
        stamp = as_utc(entry.created_at)
        for track, (value_attr, previous_attr) in _TRACK_FIELDS.items():
            value = getattr(entry, value_attr, None)
            if value is None:
                continue
            intervals = timeline.track(track)
            intervals[-1].close(stamp)
            intervals.append(Interval(
                track=track,
                value=value,
                start=stamp,
                previous_value=getattr(entry, previous_attr, None),
                changed_by_id=getattr(entry, "changed_by_id", None),
                source=SOURCE_LEDGER,
                created_at=stamp,
            ))

    for track in (TRACK_STATUS, TRACK_SUBSTATUS):
        last = timeline.track(track)[-1]
        last.close(max(as_of, last.start), still_open=True)

    return timeline


def _actor_map(entries) -> dict[str, dict]:
    ids = {e.changed_by_id for e in entries if e.changed_by_id}
    if not ids:
        return {}
    users = User.query.filter(User.id.in_(ids)).all()
    return {u.id: {"email": u.email, "name": u.name} for u in users}


def _interval_dicts(intervals: list[Interval], actors: dict) -> list[dict]:
    rows = []
    for interval in intervals:
        d = interval.to_dict()
        d["changedBy"] = actors.get(interval.changed_by_id)
        rows.append(d)
    return rows


def get_pod_timeline(pod_id: str, as_of: datetime | None = None) -> dict:
    """Load one POD and its ledger and return the serialised timeline.

    Raises:
        NotFoundError: if the POD does not exist.
    """
    pod = db.session.get(Pod, pod_id)
    if pod is None:
        raise NotFoundError(resource="Pod", resource_id=pod_id)

    entries = (
        PodStatusHistory.query
        .filter_by(pod_id=pod.id)
        .order_by(PodStatusHistory.created_at.asc(), PodStatusHistory.id.asc())
        .all()
    )
    timeline = build_timeline(pod.created_at, pod.status, pod.sub_status, entries, as_of)
    actors = _actor_map(entries)

    return {
        "pod": {
            "id": pod.id,
            "pod": pod.pod,
            "status": pod.status,
            "subStatus": pod.sub_status,
            "assignedEngineer": pod.assigned_engineer,
            "org": pod.org,
            "podProgramType": pod.pod_program_type,
            "podTypeOriginal": pod.pod_type_original,
            "createdAt": pod.created_at.isoformat() if pod.created_at else None,
            "slaCalculatedNbd": pod.sla_calculated_nbd.isoformat() if pod.sla_calculated_nbd else None,
        },
        "statusHistory": [e.to_dict() for e in entries],
        "statusTrack": _interval_dicts(timeline.status_track, actors),
        "substatusTrack": _interval_dicts(timeline.substatus_track, actors),
        "timelineData": _interval_dicts(timeline.intervals(), actors),
    }

from __future__ import annotations

import calendar
from collections.abc import Callable
from datetime import datetime, timezone
from zoneinfo import ZoneInfo


def local_wall_epoch(moment: datetime, zone: ZoneInfo) -> int:
    """Seconds for the wall-clock time of `moment` in `zone`, read as UTC.

    Journal timestamps use this basis: 18:30 in Chicago is stored as the
    epoch value of 18:30 UTC on the same date.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    wall = moment.astimezone(zone).replace(tzinfo=None)
    return calendar.timegm(wall.timetuple())


def wall_datetime(epoch: int) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc).replace(tzinfo=None)


class JournalClock:
    __slots__ = ("_zone", "_source")

    def __init__(
        self,
        zone: ZoneInfo | None = None,
        *,
        source: Callable[[], datetime] | None = None,
    ) -> None:
        self._zone = zone or ZoneInfo("UTC")
        self._source = source or (lambda: datetime.now(timezone.utc))

    @property
    def zone(self) -> ZoneInfo:
        return self._zone

    def now(self) -> int:
        return local_wall_epoch(self._source(), self._zone)


class FixedClock(JournalClock):
    __slots__ = ("_epoch",)

    def __init__(self, epoch: int) -> None:
        super().__init__()
        self._epoch = epoch

    def now(self) -> int:
        return self._epoch

"""
Period assignment service.

Resolves which of the six daily periods a teacher teaches in a class on a
given weekday, from the schedule entries, and keeps the results in a
bounded in-process TTL cache keyed by (teacher, class, day).

The cache is local to one server process. A hit moves the key to the end
of the ordering, so evicting the oldest key approximates LRU.
"""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass
from datetime import time as dt_time
from typing import Callable, Dict, Iterable, List, Optional

from django.conf import settings

logger = logging.getLogger(__name__)

PERIODS_PER_DAY = 6

PERIOD_START_TIMES = {
    1: dt_time(8, 0),
    2: dt_time(9, 0),
    3: dt_time(10, 0),
    4: dt_time(11, 0),
    5: dt_time(13, 0),
    6: dt_time(14, 0),
    7: dt_time(15, 0),
}

HOUR_TO_PERIOD = {8: 1, 9: 2, 10: 3, 11: 4, 13: 5, 14: 6}


@dataclass
class PeriodAssignment:
    period_number: int
    start_time: str
    end_time: str
    subject: str
    class_id: int
    class_name: str
    teacher_id: int
    day_of_week: str

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class CacheEntry:
    data: List[PeriodAssignment]
    teacher_id: str
    class_id: str
    day_of_week: str
    timestamp: float
    expires_at: float


def period_from_start_time(start_time: dt_time) -> int:
    """Map a schedule start time to its first period; unknown hours fall back to 1"""
    return HOUR_TO_PERIOD.get(start_time.hour, 1)


def period_times(period_number: int):
    start = PERIOD_START_TIMES.get(period_number, PERIOD_START_TIMES[1])
    end = PERIOD_START_TIMES.get(period_number + 1, dt_time(start.hour + 1, 0))
    return start.strftime("%H:%M"), end.strftime("%H:%M")


def expand_schedule_entry(entry) -> List[PeriodAssignment]:
    """Expand one schedule entry into the consecutive periods it covers"""
    first_period = period_from_start_time(entry.start_time)
    assignments = []
    for offset in range(entry.hours):
        period_number = first_period + offset
        if not 1 <= period_number <= PERIODS_PER_DAY:
            continue
        start, end = period_times(period_number)
        assignments.append(
            PeriodAssignment(
                period_number=period_number,
                start_time=start,
                end_time=end,
                subject=entry.subject,
                class_id=entry.classroom_id,
                class_name=entry.classroom.name,
                teacher_id=entry.teacher_id,
                day_of_week=entry.day_of_week,
            )
        )
    return assignments


def load_period_assignments(
    teacher_id, class_id, day_of_week: str
) -> List[PeriodAssignment]:
    from .models import ScheduleEntry

    entries = (
        ScheduleEntry.objects.filter(
            teacher_id=teacher_id,
            classroom_id=class_id,
            day_of_week=day_of_week,
            is_active=True,
        )
        .select_related("classroom")
        .order_by("start_time")
    )

    by_period: Dict[int, PeriodAssignment] = {}
    for entry in entries:
        for assignment in expand_schedule_entry(entry):
            by_period.setdefault(assignment.period_number, assignment)
    return [by_period[number] for number in sorted(by_period)]


class PeriodAssignmentService:
    def __init__(
        self,
        ttl: float = 300,
        max_size: int = 1000,
        cleanup_interval: float = 120,
        loader: Optional[Callable[..., List[PeriodAssignment]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.max_size = max_size
        self.cleanup_interval = cleanup_interval
        self._loader = loader or load_period_assignments
        self._clock = clock
        self._cache: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._timer: Optional[threading.Timer] = None
        self._cleanup_running = False

    @staticmethod
    def make_key(teacher_id, class_id, day_of_week: str) -> str:
        return f"{teacher_id}-{class_id}-{day_of_week.lower()}"

    def get_teacher_period_assignments(
        self, teacher_id, class_id, day_of_week: str
    ) -> List[PeriodAssignment]:
        day_of_week = day_of_week.lower()
        key = self.make_key(teacher_id, class_id, day_of_week)

        with self._lock:
            entry = self._cache.get(key)
            if entry is not None:
                if self._clock() < entry.expires_at:
                    self._hits += 1
                    self._cache.move_to_end(key)
                    logger.debug("Period cache hit for %s", key)
                    return list(entry.data)
                del self._cache[key]
            self._misses += 1

        logger.debug("Period cache miss for %s", key)
        data = self._loader(teacher_id, class_id, day_of_week)
        self._store(key, str(teacher_id), str(class_id), day_of_week, data)
        return list(data)

    def _store(self, key, teacher_id, class_id, day_of_week, data) -> None:
        now = self._clock()
        with self._lock:
            if key not in self._cache and len(self._cache) >= self.max_size:
                oldest_key, _ = self._cache.popitem(last=False)
                logger.debug("Period cache full, evicted %s", oldest_key)
            self._cache[key] = CacheEntry(
                data=list(data),
                teacher_id=teacher_id,
                class_id=class_id,
                day_of_week=day_of_week,
                timestamp=now,
                expires_at=now + self.ttl,
            )
            self._cache.move_to_end(key)

    def validate_teacher_period_access(
        self, teacher_id, class_id, day_of_week: str, period_number: int
    ) -> bool:
        assignments = self.get_teacher_period_assignments(
            teacher_id, class_id, day_of_week
        )
        return any(a.period_number == period_number for a in assignments)

    def assigned_periods(self, teacher_id, class_id, day_of_week: str) -> List[int]:
        return [
            a.period_number
            for a in self.get_teacher_period_assignments(
                teacher_id, class_id, day_of_week
            )
        ]

    def clear_cache(self, teacher_id=None, class_id=None, day_of_week=None) -> None:
        """Clear one key when all three parts are given, otherwise everything"""
        with self._lock:
            if teacher_id is not None and class_id is not None and day_of_week:
                self._cache.pop(self.make_key(teacher_id, class_id, day_of_week), None)
            else:
                self._cache.clear()

    def invalidate_schedule_cache(
        self, class_id=None, teacher_id=None, day_of_week=None
    ) -> int:
        """Drop every entry matching any of the given fields; no filters drops all"""
        with self._lock:
            if class_id is None and teacher_id is None and not day_of_week:
                removed = len(self._cache)
                self._cache.clear()
                return removed

            stale = [
                key
                for key, entry in self._cache.items()
                if (class_id is not None and entry.class_id == str(class_id))
                or (teacher_id is not None and entry.teacher_id == str(teacher_id))
                or (day_of_week and entry.day_of_week == day_of_week.lower())
            ]
            for key in stale:
                del self._cache[key]

        if stale:
            logger.info("Invalidated %s period cache entries", len(stale))
        return len(stale)

    def cleanup_expired_entries(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._cache.items() if now >= e.expires_at]
            for key in expired:
                del self._cache[key]
        if expired:
            logger.debug("Removed %s expired period cache entries", len(expired))
        return len(expired)

    def get_cache_stats(self) -> Dict:
        now = self._clock()
        with self._lock:
            total = self._hits + self._misses
            return {
                "size": len(self._cache),
                "max_size": self.max_size,
                "keys": list(self._cache.keys()),
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(self._hits / total * 100, 2) if total else 0,
                "expired_entries": sum(
                    1 for e in self._cache.values() if now >= e.expires_at
                ),
            }

    def reset_cache_stats(self) -> None:
        with self._lock:
            self._hits = 0
            self._misses = 0

    def preload_cache(
        self, teacher_id, class_ids: Iterable, days: Iterable[str]
    ) -> int:
        loaded = 0
        for class_id in class_ids:
            for day in days:
                self.get_teacher_period_assignments(teacher_id, class_id, day)
                loaded += 1
        return loaded

    # ---- background sweep ----

    def start_automatic_cleanup(self) -> None:
        with self._lock:
            if self._cleanup_running:
                return
            self._cleanup_running = True
            self._schedule_cleanup()

    def _schedule_cleanup(self) -> None:
        self._timer = threading.Timer(self.cleanup_interval, self._run_cleanup)
        self._timer.daemon = True
        self._timer.start()

    def _run_cleanup(self) -> None:
        try:
            self.cleanup_expired_entries()
        finally:
            with self._lock:
                if self._cleanup_running:
                    self._schedule_cleanup()

    def stop_automatic_cleanup(self) -> None:
        with self._lock:
            self._cleanup_running = False
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    @property
    def cleanup_running(self) -> bool:
        return self._cleanup_running


_service: Optional[PeriodAssignmentService] = None
_service_lock = threading.Lock()


def get_period_service() -> PeriodAssignmentService:
    """Process-wide service, created on first use with the sweep timer running"""
    global _service
    with _service_lock:
        if _service is None:
            _service = PeriodAssignmentService(
                ttl=settings.PERIOD_CACHE_TTL_SECONDS,
                max_size=settings.PERIOD_CACHE_MAX_SIZE,
                cleanup_interval=settings.PERIOD_CACHE_CLEANUP_SECONDS,
            )
            _service.start_automatic_cleanup()
        return _service

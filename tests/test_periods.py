from datetime import time
from types import SimpleNamespace

import pytest

from classes.periods import (
    PeriodAssignment,
    PeriodAssignmentService,
    expand_schedule_entry,
    period_from_start_time,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def assignment(period_number, teacher_id=1, class_id=1, day="saturday"):
    return PeriodAssignment(
        period_number=period_number,
        start_time="08:00",
        end_time="09:00",
        subject="Math",
        class_id=class_id,
        class_name="A",
        teacher_id=teacher_id,
        day_of_week=day,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def calls():
    return []


@pytest.fixture
def service(clock, calls):
    def loader(teacher_id, class_id, day_of_week):
        calls.append((teacher_id, class_id, day_of_week))
        return [assignment(1, teacher_id, class_id, day_of_week)]

    return PeriodAssignmentService(ttl=60, max_size=3, loader=loader, clock=clock)


class TestPeriodMapping:
    @pytest.mark.parametrize(
        "hour,period", [(8, 1), (9, 2), (10, 3), (11, 4), (13, 5), (14, 6), (12, 1)]
    )
    def test_start_hour_to_period(self, hour, period):
        assert period_from_start_time(time(hour, 0)) == period

    def test_entry_expands_to_consecutive_periods(self):
        entry = SimpleNamespace(
            start_time=time(13, 0),
            hours=3,
            subject="Physics",
            classroom_id=4,
            classroom=SimpleNamespace(name="B"),
            teacher_id=2,
            day_of_week="monday",
        )
        periods = [a.period_number for a in expand_schedule_entry(entry)]
        # period 7 is past the end of the day
        assert periods == [5, 6]


class TestPeriodCache:
    def test_hit_within_ttl(self, service, calls):
        service.get_teacher_period_assignments(1, 1, "Saturday")
        service.get_teacher_period_assignments(1, 1, "saturday")
        assert len(calls) == 1
        stats = service.get_cache_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 50.0

    def test_recomputes_after_expiry(self, service, calls, clock):
        service.get_teacher_period_assignments(1, 1, "saturday")
        clock.advance(59)
        service.get_teacher_period_assignments(1, 1, "saturday")
        assert len(calls) == 1
        clock.advance(1)
        service.get_teacher_period_assignments(1, 1, "saturday")
        assert len(calls) == 2

    def test_evicts_least_recently_used_when_full(self, service):
        service.get_teacher_period_assignments(1, 1, "saturday")
        service.get_teacher_period_assignments(1, 2, "saturday")
        service.get_teacher_period_assignments(1, 3, "saturday")
        service.get_teacher_period_assignments(1, 1, "saturday")
        service.get_teacher_period_assignments(1, 4, "saturday")

        keys = service.get_cache_stats()["keys"]
        assert len(keys) == 3
        assert "1-2-saturday" not in keys
        assert "1-1-saturday" in keys

    def test_invalidate_by_class(self, service):
        service.get_teacher_period_assignments(1, 1, "saturday")
        service.get_teacher_period_assignments(2, 1, "sunday")
        service.get_teacher_period_assignments(1, 2, "saturday")
        assert service.invalidate_schedule_cache(class_id=1) == 2
        assert service.get_cache_stats()["keys"] == ["1-2-saturday"]

    def test_clear_single_key(self, service):
        service.get_teacher_period_assignments(1, 1, "saturday")
        service.get_teacher_period_assignments(1, 2, "saturday")
        service.clear_cache(1, 1, "saturday")
        assert service.get_cache_stats()["keys"] == ["1-2-saturday"]

    def test_cleanup_removes_expired_entries(self, service, clock):
        service.get_teacher_period_assignments(1, 1, "saturday")
        clock.advance(30)
        service.get_teacher_period_assignments(1, 2, "saturday")
        clock.advance(30)
        assert service.get_cache_stats()["expired_entries"] == 1
        assert service.cleanup_expired_entries() == 1
        assert service.get_cache_stats()["size"] == 1

    def test_preload_fills_every_combination(self, service, calls):
        assert service.preload_cache(1, [1, 2], ["Saturday", "sunday"]) == 4
        assert len(calls) == 4
        # max_size is 3, so the first key loaded was evicted
        assert sorted(service.get_cache_stats()["keys"]) == [
            "1-1-sunday",
            "1-2-saturday",
            "1-2-sunday",
        ]
        service.get_teacher_period_assignments(1, 2, "sunday")
        assert len(calls) == 4

    def test_validate_access(self, service):
        assert service.validate_teacher_period_access(1, 1, "saturday", 1)
        assert not service.validate_teacher_period_access(1, 1, "saturday", 2)

    def test_sweep_timer_can_be_stopped(self, service):
        service.start_automatic_cleanup()
        assert service.cleanup_running
        service.stop_automatic_cleanup()
        assert not service.cleanup_running


@pytest.mark.django_db
class TestScheduleInvalidation:
    def test_saving_schedule_entry_invalidates_cache(
        self, period_cache, schedule_entry, teacher, classroom
    ):
        assert period_cache.assigned_periods(teacher.pk, classroom.pk, "saturday") == [
            1,
            2,
        ]
        schedule_entry.hours = 3
        schedule_entry.save()
        assert period_cache.assigned_periods(
            teacher.pk, classroom.pk, "saturday"
        ) == [1, 2, 3]

    def test_inactive_entries_are_ignored(self, period_cache, schedule_entry):
        schedule_entry.is_active = False
        schedule_entry.save()
        assert (
            period_cache.assigned_periods(
                schedule_entry.teacher_id, schedule_entry.classroom_id, "saturday"
            )
            == []
        )

    def test_office_can_read_and_clear_stats(self, office_client, period_cache):
        period_cache.get_teacher_period_assignments(1, 1, "saturday")
        response = office_client.get("/api/teachers/schedule/cache/")
        assert response.json()["data"]["size"] == 1

        response = office_client.delete("/api/teachers/schedule/cache/")
        assert response.status_code == 200
        assert period_cache.get_cache_stats()["size"] == 0

    def test_office_preloads_cache(
        self, office_client, period_cache, schedule_entry, teacher, classroom
    ):
        response = office_client.post_json(
            "/api/teachers/schedule/cache/",
            {
                "action": "preload",
                "teacher_ids": [teacher.pk],
                "class_ids": [classroom.pk],
                "days": ["Saturday"],
            },
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["action"] == "preload"
        assert data["preloaded_count"] == 1
        assert data["stats"]["keys"] == [f"{teacher.pk}-{classroom.pk}-saturday"]

    def test_warmup_loads_active_schedule(
        self, office_client, period_cache, schedule_entry
    ):
        response = office_client.post_json(
            "/api/teachers/schedule/cache/", {"action": "warmup"}
        )
        assert response.json()["data"]["preloaded_count"] == 1
        assert period_cache.get_cache_stats()["misses"] == 1

    @pytest.mark.parametrize(
        "body",
        [
            {"action": "defrag"},
            {"action": "preload", "teacher_ids": [1], "class_ids": [1]},
            {"action": "preload", "teacher_ids": [], "class_ids": [1], "days": []},
            {"action": "preload", "teacher_ids": [1], "class_ids": [1], "days": ["x"]},
        ],
    )
    def test_bad_cache_actions(self, office_client, body):
        response = office_client.post_json("/api/teachers/schedule/cache/", body)
        assert response.status_code == 400

    def test_teachers_cannot_manage_cache(self, teacher_client):
        response = teacher_client.post_json(
            "/api/teachers/schedule/cache/", {"action": "clear"}
        )
        assert response.status_code == 403

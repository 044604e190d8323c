"""Tests for the task lifecycle: create, complete, delete, delivery."""

import asyncio
from datetime import timedelta

import pytest
from unittest.mock import patch

from moriminder.engine.budget import NotificationBudget
from moriminder.engine.scheduler import ReminderScheduler
from moriminder.errors import InvalidTask, PersistenceFailed
from moriminder.models.task import Task
from moriminder.notifications.dispatcher import ReminderDispatcher
from moriminder.services.task_service import TaskService, validate_task

from conftest import NOW, FakeNotificationCenter


class TestValidateTask:
    @pytest.mark.parametrize("title", ["", "   "])
    def test_blank_title_rejected(self, sample_task_base, title):
        with pytest.raises(InvalidTask):
            validate_task(Task(**{**sample_task_base, "title": title}))

    def test_deadline_before_start_rejected(self, sample_task_base):
        task = Task(**{
            **sample_task_base,
            "start_time": NOW + timedelta(hours=2),
            "deadline": NOW + timedelta(hours=1),
        })
        with pytest.raises(InvalidTask):
            validate_task(task)

    def test_deadline_equal_to_start_allowed(self, sample_task_base):
        task = Task(**{**sample_task_base, "start_time": NOW, "deadline": NOW})
        validate_task(task)


class TestCreateTask:
    def test_saves_and_schedules(self, task_service, task_with_deadline, notification_center):
        outcome = asyncio.run(task_service.create_task(task_with_deadline, now=NOW))

        assert outcome.task.id == task_with_deadline.id
        assert len(outcome.notification_ids) == 9
        assert outcome.scheduling_error is None
        assert notification_center.pending_count() == 9
        assert task_service.repository.find_by_id(task_with_deadline.id) is not None

    def test_invalid_task_not_saved(self, task_service, sample_task_base, notification_center):
        task = Task(**{**sample_task_base, "title": " "})
        with pytest.raises(InvalidTask):
            asyncio.run(task_service.create_task(task, now=NOW))

        assert task_service.repository.find_by_id(task.id) is None
        assert notification_center.pending_count() == 0

    def test_reminders_disabled_schedules_nothing(self, task_service, task_with_deadline, notification_center):
        task = task_with_deadline.model_copy(update={"reminder_enabled": False})
        outcome = asyncio.run(task_service.create_task(task, now=NOW))

        assert outcome.notification_ids == []
        assert notification_center.pending_count() == 0

    def test_exhausted_budget_does_not_block_save(self, task_repository, task_with_deadline):
        center = FakeNotificationCenter(pending=64)
        scheduler = ReminderScheduler(NotificationBudget(center, limit=64))
        service = TaskService(task_repository, ReminderDispatcher(center, scheduler))

        outcome = asyncio.run(service.create_task(task_with_deadline, now=NOW))

        assert outcome.notification_ids == []
        assert outcome.scheduling_error is not None
        assert task_repository.find_by_id(task_with_deadline.id) is not None

    def test_repeating_task_gets_first_occurrence(self, task_service, repeating_task, notification_center):
        outcome = asyncio.run(task_service.create_task(repeating_task, now=NOW))

        occurrence = outcome.occurrence
        assert occurrence is not None
        assert occurrence.parent_task_id == repeating_task.id
        assert occurrence.deadline == repeating_task.deadline + timedelta(days=1)
        # occurrences get the small instance cap (medium: 3)
        assert len(outcome.occurrence_notification_ids) == 3
        assert len(notification_center.list_pending(occurrence.id)) == 3

    def test_occurrence_save_failure_does_not_fail_create(self, task_service, repeating_task, notification_center):
        real_save = task_service.repository.save
        saved_ids = []

        def save_then_fail(task):
            saved_ids.append(task.id)
            if len(saved_ids) == 2:
                raise PersistenceFailed("disk full")
            return real_save(task)

        with patch.object(task_service.repository, "save", side_effect=save_then_fail):
            outcome = asyncio.run(task_service.create_task(repeating_task, now=NOW))

        assert outcome.occurrence is None
        assert outcome.occurrence_error is not None
        assert len(outcome.notification_ids) == 9
        assert task_service.repository.find_by_id(repeating_task.id) is not None
        assert task_service.repository.get_occurrences(repeating_task.id) == []
        assert notification_center.pending_count() == 9

    def test_occurrence_does_not_spawn_on_create(self, task_service, repeating_task):
        instance = repeating_task.model_copy(update={"parent_task_id": "root-1"})
        outcome = asyncio.run(task_service.create_task(instance, now=NOW))
        assert outcome.occurrence is None


class TestCompleteTask:
    def test_marks_completed_and_cancels(self, task_service, task_with_deadline, notification_center):
        asyncio.run(task_service.create_task(task_with_deadline, now=NOW))
        done_at = NOW + timedelta(hours=2)

        outcome = asyncio.run(task_service.complete_task(task_with_deadline.id, now=done_at))

        assert outcome.task.is_completed is True
        assert outcome.task.completed_at == done_at
        assert notification_center.pending_count() == 0

    def test_missing_task_returns_none(self, task_service):
        assert asyncio.run(task_service.complete_task("nope", now=NOW)) is None

    def test_completing_root_does_not_duplicate_occurrence(self, task_service, repeating_task):
        asyncio.run(task_service.create_task(repeating_task, now=NOW))

        outcome = asyncio.run(task_service.complete_task(repeating_task.id, now=NOW))

        assert outcome.occurrence is None
        assert len(task_service.repository.get_occurrences(repeating_task.id)) == 1

    def test_completing_occurrence_generates_next(self, task_service, repeating_task, notification_center):
        created = asyncio.run(task_service.create_task(repeating_task, now=NOW))
        first = created.occurrence

        outcome = asyncio.run(task_service.complete_task(first.id, now=NOW))

        assert outcome.occurrence is not None
        assert outcome.occurrence.deadline == first.deadline + timedelta(days=1)
        assert outcome.occurrence.parent_task_id == repeating_task.id
        assert notification_center.list_pending(first.id) == []
        assert len(notification_center.list_pending(outcome.occurrence.id)) == 3

    def test_occurrence_save_failure_does_not_fail_complete(self, task_service, repeating_task):
        first = asyncio.run(task_service.create_task(repeating_task, now=NOW)).occurrence
        real_save = task_service.repository.save
        saved_ids = []

        def save_then_fail(task):
            saved_ids.append(task.id)
            if len(saved_ids) == 2:
                raise PersistenceFailed("disk full")
            return real_save(task)

        with patch.object(task_service.repository, "save", side_effect=save_then_fail):
            outcome = asyncio.run(task_service.complete_task(first.id, now=NOW))

        assert outcome.task.is_completed is True
        assert outcome.occurrence is None
        assert outcome.occurrence_error is not None
        assert task_service.repository.find_by_id(first.id).is_completed is True


class TestDeleteTask:
    def test_delete_cancels_and_removes(self, task_service, task_with_deadline, notification_center):
        asyncio.run(task_service.create_task(task_with_deadline, now=NOW))

        assert asyncio.run(task_service.delete_task(task_with_deadline.id)) is True
        assert task_service.repository.find_by_id(task_with_deadline.id) is None
        assert notification_center.pending_count() == 0

    def test_delete_missing(self, task_service):
        assert asyncio.run(task_service.delete_task("nope")) is False


class TestHandleDelivery:
    def test_open_ended_task_gets_next_reminder(self, task_service, sample_task_base, notification_center):
        task = Task(**{**sample_task_base, "reminder_interval_min": 30})
        asyncio.run(task_service.create_task(task, now=NOW))
        pending = notification_center.list_pending(task.id)
        first, last = pending[0], pending[-1]
        delivered_at = first.fire_time

        next_id = asyncio.run(task_service.handle_delivery(first.id, now=delivered_at))

        assert next_id is not None
        assert notification_center.get(next_id).fire_time == last.fire_time + timedelta(minutes=30)
        assert notification_center.get(first.id).delivered_at == delivered_at

    def test_delivery_keeps_pending_fire_times_unique(self, task_service, sample_task_base, notification_center):
        task = Task(**{**sample_task_base, "reminder_interval_min": 30})
        asyncio.run(task_service.create_task(task, now=NOW))
        before = notification_center.list_pending(task.id)
        assert len(before) == 20

        asyncio.run(task_service.handle_delivery(before[0].id, now=before[0].fire_time))

        fire_times = [n.fire_time for n in notification_center.list_pending(task.id)]
        assert len(fire_times) == 20
        assert len(set(fire_times)) == len(fire_times)

    def test_last_pending_delivery_counts_from_delivered_time(self, task_service, sample_task_base, notification_center):
        task = Task(**{**sample_task_base, "reminder_interval_min": 30})
        task_service.repository.save(task)
        notification_id = notification_center.schedule(task.id, NOW + timedelta(minutes=30), "reminder")

        next_id = asyncio.run(task_service.handle_delivery(notification_id, now=NOW + timedelta(minutes=30)))

        assert notification_center.get(next_id).fire_time == NOW + timedelta(hours=1)

    def test_bounded_task_gets_nothing(self, task_service, task_with_deadline, notification_center):
        asyncio.run(task_service.create_task(task_with_deadline, now=NOW))
        first = notification_center.list_pending(task_with_deadline.id)[0]

        assert asyncio.run(task_service.handle_delivery(first.id, now=first.fire_time)) is None
        assert notification_center.pending_count() == 8

    def test_unknown_notification(self, task_service):
        assert asyncio.run(task_service.handle_delivery("nope", now=NOW)) is None

    def test_requires_local_center(self, task_repository):
        center = FakeNotificationCenter()
        service = TaskService(
            task_repository,
            ReminderDispatcher(center, ReminderScheduler(NotificationBudget(center, limit=64))),
        )
        with pytest.raises(TypeError):
            asyncio.run(service.handle_delivery("any", now=NOW))

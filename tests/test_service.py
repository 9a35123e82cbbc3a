"""Tests for JobService: creation, validation, lookup and manual runs."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

import pytest

from lease_scheduler import (
    ExecutionOutcome,
    HookRegistry,
    InvalidScheduleError,
    JobNotFoundError,
    JobService,
    JobStatus,
    ScheduleKind,
    ValidationError,
    set_hook_registry,
)

if TYPE_CHECKING:
    from lease_scheduler import SchedulerContext

NOW = datetime(2026, 1, 1, 12, 2, 30, tzinfo=timezone.utc)


# ============================================================================
# Tests: creation
# ============================================================================


class TestCreateJob:
    @pytest.mark.asyncio
    async def test_create_recurring_job(
        self, service: JobService, context: SchedulerContext
    ) -> None:
        job = await service.create_job("Report", "*/5 * * * *", "noop", now=NOW)

        assert job.status == JobStatus.PENDING
        assert job.schedule_kind is ScheduleKind.RECURRING
        assert job.next_run_at == datetime(2026, 1, 1, 12, 5, tzinfo=timezone.utc)
        assert job.max_retries == 3
        assert await context.repository.pending_ids() == {job.id}
        assert await service.get_job(job.id) == job

    @pytest.mark.asyncio
    async def test_create_one_shot_job(self, service: JobService) -> None:
        job = await service.create_job(
            "Once", "2026-02-01T08:00:00Z", "noop", max_retries=5, now=NOW
        )

        assert job.schedule_kind is ScheduleKind.ONE_SHOT
        assert job.next_run_at == datetime(2026, 2, 1, 8, tzinfo=timezone.utc)
        assert job.max_retries == 5

    @pytest.mark.asyncio
    async def test_default_max_retries_from_settings(
        self,
        context: SchedulerContext,
        settings_factory: Any,
    ) -> None:
        context.settings = settings_factory(default_max_retries=7)
        service = JobService(context)

        job = await service.create_job("A", "* * * * *", "noop", now=NOW)

        assert job.max_retries == 7

    @pytest.mark.asyncio
    async def test_submit_accepts_camel_case_payload(
        self, service: JobService
    ) -> None:
        job = await service.submit(
            {
                "name": "  Report  ",
                "schedule": "0 * * * *",
                "taskRef": "noop",
                "maxRetries": 0,
                "unknown": "ignored",
            },
            now=NOW,
        )

        assert job.name == "Report"
        assert job.task_ref == "noop"
        assert job.max_retries == 0

    @pytest.mark.asyncio
    async def test_task_ref_is_not_checked_at_creation(
        self, service: JobService
    ) -> None:
        job = await service.create_job("A", "* * * * *", "registered.later", now=NOW)

        assert job.task_ref == "registered.later"

    @pytest.mark.asyncio
    async def test_create_is_instrumented(self, service: JobService) -> None:
        seen: list[dict[str, Any]] = []

        async def hook(
            operation: str, attributes: dict[str, Any], next_handler: Any
        ) -> Any:
            seen.append({"operation": operation, **attributes})
            return await next_handler()

        registry = HookRegistry()
        registry.register(hook, operations=["job.create"])
        set_hook_registry(registry)

        job = await service.create_job("A", "* * * * *", "noop", now=NOW)

        assert seen == [
            {
                "operation": "job.create",
                "job.id": job.id,
                "job.name": "A",
                "job.task_ref": "noop",
                "job.schedule_kind": "recurring",
            }
        ]


# ============================================================================
# Tests: validation
# ============================================================================


class TestCreateValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload, field",
        [
            ({"schedule": "* * * * *", "taskRef": "noop"}, "name"),
            ({"name": "   ", "schedule": "* * * * *", "taskRef": "noop"}, "name"),
            ({"name": "A", "schedule": "* * * * *"}, "taskRef"),
            ({"name": "A", "schedule": "* * * * *", "taskRef": ""}, "taskRef"),
            ({"name": "A", "taskRef": "x", "maxRetries": -1}, "maxRetries"),
        ],
    )
    async def test_invalid_fields_rejected(
        self,
        service: JobService,
        context: SchedulerContext,
        payload: dict[str, Any],
        field: str,
    ) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await service.submit(payload, now=NOW)

        assert field in exc_info.value.errors
        assert await context.repository.pending_ids() == set()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "schedule", ["every tuesday", "", None, "99 * * * *", "0 0 30 2 *"]
    )
    async def test_invalid_schedule_rejected_without_side_effects(
        self,
        service: JobService,
        context: SchedulerContext,
        schedule: Any,
    ) -> None:
        with pytest.raises(InvalidScheduleError) as exc_info:
            await service.create_job("A", schedule, "noop", now=NOW)

        assert "schedule" in exc_info.value.errors
        assert await context.repository.pending_ids() == set()


# ============================================================================
# Tests: lookup, removal and manual runs
# ============================================================================


class TestJobLookup:
    @pytest.mark.asyncio
    async def test_get_missing_job(self, service: JobService) -> None:
        assert await service.get_job("nope") is None
        with pytest.raises(JobNotFoundError, match="nope"):
            await service.require_job("nope")

    @pytest.mark.asyncio
    async def test_list_pending(self, service: JobService) -> None:
        a = await service.create_job("A", "* * * * *", "noop", now=NOW)
        b = await service.create_job("B", "* * * * *", "noop", now=NOW)

        assert {j.id for j in await service.list_pending()} == {a.id, b.id}

    @pytest.mark.asyncio
    async def test_remove_job(self, service: JobService) -> None:
        job = await service.create_job("A", "* * * * *", "noop", now=NOW)

        assert await service.remove_job(job.id) is True
        assert await service.get_job(job.id) is None
        assert await service.list_pending() == []
        assert await service.remove_job(job.id) is False

    @pytest.mark.asyncio
    async def test_run_job_ignores_next_run_time(self, service: JobService) -> None:
        job = await service.create_job("A", "2030-01-01T00:00:00Z", "noop", now=NOW)

        assert await service.run_job(job.id) is ExecutionOutcome.COMPLETED
        assert (await service.require_job(job.id)).status == JobStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_run_job_missing(self, service: JobService) -> None:
        with pytest.raises(JobNotFoundError):
            await service.run_job("nope")

    @pytest.mark.asyncio
    async def test_run_job_requires_engine(self, context: SchedulerContext) -> None:
        job = await JobService(context).create_job("A", "* * * * *", "noop", now=NOW)

        with pytest.raises(RuntimeError, match="ExecutionEngine"):
            await JobService(context).run_job(job.id)

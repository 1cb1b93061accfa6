"""
Tests for the background scheduler factory.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest
from apscheduler.executors.asyncio import AsyncIOExecutor
from apscheduler.triggers.date import DateTrigger

from app.core.scheduler import SchedulerConfig, create_scheduler, start_scheduler, stop_scheduler


class TestCreateScheduler:
    """Tests for create_scheduler."""

    @pytest.mark.asyncio
    async def test_can_create_many_schedulers(self):
        """Every scheduler in a process gets a working asyncio executor."""
        for _ in range(3):
            scheduler = create_scheduler()
            scheduler.start()

            assert scheduler.running
            assert isinstance(scheduler._lookup_executor("default"), AsyncIOExecutor)

            scheduler.shutdown(wait=False)

    @pytest.mark.asyncio
    async def test_job_defaults_not_shared(self):
        before = dict(SchedulerConfig.JOB_DEFAULTS)

        create_scheduler()
        create_scheduler()

        assert SchedulerConfig.JOB_DEFAULTS == before

    @pytest.mark.asyncio
    async def test_second_scheduler_runs_jobs(self):
        first = await start_scheduler()
        await stop_scheduler(first)

        second = await start_scheduler()
        ran = asyncio.Event()

        async def job():
            ran.set()

        run_at = datetime.now(UTC) + timedelta(seconds=0.05)
        second.add_job(job, trigger=DateTrigger(run_date=run_at))

        await asyncio.wait_for(ran.wait(), timeout=2)
        await stop_scheduler(second)


class TestStopScheduler:
    """Tests for stop_scheduler."""

    @pytest.mark.asyncio
    async def test_stop_none_is_noop(self):
        await stop_scheduler(None)

    @pytest.mark.asyncio
    async def test_stop_twice(self):
        scheduler = await start_scheduler()

        await stop_scheduler(scheduler)
        await stop_scheduler(scheduler)

        assert not scheduler.running

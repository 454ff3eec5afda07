import pytest

from casesync.services.progress import ProgressTracker


class TestProgressTracker:
    @pytest.mark.asyncio
    async def test_unknown_key_is_idle(self):
        status = await ProgressTracker().get("lawsuits-full")

        assert status.in_progress is False
        assert status.started_at is None
        assert status.error is None

    @pytest.mark.asyncio
    async def test_lifecycle(self, clock):
        tracker = ProgressTracker(clock=clock)

        await tracker.start("lawsuits-full")
        started = await tracker.get("lawsuits-full")
        assert started.in_progress is True
        assert started.started_at == clock.now

        await tracker.update("lawsuits-full", "1000 items fetched (page 1)")
        assert (await tracker.get("lawsuits-full")).progress_message == "1000 items fetched (page 1)"

        await tracker.finish("lawsuits-full", "Completed")
        finished = await tracker.get("lawsuits-full")
        assert finished.in_progress is False
        assert finished.progress_message == "Completed"
        assert finished.started_at == started.started_at

    @pytest.mark.asyncio
    async def test_fail_records_error(self):
        tracker = ProgressTracker()
        await tracker.start("tasks")

        await tracker.fail("tasks", "Advbox API error: 503 - down")

        status = await tracker.get("tasks")
        assert status.in_progress is False
        assert status.error == "Advbox API error: 503 - down"
        assert status.to_dict()["error"] == "Advbox API error: 503 - down"

    @pytest.mark.asyncio
    async def test_restart_clears_previous_error(self):
        tracker = ProgressTracker()
        await tracker.fail("tasks", "boom")

        await tracker.start("tasks")

        assert (await tracker.get("tasks")).error is None

import pytest

from timeleak.services.permission_monitor import PermissionMonitor


class Recorder:
    def __init__(self):
        self.sleeps: list[float] = []

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


@pytest.mark.asyncio
async def test_wait_until_granted_polls_until_grant():
    answers = iter([False, False, True])
    recorder = Recorder()

    async def check():
        return next(answers)

    monitor = PermissionMonitor(check, interval_ms=500, sleep=recorder.sleep)

    assert await monitor.wait_until_granted() is True
    assert recorder.sleeps == [0.5, 0.5]


@pytest.mark.asyncio
async def test_fast_polling_uses_quarter_second():
    answers = iter([False, True])
    recorder = Recorder()

    async def check():
        return next(answers)

    monitor = PermissionMonitor(check, interval_ms=500, sleep=recorder.sleep)

    assert await monitor.wait_until_granted(fast=True) is True
    assert recorder.sleeps == [0.25]


@pytest.mark.asyncio
async def test_wait_gives_up_after_timeout():
    recorder = Recorder()

    async def check():
        return False

    monitor = PermissionMonitor(check, interval_ms=500, sleep=recorder.sleep)

    assert await monitor.wait_until_granted(timeout_s=1.0) is False
    assert recorder.sleeps == [0.5, 0.5]


@pytest.mark.asyncio
async def test_check_errors_read_as_not_granted():
    async def check():
        raise OSError("settings unavailable")

    assert await PermissionMonitor(check, interval_ms=500).is_granted() is False

"""Scheduler tests with in-memory fakes for every collaborator."""
import asyncio
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock

from pinger.services.checker import ProbeResult
from pinger.services.scheduler import (
    InFlightGuard,
    SchedulerService,
    detect_transition,
    is_due,
)


def _target(target_id=1, frequency_sec=60, **overrides):
    values = {
        "id": target_id,
        "name": f"target-{target_id}",
        "type": "HTTP",
        "endpoint": "https://svc.test/",
        "frequency_sec": frequency_sec,
        "timeout_ms": 5000,
        "expected_code": None,
        "alert_email": None,
        "enabled": True,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class FakeTargets:
    def __init__(self, targets):
        self.targets = targets

    async def list_enabled(self):
        return [t for t in self.targets if t.enabled]


class FakeResults:
    """Append-only list standing in for the results table."""

    def __init__(self):
        self.rows = []

    async def append(self, target_id, status, latency_ms, code, message):
        row = SimpleNamespace(
            id=len(self.rows) + 1,
            target_id=target_id,
            status=status,
            latency_ms=latency_ms,
            code=code,
            message=message,
        )
        self.rows.append(row)
        return row

    async def last_results(self, target_id, n=2):
        rows = [r for r in self.rows if r.target_id == target_id]
        return list(reversed(rows))[:n]

    async def purge_older_than(self, cutoff):
        return 0


class FakeChannels:
    def __init__(self, channels=None):
        self.channels = channels or []
        self.calls = 0

    async def list_enabled(self):
        self.calls += 1
        return self.channels


class ScriptedChecker:
    """Returns queued outcomes in order, optionally blocking until released."""

    def __init__(self, outcomes=None, gate: asyncio.Event = None):
        self.outcomes = list(outcomes or [])
        self.gate = gate
        self.calls = 0

    async def run_probe(self, target):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        ok = self.outcomes.pop(0) if self.outcomes else True
        return ProbeResult(
            ok=ok,
            latency_ms=5,
            code=200 if ok else 0,
            message="OK" if ok else "connection refused",
        )


def _scheduler(targets, checker, results=None, channels=None):
    alerter = SimpleNamespace(
        dispatch=AsyncMock(return_value=0),
        send_legacy_alert=AsyncMock(return_value=False),
    )
    broadcaster = SimpleNamespace(publish_check_result=AsyncMock(return_value=0))
    service = SchedulerService(
        targets=FakeTargets(targets),
        results=results or FakeResults(),
        channels=channels or FakeChannels(),
        checker=checker,
        alerter=alerter,
        broadcaster=broadcaster,
        tick_seconds=1,
    )
    return service, alerter, broadcaster


class TestIsDue:
    def test_fires_on_multiples_only(self):
        base = 1_700_000_040  # divisible by 60
        assert base % 60 == 0
        assert is_due(base, 60) is True
        assert not any(is_due(base + offset, 60) for offset in range(1, 60))
        assert is_due(base + 60, 60) is True

    def test_zero_frequency_never_due(self):
        assert is_due(1_700_000_000, 0) is False


class TestInFlightGuard:
    def test_acquire_is_exclusive(self):
        guard = InFlightGuard()
        assert guard.try_acquire(7) is True
        assert guard.try_acquire(7) is False
        assert 7 in guard
        guard.release(7)
        assert 7 not in guard
        assert guard.try_acquire(7) is True

    def test_targets_are_independent(self):
        guard = InFlightGuard()
        assert guard.try_acquire(1) is True
        assert guard.try_acquire(2) is True
        assert len(guard) == 2


class TestDetectTransition:
    def test_first_result_is_not_a_transition(self):
        assert detect_transition([SimpleNamespace(status="DOWN")]) is None

    def test_same_status_is_not_a_transition(self):
        rows = [SimpleNamespace(status="UP"), SimpleNamespace(status="UP")]
        assert detect_transition(rows) is None

    def test_changed_status_returns_newest(self):
        rows = [SimpleNamespace(status="DOWN"), SimpleNamespace(status="UP")]
        assert detect_transition(rows) == "DOWN"


class TestTick:
    async def test_only_due_targets_launch(self):
        targets = [_target(1, frequency_sec=60), _target(2, frequency_sec=45)]
        service, _, _ = _scheduler(targets, ScriptedChecker())

        launched = await service.tick(now=1_700_000_040)
        await service.wait_idle()

        assert launched == [1]

    async def test_no_second_probe_while_in_flight(self):
        gate = asyncio.Event()
        checker = ScriptedChecker(gate=gate)
        service, _, _ = _scheduler([_target(1, frequency_sec=10)], checker)

        assert await service.tick(now=100) == [1]
        await asyncio.sleep(0)
        assert 1 in service.in_flight

        # Next boundary arrives while the first probe is still blocked
        assert await service.tick(now=110) == []
        assert checker.calls == 1

        gate.set()
        await service.wait_idle()
        assert 1 not in service.in_flight

        assert await service.tick(now=120) == [1]
        await service.wait_idle()
        assert checker.calls == 2

    async def test_slow_target_does_not_hold_back_others(self):
        gate = asyncio.Event()

        class SplitChecker(ScriptedChecker):
            async def run_probe(self, target):
                if target.id == 1:
                    await gate.wait()
                return await super().run_probe(target)

        results = FakeResults()
        service, _, _ = _scheduler(
            [_target(1, frequency_sec=10), _target(2, frequency_sec=10)],
            SplitChecker(),
            results=results,
        )

        await service.tick(now=100)
        for _ in range(5):
            await asyncio.sleep(0)

        assert [r.target_id for r in results.rows] == [2]
        gate.set()
        await service.wait_idle()
        assert sorted(r.target_id for r in results.rows) == [1, 2]

    async def test_registry_failure_returns_nothing(self, caplog):
        service, _, _ = _scheduler([], ScriptedChecker())
        service.targets = SimpleNamespace(list_enabled=AsyncMock(side_effect=RuntimeError("db gone")))

        with caplog.at_level(logging.ERROR):
            assert await service.tick(now=100) == []
        assert "db gone" in caplog.text

    async def test_pipeline_crash_releases_guard(self, caplog):
        checker = SimpleNamespace(run_probe=AsyncMock(side_effect=RuntimeError("kaboom")))
        service, _, _ = _scheduler([_target(1, frequency_sec=10)], checker)

        with caplog.at_level(logging.ERROR):
            await service.tick(now=100)
            await service.wait_idle()

        assert 1 not in service.in_flight
        assert "kaboom" in caplog.text


class TestRunCheck:
    async def test_first_result_never_alerts(self):
        service, alerter, broadcaster = _scheduler([], ScriptedChecker([False]))

        await service.run_check(_target(1))

        broadcaster.publish_check_result.assert_awaited_once()
        alerter.dispatch.assert_not_awaited()
        alerter.send_legacy_alert.assert_not_awaited()

    async def test_alerts_only_on_change(self):
        channels = FakeChannels([SimpleNamespace(name="ops", enabled=True)])
        service, alerter, _ = _scheduler(
            [], ScriptedChecker([True, True, False, False, True]), channels=channels
        )
        target = _target(1, alert_email="oncall@example.com")

        for _ in range(5):
            await service.run_check(target)

        statuses = [call.args[0].status for call in alerter.dispatch.await_args_list]
        assert statuses == ["DOWN", "UP"]
        assert alerter.send_legacy_alert.await_count == 2
        assert alerter.send_legacy_alert.await_args_list[0].args[0] == "oncall@example.com"
        # Channels are looked up once per transition
        assert channels.calls == 2

    async def test_down_event_carries_probe_message(self):
        service, alerter, _ = _scheduler([], ScriptedChecker([True, False]))
        target = _target(1)

        await service.run_check(target)
        await service.run_check(target)

        event = alerter.dispatch.await_args.args[0]
        assert event.status == "DOWN"
        assert event.message == "connection refused"
        assert event.target_name == "target-1"

    async def test_recovery_event_has_no_message(self):
        service, alerter, _ = _scheduler([], ScriptedChecker([False, True]))
        target = _target(1)

        await service.run_check(target)
        await service.run_check(target)

        event = alerter.dispatch.await_args.args[0]
        assert event.status == "UP"
        assert event.message is None

    async def test_broadcast_payload(self):
        service, _, broadcaster = _scheduler([], ScriptedChecker([True]))

        await service.run_check(_target(3, name="web"))

        event = broadcaster.publish_check_result.await_args.args[0]
        assert event.targetId == 3
        assert event.name == "web"
        assert event.status == "UP"
        assert event.code == 200
        assert event.at.endswith("Z")

    async def test_persist_failure_skips_broadcast_and_alerts(self, caplog):
        results = FakeResults()
        results.append = AsyncMock(side_effect=RuntimeError("disk full"))
        service, alerter, broadcaster = _scheduler([], ScriptedChecker([False]), results=results)

        with caplog.at_level(logging.ERROR):
            stored = await service.run_check(_target(1))

        assert stored is None
        assert "disk full" in caplog.text
        broadcaster.publish_check_result.assert_not_awaited()
        alerter.dispatch.assert_not_awaited()

    async def test_broadcast_failure_does_not_stop_alerts(self):
        service, alerter, broadcaster = _scheduler([], ScriptedChecker([True, False]))
        broadcaster.publish_check_result.side_effect = RuntimeError("socket closed")
        target = _target(1)

        await service.run_check(target)
        await service.run_check(target)

        alerter.dispatch.assert_awaited_once()


class TestLifecycle:
    async def test_start_and_stop(self):
        service, _, _ = _scheduler([], ScriptedChecker())

        service.start()
        try:
            assert service.running is True
            job_ids = {job.id for job in service.scheduler.get_jobs()}
            assert "run_checks" in job_ids
        finally:
            service.stop()

        assert service.running is False

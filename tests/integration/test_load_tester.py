"""
End-to-end runs of the load tester against stub gateways.

Durations are kept short; every run is bounded by asyncio.wait_for.
"""

import asyncio

import pytest

from mail_benchmark.config import ConfigError
from mail_benchmark.models import OperationKind, OperationWeights, RunState, StressTestConfig
from mail_benchmark.tester import LoadTester
from tests.fakes import StubGateway

pytestmark = [pytest.mark.integration, pytest.mark.asyncio]


def _config(**overrides) -> StressTestConfig:
    values = dict(
        num_users=10,
        concurrent_workers=4,
        request_rate=50,
        duration=2.0,
        random_seed=1,
        operations=OperationWeights(34, 33, 33),
    )
    values.update(overrides)
    return StressTestConfig(**values)


async def _run(tester, timeout=15):
    return await asyncio.wait_for(tester.run(), timeout=timeout)


class StateRecordingGateway(StubGateway):
    """记录每次调用完成时压测器所处的状态."""

    def __init__(self, latency: float):
        super().__init__(latency=latency)
        self.tester = None
        self.states_seen = []

    async def _call(self, kind):
        await super()._call(kind)
        self.states_seen.append(self.tester.state)


def _check_totals(result):
    assert result.total_requests == result.success_requests + result.failed_requests
    assert sum(s.count for s in result.operation_stats.values()) == result.total_requests
    assert sum(s.errors for s in result.operation_stats.values()) == result.failed_requests


async def test_scenario_all_succeed():
    """2s at 50/s with 4 workers and a 5ms gateway: ~100 requests, no errors."""
    gateway = StubGateway(latency=0.005)
    tester = LoadTester(_config(), gateway)

    result = await _run(tester)

    _check_totals(result)
    assert 90 <= result.total_requests <= 110
    assert result.failed_requests == 0
    assert result.error_rate == 0.0
    assert 4.5 <= result.avg_response_ms < 50
    assert tester.state is RunState.COMPLETED
    assert gateway.calls == result.total_requests


async def test_scenario_every_third_call_fails():
    gateway = StubGateway(latency=0.005, fail_every=3)
    tester = LoadTester(_config(), gateway)

    result = await _run(tester)

    _check_totals(result)
    assert result.failed_requests > 0
    assert result.failed_requests == result.total_requests // 3
    assert result.error_rate == pytest.approx(100 * (result.total_requests // 3) / result.total_requests)
    assert 25 <= result.error_rate <= 34
    errors = [r.error for r in tester.results if not r.success]
    assert all(e.startswith("stub failure #") for e in errors)


async def test_concurrent_min_max_match_trace():
    """With many workers the aggregate min/max equal the serial trace."""
    config = _config(concurrent_workers=16, request_rate=200, duration=1.0)
    tester = LoadTester(config, StubGateway(latency=0.002))

    result = await _run(tester)

    _check_totals(result)
    assert result.total_requests <= config.request_rate * config.duration + 1
    assert result.total_requests >= 100
    latencies = [r.latency_ms for r in tester.results]
    assert len(latencies) == result.total_requests
    assert result.min_response_ms == min(latencies)
    assert result.max_response_ms == max(latencies)
    for kind in OperationKind:
        per_kind = [r.latency_ms for r in tester.results if r.operation is kind]
        stats = result.operation_stats[kind]
        assert stats.count == len(per_kind)
        if per_kind:
            assert stats.min_duration_ms == min(per_kind)
            assert stats.max_duration_ms == max(per_kind)


async def test_weights_route_to_gateway_methods():
    gateway = StubGateway()
    config = _config(duration=0.5, operations=OperationWeights(0, 100, 0))

    result = await _run(LoadTester(config, gateway))

    assert result.operation_stats[OperationKind.LIST].count == result.total_requests > 0
    assert gateway.calls_by_kind[OperationKind.CREATE] == 0
    assert gateway.calls_by_kind[OperationKind.SEARCH] == 0


async def test_zero_requests():
    """A tick interval longer than the run yields an empty, well-formed result."""
    tester = LoadTester(_config(request_rate=1, duration=0.2), StubGateway())

    result = await _run(tester)

    assert result.total_requests == 0
    assert result.avg_response_ms == 0.0
    assert result.min_response_ms == 0.0
    assert result.max_response_ms == 0.0
    assert result.requests_per_second == 0.0
    assert result.error_rate == 0.0
    assert tester.state is RunState.COMPLETED


async def test_stop_returns_partial_result():
    """stop() ends a long run early; cancelled in-flight calls count as failures."""
    tester = LoadTester(_config(duration=30.0, request_rate=100), StubGateway(latency=0.05))
    asyncio.get_running_loop().call_later(0.5, tester.stop)

    result = await _run(tester, timeout=10)

    _check_totals(result)
    assert result.total_requests > 0
    assert result.total_duration_s < 5
    cancelled = [r for r in tester.results if r.error == "Cancelled"]
    assert result.failed_requests == len(cancelled)
    assert tester.state is RunState.COMPLETED


async def test_in_flight_calls_drain_after_deadline():
    """Calls outliving the deadline finish as successes and nothing new starts."""
    gateway = StateRecordingGateway(latency=0.4)
    tester = LoadTester(_config(concurrent_workers=2, duration=0.2), gateway)
    gateway.tester = tester

    result = await _run(tester)

    _check_totals(result)
    assert 0 < result.total_requests <= 2
    assert result.failed_requests == 0
    assert result.total_requests == gateway.calls
    assert result.total_duration_s > 0.4
    assert gateway.states_seen == [RunState.DRAINING] * gateway.calls
    assert tester.state is RunState.COMPLETED


async def test_trace_is_bounded():
    tester = LoadTester(_config(duration=0.5, request_rate=100), StubGateway(), trace_limit=10)

    result = await _run(tester)

    assert result.total_requests > 10
    assert len(tester.results) == 10
    assert sum(s.count for s in result.operation_stats.values()) == result.total_requests


async def test_warmup_is_not_counted():
    gateway = StubGateway()
    tester = LoadTester(_config(duration=0.3, warmup=5), gateway)

    result = await _run(tester)

    assert gateway.calls == result.total_requests + 5


async def test_shared_user_pool():
    users = ["65f000000000000000000001", "65f000000000000000000002"]
    tester = LoadTester(_config(duration=0.2), StubGateway(), user_ids=users)

    await _run(tester)

    assert tester.generator.user_ids == users


async def test_run_once_only():
    tester = LoadTester(_config(duration=0.1), StubGateway())
    await _run(tester)

    with pytest.raises(RuntimeError):
        await tester.run()


async def test_invalid_config_rejected_before_run():
    with pytest.raises(ConfigError):
        LoadTester(_config(concurrent_workers=0), StubGateway())
    with pytest.raises(ConfigError):
        LoadTester(_config(duration=float("nan")), StubGateway())

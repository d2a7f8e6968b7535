import random
from datetime import datetime, timedelta

import pytest

from mail_benchmark.generator import RequestGenerator, new_user_ids
from mail_benchmark.models import OperationKind, RequestResult
from mail_benchmark.stats import StatsCollector
from tests.fakes import FakeMailStore, make_search_result


@pytest.fixture
def user_ids():
    return new_user_ids(10)


@pytest.fixture
def generator(user_ids):
    return RequestGenerator(user_ids, random.Random(42))


@pytest.fixture
def fake_store():
    return FakeMailStore()


@pytest.fixture
def stress_result():
    collector = StatsCollector()
    for latency, kind, success in [
        (5.0, OperationKind.CREATE, True),
        (12.0, OperationKind.LIST, True),
        (3.0, OperationKind.LIST, False),
        (20.0, OperationKind.SEARCH, True),
    ]:
        collector.record(RequestResult(kind, success=success, latency_ms=latency))
    start = datetime(2024, 1, 2, 3, 4, 5)
    return collector.freeze(start, start + timedelta(seconds=2))


@pytest.fixture
def search_results():
    return {
        "text_search": make_search_result("text_search", avg=4.0, p99=9.0, success=50, total=50),
        "regex": make_search_result("regex", avg=7.5, p99=15.0, success=48, total=50),
    }

import asyncio

import pytest

from saikaki.services.fallback import AllProvidersFailed, FallbackResult, ProviderError, non_empty_text, try_in_order


def _failing(msg):
    async def call():
        raise RuntimeError(msg)
    return call


def _returning(value, calls=None):
    async def call():
        if calls is not None:
            calls.append(value)
        return value
    return call


def test_first_success_short_circuits():
    calls = []
    providers = [
        ("p1", _failing("p1 down")),
        ("p2", _returning("X", calls)),
        ("p3", _returning("Y", calls)),
    ]

    result = asyncio.run(try_in_order(providers))

    assert result == FallbackResult(provider_name="p2", value="X")
    assert calls == ["X"]  # p3 never invoked


def test_all_failing_raises_aggregate_naming_every_provider():
    providers = [("p1", _failing("boom 1")), ("p2", _failing("boom 2"))]

    with pytest.raises(AllProvidersFailed) as exc:
        asyncio.run(try_in_order(providers))

    assert exc.value.provider_names == ["p1", "p2"]
    assert "p1" in str(exc.value) and "p2" in str(exc.value)
    assert [str(e) for _, e in exc.value.failures] == ["boom 1", "boom 2"]


def test_empty_provider_list_raises_immediately():
    with pytest.raises(AllProvidersFailed) as exc:
        asyncio.run(try_in_order([]))
    assert exc.value.failures == []


def test_invalid_value_counts_as_failure():
    providers = [("blank", _returning("   ")), ("good", _returning("hello"))]

    result = asyncio.run(try_in_order(providers, is_valid=non_empty_text))

    assert result.provider_name == "good"


def test_invalid_values_only_raise_with_provider_error():
    with pytest.raises(AllProvidersFailed) as exc:
        asyncio.run(try_in_order([("blank", _returning(""))], is_valid=non_empty_text))
    assert isinstance(exc.value.failures[0][1], ProviderError)


def test_each_provider_attempted_once():
    attempts = []

    async def flaky():
        attempts.append(1)
        raise TimeoutError("slow")

    with pytest.raises(AllProvidersFailed):
        asyncio.run(try_in_order([("flaky", flaky)]))
    assert len(attempts) == 1


def test_sync_callables_are_accepted():
    result = asyncio.run(try_in_order([("sync", lambda: 7)]))
    assert result.value == 7

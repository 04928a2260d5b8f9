import pytest

from cutscene.adapters.retry_tenacity import TenacityRetryAdapter
from cutscene.core.exceptions import TransientTransportError, TransportError


def flaky(failures, exc_factory):
    calls = []

    async def func():
        calls.append(1)
        if len(calls) <= failures:
            raise exc_factory()
        return "ok"

    return func, calls


@pytest.mark.asyncio
async def test_retries_until_success():
    func, calls = flaky(2, lambda: TransientTransportError("boom", status=503))
    adapter = TenacityRetryAdapter(attempts=3, wait_initial=0.001, wait_max=0.001)

    assert await adapter.execute(func) == "ok"
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_last_exception_propagates():
    func, calls = flaky(5, lambda: TransientTransportError("boom", status=503))
    adapter = TenacityRetryAdapter(wait_initial=0.001, wait_max=0.001)

    with pytest.raises(TransientTransportError):
        await adapter.execute(func, attempts=2)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_non_matching_exception_is_not_retried():
    func, calls = flaky(1, lambda: TransportError("bad request", status=400))
    adapter = TenacityRetryAdapter(attempts=3, wait_initial=0.001, wait_max=0.001)

    with pytest.raises(TransportError):
        await adapter.execute(func, exception_types=(TransientTransportError,))
    assert len(calls) == 1

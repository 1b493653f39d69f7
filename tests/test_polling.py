"""Tests for client polling of a deferred CID."""
from unittest.mock import AsyncMock, patch

import pytest

from order_archive.domain.orders.polling import poll_for_cid


@pytest.mark.asyncio
async def test_stops_once_cid_present():
    fetch = AsyncMock(side_effect=[
        {"cid": None, "status": "pending"},
        {"cid": None, "status": "pending"},
        {"cid": "bafyready", "status": "ready"},
    ])
    with patch("order_archive.domain.orders.polling.asyncio.sleep", new=AsyncMock()) as sleep:
        view = await poll_for_cid(fetch, max_attempts=10, interval=5.0, backoff=2.0, max_interval=8.0)

    assert view["cid"] == "bafyready"
    assert fetch.await_count == 3
    assert [c.args[0] for c in sleep.await_args_list] == [5.0, 8.0]


@pytest.mark.asyncio
async def test_stops_on_failed_archival():
    fetch = AsyncMock(return_value={"cid": None, "archivalStatus": "failed"})
    with patch("order_archive.domain.orders.polling.asyncio.sleep", new=AsyncMock()):
        view = await poll_for_cid(fetch, max_attempts=10)

    assert view["archivalStatus"] == "failed"
    assert fetch.await_count == 1


@pytest.mark.asyncio
async def test_bounded_attempts():
    fetch = AsyncMock(return_value={"cid": None, "archivalStatus": "pending"})
    with patch("order_archive.domain.orders.polling.asyncio.sleep", new=AsyncMock()) as sleep:
        view = await poll_for_cid(fetch, max_attempts=4)

    assert view["cid"] is None
    assert fetch.await_count == 4
    assert sleep.await_count == 3

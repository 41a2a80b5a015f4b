"""
Tests for NetworkMonitor transitions and one-shot subscriptions.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from asset_refresher.network.monitor import NetworkMonitor


def test_subscriber_fires_once_on_reconnect():
    monitor = NetworkMonitor(initially_connected=False)
    calls = []
    monitor.subscribe_until_connected(lambda: calls.append("up"))

    monitor.report(False)
    assert calls == []

    monitor.report(True)
    monitor.report(False)
    monitor.report(True)

    assert calls == ["up"]
    assert monitor.subscriber_count == 0
    assert monitor.is_connected() is True


def test_subscribing_while_connected_waits_for_next_transition():
    monitor = NetworkMonitor(initially_connected=True)
    calls = []
    monitor.subscribe_until_connected(lambda: calls.append("up"))

    monitor.report(True)
    assert calls == []

    monitor.report(False)
    monitor.report(True)
    assert calls == ["up"]


def test_cancelled_subscription_never_fires():
    monitor = NetworkMonitor(initially_connected=False)
    calls = []
    subscription = monitor.subscribe_until_connected(lambda: calls.append("up"))

    subscription.cancel()
    subscription.cancel()
    monitor.report(True)

    assert calls == []
    assert subscription.active is False


def test_failing_callback_does_not_affect_others():
    monitor = NetworkMonitor(initially_connected=False)
    calls = []

    def _broken():
        raise RuntimeError("boom")

    monitor.subscribe_until_connected(_broken)
    monitor.subscribe_until_connected(lambda: calls.append("up"))
    monitor.report(True)

    assert calls == ["up"]


@pytest.mark.asyncio
async def test_probe_success_and_failure():
    monitor = NetworkMonitor(probe_url="https://example.com/health")
    session = MagicMock()
    session.closed = False
    monitor._session = session

    assert await monitor.probe() is True
    session.head.assert_called_once_with(
        "https://example.com/health", allow_redirects=False
    )

    session.head.return_value.__aenter__.side_effect = aiohttp.ClientConnectionError()
    assert await monitor.probe() is False


@pytest.mark.asyncio
async def test_start_requires_probe_url():
    monitor = NetworkMonitor()
    with pytest.raises(ValueError):
        await monitor.start()


@pytest.mark.asyncio
async def test_polling_reports_transitions():
    monitor = NetworkMonitor(probe_url="https://example.com/health", poll_interval=0.01)
    became_connected = asyncio.Event()
    monitor.subscribe_until_connected(became_connected.set)

    # The first reading is taken by start()
    probe = AsyncMock(side_effect=[False] + [True] * 100)
    with patch.object(monitor, "probe", probe):
        await monitor.start()
        assert monitor.is_connected() is False

        await asyncio.wait_for(became_connected.wait(), timeout=2)
        assert monitor.is_connected() is True

        await monitor.stop()

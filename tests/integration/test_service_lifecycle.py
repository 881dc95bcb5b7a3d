# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the FlyGrid service lifecycle.

Covers the background refresh loop and the application lifespan that builds
the node pool at startup and closes it at shutdown.
"""

import asyncio
import time
from unittest.mock import MagicMock, patch

import fakeredis
import pytest
from fastapi.testclient import TestClient

from flygrid.config import NodePoolConfig
from flygrid.exceptions import NodeProviderError
from flygrid.nodes.pool import NodePool
from flygrid.nodes.providers import NodeProvider
from flygrid.service.app import app, refresh_loop

LIVE_URL = "http://10.0.0.1:5555/wd/hub"


async def wait_for(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not condition() and time.monotonic() < deadline:
        await asyncio.sleep(0.01)


class TestRefreshLoop:
    """Tests for the background refresh loop."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [NodeProviderError("provider down"), RuntimeError("boom")])
    async def test_survives_failed_pass(self, error):
        """A failed refresh pass is logged and the next pass still runs."""
        pool = MagicMock(spec=NodePool)
        calls = []

        def refresh():
            calls.append(time.monotonic())
            if len(calls) == 1:
                raise error
            return True

        pool.refresh_nodes.side_effect = refresh

        with patch("flygrid.service.app.logger") as mock_logger:
            task = asyncio.create_task(refresh_loop(pool, 0.01))
            await wait_for(lambda: len(calls) >= 2)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        assert len(calls) >= 2
        assert mock_logger.warning.called or mock_logger.error.called
        assert task.cancelled()

    @pytest.mark.asyncio
    async def test_waits_between_passes(self):
        pool = MagicMock(spec=NodePool)
        pool.refresh_nodes.return_value = True

        task = asyncio.create_task(refresh_loop(pool, 60))
        await wait_for(lambda: pool.refresh_nodes.call_count >= 1)
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert pool.refresh_nodes.call_count == 1


class TestLifespan:
    """Tests for application startup and shutdown."""

    @pytest.fixture
    def provider(self):
        provider = MagicMock(spec=NodeProvider)
        provider.list_live_nodes.return_value = {LIVE_URL}
        return provider

    @pytest.fixture
    def pool(self, provider):
        redis_client = fakeredis.FakeRedis(decode_responses=True)
        return NodePool(redis_client, provider, resolve_hostnames=False)

    def test_startup_runs_refresh_loop(self, pool):
        """Startup builds the pool, refreshes it in the background and closes it on shutdown."""
        config = NodePoolConfig(refresh_interval=0.01)

        with patch("flygrid.service.app.node_pool", None), \
             patch("flygrid.service.app.NodePoolConfig.from_env", return_value=config), \
             patch("flygrid.service.app.NodePool.from_config", return_value=pool) as from_config, \
             patch.object(pool, "close") as close:
            with TestClient(app) as client:
                deadline = time.monotonic() + 2.0
                while not pool.node_ids() and time.monotonic() < deadline:
                    time.sleep(0.01)

                response = client.get("/nodes")

            from_config.assert_called_once_with(config)
            close.assert_called_once()

        assert response.status_code == 200
        assert [n["url"] for n in response.json()["nodes"]] == [LIVE_URL]

    def test_startup_without_refresh_loop(self, pool, provider):
        config = NodePoolConfig(refresh_interval=0)

        with patch("flygrid.service.app.node_pool", None), \
             patch("flygrid.service.app.NodePoolConfig.from_env", return_value=config), \
             patch("flygrid.service.app.NodePool.from_config", return_value=pool), \
             patch.object(pool, "close"):
            with TestClient(app) as client:
                response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["nodes"] == 0
        provider.list_live_nodes.assert_not_called()

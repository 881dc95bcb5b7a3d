# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for node pool reconciliation."""

import threading
import time
import uuid
from unittest.mock import MagicMock, patch

import fakeredis
import pytest

from flygrid.exceptions import NodeProviderError
from flygrid.nodes.pool import NodePool
from flygrid.nodes.providers import NodeProvider, StaticNodeProvider

A = "http://10.0.0.1:5555/wd/hub"
B = "http://10.0.0.2:5555/wd/hub"
C = "http://10.0.0.3:5555/wd/hub"


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def provider():
    provider = MagicMock(spec=NodeProvider)
    provider.list_live_nodes.return_value = set()
    return provider


@pytest.fixture
def pool(redis_client, provider):
    return NodePool(redis_client, provider, default_session_limit=4, resolve_hostnames=False)


def registered_urls(pool):
    return sorted(v.url for v in pool.view_models())


def insert_raw_node(pool, url):
    """Write a node record directly, bypassing duplicate checks."""
    node_id = str(uuid.uuid4())
    with pool._store.transaction() as pipe:
        pool._store.queue_add(pipe, node_id, {"url": url, "max-sessions": 4}, ())
        pipe.execute()
    return node_id


class TestRefreshNodes:
    """Tests for NodePool.refresh_nodes."""

    def test_creates_live_nodes(self, pool, provider):
        provider.list_live_nodes.return_value = {A, B}

        assert pool.refresh_nodes() is True

        assert registered_urls(pool) == [A, B]
        for view in pool.view_models():
            assert view.tags == frozenset()
            assert view.max_sessions == 4

    def test_convergence(self, pool, provider):
        """Live {A,B} against registered {B,C} converges to {A,B}."""
        provider.list_live_nodes.return_value = {B, C}
        pool.refresh_nodes()
        b_id = pool.view_model_from_url(B).id

        provider.list_live_nodes.return_value = {A, B}
        pool.refresh_nodes()

        assert registered_urls(pool) == [A, B]
        assert pool.view_model_from_url(B).id == b_id
        assert pool.view_model_from_url(C) is None

    def test_idempotent(self, pool, provider):
        """A second refresh with no provider change leaves the pool as is."""
        provider.list_live_nodes.return_value = {A, B}
        pool.refresh_nodes()
        before = {v.id: v for v in pool.view_models()}

        pool.refresh_nodes()

        assert {v.id: v for v in pool.view_models()} == before
        provider.remove.assert_not_called()

    def test_stale_node_destroyed_without_provider_removal(self, pool, provider):
        """A node that is gone from the provider is not torn down again."""
        pool.create_node(C)

        pool.refresh_nodes()

        assert pool.view_models() == []
        provider.remove.assert_not_called()

    def test_empty_urls_ignored(self, pool, provider):
        provider.list_live_nodes.return_value = {A, "", None, "  "}

        pool.refresh_nodes()

        assert registered_urls(pool) == [A]

    def test_discovery_failure_aborts(self, pool, provider):
        """A failed provider listing changes nothing."""
        pool.create_node(C)
        provider.list_live_nodes.side_effect = NodeProviderError("unreachable")

        with pytest.raises(NodeProviderError):
            pool.refresh_nodes()

        assert registered_urls(pool) == [C]

    def test_duplicate_records_removed_one_per_pass(self, pool, provider):
        """Records sharing a stale url are removed one per refresh."""
        insert_raw_node(pool, C)
        insert_raw_node(pool, C)

        pool.refresh_nodes()
        assert registered_urls(pool) == [C]

        pool.refresh_nodes()
        assert registered_urls(pool) == []

    def test_live_urls_resolved_before_comparison(self, redis_client):
        """Hostname urls from the provider match their resolved records."""
        provider = StaticNodeProvider(["http://selenium-1:5555/wd/hub"])
        pool = NodePool(redis_client, provider, resolve_hostnames=True)

        with patch("flygrid.utils.urls.socket.gethostbyname", return_value="10.9.9.9"):
            pool.refresh_nodes()
            first = pool.view_models()
            pool.refresh_nodes()

        assert [v.url for v in first] == ["http://10.9.9.9:5555/wd/hub"]
        assert pool.view_models() == first

    def test_refresh_is_serialized(self, pool, provider):
        """Concurrent refreshes in one process never overlap."""
        active = 0
        max_active = 0
        counter_lock = threading.Lock()

        def slow_listing():
            nonlocal active, max_active
            with counter_lock:
                active += 1
                max_active = max(max_active, active)
            time.sleep(0.05)
            with counter_lock:
                active -= 1
            return {A}

        provider.list_live_nodes.side_effect = slow_listing
        threads = [threading.Thread(target=pool.refresh_nodes) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert max_active == 1
        assert registered_urls(pool) == [A]

    def test_refresh_is_serialized_across_pools(self, redis_client, provider):
        """Two pools in the same process never refresh at the same time."""
        pools = [
            NodePool(redis_client, provider, resolve_hostnames=False)
            for _ in range(2)
        ]
        active = 0
        max_active = 0
        counter_lock = threading.Lock()

        def slow_listing():
            nonlocal active, max_active
            with counter_lock:
                active += 1
                max_active = max(max_active, active)
            time.sleep(0.05)
            with counter_lock:
                active -= 1
            return {A}

        provider.list_live_nodes.side_effect = slow_listing
        threads = [threading.Thread(target=p.refresh_nodes) for p in pools * 2]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert max_active == 1
        assert registered_urls(pools[0]) == [A]

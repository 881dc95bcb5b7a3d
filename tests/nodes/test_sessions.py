# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for session lookups used in capacity accounting."""

import fakeredis
import pytest

from flygrid.nodes.sessions import RedisSessionSource, SessionRecord


def add_session(client, session_id, node_id, deleted=False, prefix="_flygrid"):
    client.sadd(f"{prefix}/sessions", session_id)
    client.hset(
        f"{prefix}/sessions/{session_id}",
        mapping={"node_id": node_id, "deleted": "true" if deleted else "false"},
    )


@pytest.fixture
def client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def source(client):
    return RedisSessionSource(client)


class TestRedisSessionSource:
    """Tests for RedisSessionSource."""

    def test_no_sessions(self, source):
        assert source.sessions("n1") == []
        assert source.session_count("n1") == 0

    def test_sessions_for_node(self, client, source):
        add_session(client, "s1", "n1")
        add_session(client, "s2", "n2")

        assert source.sessions("n1") == [SessionRecord(id="s1", node_id="n1")]

    def test_soft_deleted_included_by_default(self, client, source):
        add_session(client, "s1", "n1")
        add_session(client, "s2", "n1", deleted=True)

        assert source.session_count("n1") == 2
        assert {s.id for s in source.sessions("n1")} == {"s1", "s2"}

    def test_soft_deleted_excluded_on_request(self, client, source):
        add_session(client, "s1", "n1")
        add_session(client, "s2", "n1", deleted=True)

        sessions = source.sessions("n1", include_soft_deleted=False)

        assert [s.id for s in sessions] == ["s1"]

    def test_session_without_node(self, client, source):
        client.sadd("_flygrid/sessions", "orphan")
        client.hset("_flygrid/sessions/orphan", mapping={"deleted": "false"})

        assert source.session_count("n1") == 0

    def test_custom_prefix(self, client):
        add_session(client, "s1", "n1", prefix="other")

        assert RedisSessionSource(client, key_prefix="other").session_count("n1") == 1
        assert RedisSessionSource(client).session_count("n1") == 0

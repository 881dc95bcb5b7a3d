# Copyright 2026 Firefly Software Solutions Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Node Pool for FlyGrid.

The node pool keeps the persisted set of worker nodes in line with what the
node provider reports as live, and hands out nodes with spare session
capacity to callers. All node state lives in the shared store, so any number
of coordinator processes can run against the same fleet:

- create/modify/destroy write through store transactions
- structural changes watch the node id-set and abort on concurrent change
- refresh is serialized within a process

Example:
    >>> pool = NodePool.from_config(NodePoolConfig(node_list=["http://10.0.0.5:5555/wd/hub"]))
    >>> pool.refresh_nodes()
    >>> node = pool.get_node(FieldRequirement(RequirementField.TAG, "chrome"))
"""

from __future__ import annotations

import random
import threading
import uuid
from typing import Dict, Iterable, List, Optional, Set

import redis

from flygrid.config import DEFAULT_NODE_MAX_SESSIONS, NodePoolConfig
from flygrid.exceptions import (
    ConfigurationError,
    DuplicateNodeError,
    NodeNotFoundError,
    ValidationError,
)
from flygrid.nodes.models import MAX_SESSIONS_FIELD, URL_FIELD, NodeView
from flygrid.nodes.providers import NodeProvider, node_provider_from_config
from flygrid.nodes.requirements import NodeRequirement, matches_requirement
from flygrid.nodes.sessions import RedisSessionSource, SessionSource
from flygrid.storage.redis_store import ModelKeys, RedisModelStore, connect
from flygrid.utils.logger import logger
from flygrid.utils.urls import host_resolved_url

# Refresh passes are serialized across every pool in the process.
_refresh_lock = threading.Lock()


class NodePool:
    """Persisted pool of browser automation nodes.

    Attributes:
        node_provider: Source of the live node set
        default_session_limit: Session limit given to nodes created without one
        session_source: Session subsystem used for capacity accounting
        resolve_hostnames: Whether urls are stored with resolved hosts
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        node_provider: NodeProvider,
        default_session_limit: int = DEFAULT_NODE_MAX_SESSIONS,
        session_source: Optional[SessionSource] = None,
        key_prefix: str = "_flygrid",
        resolve_hostnames: bool = True,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.redis = redis_client
        self.node_provider = node_provider
        self.default_session_limit = default_session_limit
        self.session_source = session_source or RedisSessionSource(redis_client, key_prefix)
        self.resolve_hostnames = resolve_hostnames

        self._store = RedisModelStore(
            redis_client, ModelKeys(prefix=key_prefix, name="nodes", has_tags=True)
        )
        # SystemRandom draws from the OS and keeps no shared generator state.
        self._rng = rng or random.SystemRandom()

    @classmethod
    def from_config(
        cls,
        config: NodePoolConfig,
        redis_client: Optional[redis.Redis] = None,
        session_source: Optional[SessionSource] = None,
    ) -> "NodePool":
        """Build a pool and its provider from configuration.

        Raises:
            ConfigurationError: If the configuration is invalid or the
                provider is unsupported
        """
        errors = config.validate()
        if errors:
            raise ConfigurationError("Invalid configuration: " + "; ".join(errors))

        client = redis_client or connect(config.redis_url, config.socket_timeout)
        return cls(
            client,
            node_provider_from_config(config),
            default_session_limit=config.node_max_sessions,
            session_source=session_source,
            key_prefix=config.key_prefix,
            resolve_hostnames=config.resolve_hostnames,
        )

    def close(self) -> None:
        """Release the store connection."""
        logger.info("Stopping the node pool...")
        self.redis.close()

    # ==================== Helpers ====================

    @property
    def _ids_key(self) -> str:
        return self._store.keys.ids_key

    def _normalize_url(self, url: str) -> str:
        if not url or not str(url).strip():
            raise ValidationError("Node url must not be empty")
        url = str(url).strip()
        return host_resolved_url(url) if self.resolve_hostnames else url

    def _check_max_sessions(self, max_sessions: int) -> int:
        if isinstance(max_sessions, bool) or not isinstance(max_sessions, int) or max_sessions < 1:
            raise ValidationError(f"max_sessions must be a positive integer, got {max_sessions!r}")
        return max_sessions

    def _read_view(self, node_id: str) -> Optional[NodeView]:
        record = self._store.read(node_id)
        if not any(k != "tags" for k in record):
            return None
        return NodeView.from_record(node_id, record)

    # ==================== Reads ====================

    def node_ids(self) -> Set[str]:
        """Ids of every node in the pool."""
        return self._store.ids()

    def exists(self, node_id: str) -> bool:
        """Check whether ``node_id`` is in the pool's id-set."""
        return self._store.exists(node_id)

    def view_model(self, node_id: str) -> Optional[NodeView]:
        """Get a node's view model, or None if the id is not in the pool."""
        if not self.exists(node_id):
            return None
        return self._read_view(node_id)

    def view_models(self) -> List[NodeView]:
        """Get the view models of every node in the pool."""
        views = []
        for node_id in sorted(self.node_ids()):
            view = self._read_view(node_id)
            if view is not None:
                views.append(view)
        return views

    def view_model_from_url(self, url: str) -> Optional[NodeView]:
        """Get the first node registered with ``url``, or None."""
        candidates = {url}
        if url and self.resolve_hostnames:
            candidates.add(host_resolved_url(url))
        for view in self.view_models():
            if view.url in candidates:
                return view
        return None

    # ==================== Writes ====================

    def create_node(
        self,
        url: str,
        tags: Optional[Iterable[str]] = None,
        max_sessions: Optional[int] = None,
    ) -> NodeView:
        """Create a node in the pool.

        The id is added to the id-set and the attributes and tags written in
        one transaction that watches the id-set, so that two coordinators
        registering the same url at once cannot both succeed.

        Args:
            url: Node endpoint; hostnames are resolved before storing
            tags: Initial tags
            max_sessions: Session limit, defaults to the pool default

        Returns:
            The created node's view model

        Raises:
            DuplicateNodeError: If a node with the same url already exists
            StoreContentionError: If the id-set changed concurrently
        """
        url = self._normalize_url(url)
        if max_sessions is None:
            max_sessions = self.default_session_limit
        max_sessions = self._check_max_sessions(max_sessions)
        tags = set(tags or ())
        node_id = str(uuid.uuid4())

        with self._store.transaction(self._ids_key) as pipe:
            for existing_id in self._store.ids(pipe):
                if self._store.read(existing_id).get(URL_FIELD) == url:
                    raise DuplicateNodeError(url, existing_id)
            pipe.multi()
            self._store.queue_add(
                pipe,
                node_id,
                {URL_FIELD: url, MAX_SESSIONS_FIELD: max_sessions},
                tags,
            )
            pipe.execute()

        logger.info(f"Created node {node_id} at {url}")
        return NodeView(id=node_id, url=url, tags=frozenset(tags), max_sessions=max_sessions)

    def modify_node(
        self,
        node_id: str,
        url: Optional[str] = None,
        tags: Optional[Iterable[str]] = None,
        max_sessions: Optional[int] = None,
    ) -> NodeView:
        """Modify a node's url, tags or session limit.

        Only supplied fields are written. Pass an empty collection to clear
        the tags.

        Raises:
            NodeNotFoundError: If ``node_id`` is not in the pool
            DuplicateNodeError: If another node already has the new url
            StoreContentionError: If the id-set changed concurrently
        """
        fields = {}
        if url is not None:
            fields[URL_FIELD] = self._normalize_url(url)
        if max_sessions is not None:
            fields[MAX_SESSIONS_FIELD] = self._check_max_sessions(max_sessions)

        with self._store.transaction(self._ids_key) as pipe:
            known = self._store.ids(pipe)
            if node_id not in known:
                raise NodeNotFoundError(node_id)
            if URL_FIELD in fields:
                for existing_id in known - {node_id}:
                    if self._store.read(existing_id).get(URL_FIELD) == fields[URL_FIELD]:
                        raise DuplicateNodeError(fields[URL_FIELD], existing_id)
            pipe.multi()
            self._store.queue_write(pipe, node_id, fields, tags)
            pipe.execute()

        logger.debug(f"Modified node {node_id}")
        return self._read_view(node_id)

    def _live_urls(self) -> Dict[str, str]:
        live = {}
        for raw in self.node_provider.list_live_nodes():
            if raw and str(raw).strip():
                live[self._normalize_url(raw)] = raw
        return live

    def _remove_from_provider(self, node_id: str, url: Optional[str]) -> None:
        if not url:
            return
        try:
            live = self._live_urls()
            if url in live:
                logger.info(f"Removing node {node_id} ({url}) from provider")
                self.node_provider.remove(live[url])
        except Exception as e:
            logger.error(
                f"Provider removal of node {node_id} ({url}) failed: {e}",
                exc_info=True,
            )

    def destroy_node(self, node_id: str) -> bool:
        """Destroy a node.

        If the node's url is live at the provider, the provider is asked to
        tear it down first. The persisted record is deleted whether or not
        that succeeds; provider failures are logged.

        Returns:
            True once the record is deleted

        Raises:
            StoreContentionError: If the id-set changed during the operation
        """
        with self._store.transaction(self._ids_key) as pipe:
            url = self._store.read(node_id).get(URL_FIELD)
            self._remove_from_provider(node_id, url)
            pipe.multi()
            self._store.queue_delete(pipe, node_id)
            pipe.execute()

        logger.info(f"Destroyed node {node_id}")
        return True

    # ==================== Reconciliation ====================

    def refresh_nodes(self) -> bool:
        """Sync the persisted nodes with the provider's live set.

        Live urls without a record are created; records whose url is no
        longer live are destroyed, one record per url per pass. A failure to
        list live nodes aborts the pass before anything is written.
        """
        with _refresh_lock:
            logger.debug("Refreshing nodes...")
            live = set(self._live_urls())

            registered: Dict[str, List[str]] = {}
            for view in self.view_models():
                if view.url:
                    registered.setdefault(view.url, []).append(view.id)

            logger.debug(f"Live nodes: {sorted(live)}")
            logger.debug(f"Registered nodes: {sorted(registered)}")

            for url in sorted(live - set(registered)):
                try:
                    self.create_node(url)
                except DuplicateNodeError:
                    logger.debug(f"Node {url} was registered concurrently")

            for url in sorted(set(registered) - live):
                self.destroy_node(registered[url][0])

        return True

    # ==================== Capacity & selection ====================

    def session_count(self, node_id: str) -> int:
        """Number of sessions on a node, soft-deleted ones included."""
        return self.session_source.session_count(node_id)

    def _has_capacity(self, node: NodeView) -> bool:
        limit = node.max_sessions if node.max_sessions is not None else self.default_session_limit
        return self.session_count(node.id) < limit

    def nodes_under_capacity(self) -> List[NodeView]:
        """Nodes with at least one free session slot."""
        return [n for n in self.view_models() if self._has_capacity(n)]

    def get_node(self, requirement: Optional[NodeRequirement] = None) -> Optional[NodeView]:
        """Pick a random node that matches ``requirement`` and has capacity.

        Returns:
            A node view model, or None if no node qualifies
        """
        candidates = [
            n for n in self.view_models()
            if matches_requirement(n, requirement) and self._has_capacity(n)
        ]
        if not candidates:
            logger.debug("No node available for requirement")
            return None
        return candidates[self._rng.randrange(len(candidates))]

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
Store-backed model persistence for FlyGrid.

Every model type is laid out in the store as:
- an id-set key listing the ids of all live records
- one attribute hash per id
- optionally, one tag set per id

Reads go straight to the store. Writes that touch more than one key run in a
MULTI/EXEC transaction, and structural changes can place a WATCH on the
id-set so that a concurrent writer forces the transaction to abort with
StoreContentionError instead of silently interleaving.

Example:
    >>> store = RedisModelStore(client, ModelKeys(prefix="_flygrid", name="nodes", has_tags=True))
    >>> with store.transaction(store.keys.ids_key) as pipe:
    ...     known = store.ids(pipe)
    ...     pipe.multi()
    ...     store.queue_delete(pipe, "some-id")
    ...     pipe.execute()
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Optional, Set

import redis
from redis.client import Pipeline
from redis.exceptions import WatchError

from flygrid.exceptions import StoreContentionError
from flygrid.utils.logger import logger


@dataclass(frozen=True)
class ModelKeys:
    """Key layout for one model type."""
    prefix: str
    name: str
    has_tags: bool = False

    @property
    def ids_key(self) -> str:
        """Key of the set holding every id of this model type."""
        return f"{self.prefix}/{self.name}"

    def model_key(self, model_id: str) -> str:
        return f"{self.ids_key}/{model_id}"

    def tags_key(self, model_id: str) -> str:
        return f"{self.model_key(model_id)}/tags"


def connect(redis_url: str, socket_timeout: Optional[float] = None) -> redis.Redis:
    """Open a client for the shared store.

    Responses are decoded to ``str`` so that model fields round-trip as text.
    """
    logger.debug(f"Connecting to store at {redis_url}")
    return redis.Redis.from_url(
        redis_url,
        decode_responses=True,
        socket_timeout=socket_timeout,
    )


class RedisModelStore:
    """Generic persistence for one model type.

    Attributes:
        keys: Key layout of the model type
    """

    def __init__(self, client: redis.Redis, keys: ModelKeys) -> None:
        self._redis = client
        self.keys = keys

    # ==================== Reads ====================

    def ids(self, conn: Optional[Any] = None) -> Set[str]:
        """Return every id in the id-set.

        Args:
            conn: Optional watching pipeline to read through
        """
        return set((conn or self._redis).smembers(self.keys.ids_key))

    def exists(self, model_id: str, conn: Optional[Any] = None) -> bool:
        """Check index membership of ``model_id``."""
        return bool((conn or self._redis).sismember(self.keys.ids_key, model_id))

    def record_exists(self, model_id: str) -> bool:
        """Check whether any attribute or tag data is stored for ``model_id``.

        Unlike ``exists`` this ignores the id-set and looks at the backing
        structures, which is how orphaned records are detected.
        """
        keys = [self.keys.model_key(model_id)]
        if self.keys.has_tags:
            keys.append(self.keys.tags_key(model_id))
        return self._redis.exists(*keys) > 0

    def read(self, model_id: str) -> Dict[str, Any]:
        """Read the attribute hash and tag set of one id in a single round trip.

        Unknown ids yield an empty mapping (or only an empty ``tags`` set).
        """
        with self._redis.pipeline(transaction=False) as pipe:
            pipe.hgetall(self.keys.model_key(model_id))
            if self.keys.has_tags:
                pipe.smembers(self.keys.tags_key(model_id))
            results = pipe.execute()

        record: Dict[str, Any] = dict(results[0] or {})
        if self.keys.has_tags:
            record["tags"] = set(results[1] or ())
        return record

    # ==================== Writes ====================

    @contextmanager
    def transaction(self, *watch_keys: str) -> Iterator[Pipeline]:
        """Yield a pipeline, optionally watching ``watch_keys``.

        While watching, commands on the pipeline execute immediately; call
        ``pipe.multi()`` to start queueing the transactional part and
        ``pipe.execute()`` to commit it. If any watched key changed in the
        meantime the commit is rejected and StoreContentionError is raised.
        """
        with self._redis.pipeline(transaction=True) as pipe:
            try:
                if watch_keys:
                    pipe.watch(*watch_keys)
                yield pipe
            except WatchError as e:
                logger.debug(f"Transaction aborted, watched keys changed: {watch_keys}")
                raise StoreContentionError(
                    f"Concurrent modification of {', '.join(watch_keys)}",
                    key=watch_keys[0] if watch_keys else None,
                ) from e

    def queue_write(
        self,
        pipe: Pipeline,
        model_id: str,
        fields: Optional[Dict[str, Any]] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> None:
        """Queue a merge-write of ``fields`` and a wholesale replace of ``tags``.

        Fields whose value is None are left untouched. Tags are only replaced
        when a collection is given; an empty collection clears them.
        """
        present = {k: v for k, v in (fields or {}).items() if v is not None}
        if present:
            pipe.hset(self.keys.model_key(model_id), mapping=present)
        if tags is not None and self.keys.has_tags:
            tags_key = self.keys.tags_key(model_id)
            pipe.delete(tags_key)
            tags = set(tags)
            if tags:
                pipe.sadd(tags_key, *tags)

    def queue_add(
        self,
        pipe: Pipeline,
        model_id: str,
        fields: Optional[Dict[str, Any]] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> None:
        """Queue index insertion of ``model_id`` followed by its first write."""
        pipe.sadd(self.keys.ids_key, model_id)
        self.queue_write(pipe, model_id, fields, tags)

    def queue_delete(self, pipe: Pipeline, model_id: str) -> None:
        """Queue removal of the id, its attribute hash and its tag set."""
        pipe.srem(self.keys.ids_key, model_id)
        pipe.delete(self.keys.model_key(model_id))
        if self.keys.has_tags:
            pipe.delete(self.keys.tags_key(model_id))

    def write(
        self,
        model_id: str,
        fields: Optional[Dict[str, Any]] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> None:
        """Merge-write attributes and replace tags as one transaction."""
        with self.transaction() as pipe:
            self.queue_write(pipe, model_id, fields, tags)
            pipe.execute()

    def delete(self, model_id: str) -> None:
        """Delete one record while watching the id-set."""
        with self.transaction(self.keys.ids_key) as pipe:
            pipe.multi()
            self.queue_delete(pipe, model_id)
            pipe.execute()

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
Node Pool Configuration for FlyGrid.

This module provides the configuration class for the node pool, covering
node provider selection, capacity defaults and store connection settings.

Provider selection order:
1. An explicit ``node_provider`` implementation
2. A ``cloud_config`` mapping whose ``provider`` field names a supported cloud
3. A static ``node_list`` (or the single default endpoint)
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from flygrid.exceptions import ConfigurationError

DEFAULT_NODE_URL = "http://localhost:5555/wd/hub"
DEFAULT_NODE_MAX_SESSIONS = 3


@dataclass
class NodePoolConfig:
    """Configuration for a node pool.

    Attributes:
        node_provider: Explicit provider implementation. Either a NodeProvider
            instance, a mapping of ``list_live_nodes``/``remove`` callables,
            or a ``"module:attribute"`` import path to one of those
        cloud_config: Cloud provider settings; must contain a ``provider`` key
        node_list: Static list of node urls
        node_max_sessions: Default session limit for newly created nodes
        redis_url: Connection url for the shared store
        key_prefix: Prefix for every key written to the store
        resolve_hostnames: Resolve node hostnames to addresses before storing
        refresh_interval: Seconds between background refresh passes (0 disables)
        socket_timeout: Store socket timeout in seconds
    """

    node_provider: Any = field(default=None, repr=False)
    cloud_config: Optional[Dict[str, Any]] = None
    node_list: List[str] = field(default_factory=list)
    node_max_sessions: int = DEFAULT_NODE_MAX_SESSIONS
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "_flygrid"
    resolve_hostnames: bool = True
    refresh_interval: float = 0.0
    socket_timeout: Optional[float] = 5.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodePoolConfig":
        """Create a config from a plain mapping.

        Keys use the attribute names; dashes are accepted in place of
        underscores so that ``node-max-sessions`` style documents load too.
        """
        normalized = {k.replace("-", "_"): v for k, v in data.items()}
        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(normalized) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")

        config = cls(**normalized)
        errors = config.validate()
        if errors:
            raise ConfigurationError("Invalid configuration: " + "; ".join(errors))
        return config

    @classmethod
    def from_file(cls, path: Optional[str] = None) -> "NodePoolConfig":
        """Load a config from a JSON file.

        Args:
            path: File path; defaults to ``FLYGRID_CONFIG_FILE``
        """
        path = path or os.environ.get("FLYGRID_CONFIG_FILE")
        if not path:
            raise ConfigurationError("No configuration file given")

        try:
            data = json.loads(Path(path).read_text())
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Could not read configuration file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {path} must contain an object")
        return cls.from_dict(data)

    @classmethod
    def from_env(cls) -> "NodePoolConfig":
        """Create NodePoolConfig from environment variables.

        Environment variables:
            FLYGRID_CONFIG_FILE: JSON config file, used as the base if set
            FLYGRID_NODE_PROVIDER: Import path of a custom node provider
            FLYGRID_CLOUD_PROVIDER: Cloud provider name (enables cloud discovery)
            FLYGRID_CLOUD_REGION: Cloud region
            FLYGRID_CLOUD_TAG_FILTERS: Comma-separated ``key=value`` instance tags
            FLYGRID_NODE_LIST: Comma-separated list of node urls
            FLYGRID_NODE_MAX_SESSIONS: Default session limit per node
            FLYGRID_REDIS_URL: Store connection url
            FLYGRID_KEY_PREFIX: Store key prefix
            FLYGRID_RESOLVE_HOSTNAMES: "false" to store hostnames verbatim
            FLYGRID_REFRESH_INTERVAL: Seconds between background refreshes

        Returns:
            NodePoolConfig with values from environment
        """
        data: Dict[str, Any] = {}
        if os.environ.get("FLYGRID_CONFIG_FILE"):
            base = cls.from_file()
            data = {name: getattr(base, name) for name in cls.__dataclass_fields__}

        env = os.environ
        if env.get("FLYGRID_NODE_PROVIDER"):
            data["node_provider"] = env["FLYGRID_NODE_PROVIDER"]
        if env.get("FLYGRID_CLOUD_PROVIDER"):
            cloud: Dict[str, Any] = {"provider": env["FLYGRID_CLOUD_PROVIDER"]}
            if env.get("FLYGRID_CLOUD_REGION"):
                cloud["region"] = env["FLYGRID_CLOUD_REGION"]
            if env.get("FLYGRID_CLOUD_TAG_FILTERS"):
                cloud["tag_filters"] = _parse_pairs(env["FLYGRID_CLOUD_TAG_FILTERS"])
            data["cloud_config"] = cloud
        if env.get("FLYGRID_NODE_LIST"):
            data["node_list"] = [u.strip() for u in env["FLYGRID_NODE_LIST"].split(",") if u.strip()]

        try:
            if env.get("FLYGRID_NODE_MAX_SESSIONS"):
                data["node_max_sessions"] = int(env["FLYGRID_NODE_MAX_SESSIONS"])
            if env.get("FLYGRID_REFRESH_INTERVAL"):
                data["refresh_interval"] = float(env["FLYGRID_REFRESH_INTERVAL"])
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric environment value: {e}") from e

        if env.get("FLYGRID_REDIS_URL"):
            data["redis_url"] = env["FLYGRID_REDIS_URL"]
        if env.get("FLYGRID_KEY_PREFIX"):
            data["key_prefix"] = env["FLYGRID_KEY_PREFIX"]
        if env.get("FLYGRID_RESOLVE_HOSTNAMES"):
            data["resolve_hostnames"] = env["FLYGRID_RESOLVE_HOSTNAMES"].lower() != "false"

        return cls.from_dict(data)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not isinstance(self.node_max_sessions, int) or self.node_max_sessions < 1:
            errors.append("node_max_sessions must be a positive integer")

        if self.cloud_config is not None:
            if not isinstance(self.cloud_config, dict):
                errors.append("cloud_config must be a mapping")
            elif "provider" not in self.cloud_config:
                errors.append("cloud_config requires a provider field")

        if self.refresh_interval < 0:
            errors.append("refresh_interval must not be negative")

        if not self.key_prefix:
            errors.append("key_prefix is required")

        return errors


def _parse_pairs(value: str) -> Dict[str, str]:
    pairs = {}
    for item in value.split(","):
        if "=" not in item:
            continue
        key, _, val = item.partition("=")
        pairs[key.strip()] = val.strip()
    return pairs

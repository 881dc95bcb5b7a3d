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
AWS node provider for FlyGrid.

Discovers worker nodes as running EC2 instances that carry a configured set
of tags, and terminates the matching instance when a node is removed.

Cloud config keys:
    provider: Must be "aws"
    region: AWS region (falls back to the boto3 default chain)
    tag_filters: Mapping of tag name to required value
    use_private_ip: Build urls from private addresses (default True)
    node_url_template: Url template with an ``{ip}`` placeholder
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional, Set

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from flygrid.exceptions import NodeProviderError
from flygrid.nodes.providers import NodeProvider, ProviderType
from flygrid.utils.logger import logger

DEFAULT_URL_TEMPLATE = "http://{ip}:5555/wd/hub"


class AWSNodeProvider(NodeProvider):
    """Cloud-elastic provider over EC2 instances."""

    provider_type = ProviderType.CLOUD

    def __init__(self, cloud_config: Mapping[str, Any], client: Optional[Any] = None) -> None:
        self.region = cloud_config.get("region")
        self.tag_filters: Dict[str, str] = dict(cloud_config.get("tag_filters") or {})
        self.use_private_ip = bool(cloud_config.get("use_private_ip", True))
        self.url_template = cloud_config.get("node_url_template", DEFAULT_URL_TEMPLATE)
        self._client = client or boto3.client("ec2", region_name=self.region)

    def _filters(self) -> List[Dict[str, Any]]:
        filters = [{"Name": "instance-state-name", "Values": ["running"]}]
        for name, value in sorted(self.tag_filters.items()):
            filters.append({"Name": f"tag:{name}", "Values": [value]})
        return filters

    def _instances(self) -> Iterator[Dict[str, Any]]:
        try:
            paginator = self._client.get_paginator("describe_instances")
            for page in paginator.paginate(Filters=self._filters()):
                for reservation in page.get("Reservations", []):
                    yield from reservation.get("Instances", [])
        except (BotoCoreError, ClientError) as e:
            raise NodeProviderError(f"Failed to list EC2 instances: {e}", provider="aws") from e

    def _url_for(self, instance: Dict[str, Any]) -> Optional[str]:
        key = "PrivateIpAddress" if self.use_private_ip else "PublicIpAddress"
        ip = instance.get(key)
        if not ip:
            return None
        return self.url_template.format(ip=ip)

    def _urls_by_instance(self) -> Dict[str, str]:
        urls = {}
        for instance in self._instances():
            url = self._url_for(instance)
            if url:
                urls[url] = instance["InstanceId"]
        return urls

    def list_live_nodes(self) -> Set[str]:
        return set(self._urls_by_instance())

    def remove(self, url: str) -> None:
        instance_id = self._urls_by_instance().get(url)
        if instance_id is None:
            logger.warning(f"No running EC2 instance found for {url}")
            return

        logger.info(f"Terminating EC2 instance {instance_id} for {url}")
        try:
            self._client.terminate_instances(InstanceIds=[instance_id])
        except (BotoCoreError, ClientError) as e:
            raise NodeProviderError(
                f"Failed to terminate EC2 instance {instance_id}: {e}", provider="aws"
            ) from e

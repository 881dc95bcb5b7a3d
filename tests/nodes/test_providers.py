# Copyright 2026 Firefly Software Solutions Inc
# SPDX-License-Identifier: Apache-2.0

"""Unit tests for node providers and provider selection."""

from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError

from flygrid.config import DEFAULT_NODE_URL, NodePoolConfig
from flygrid.exceptions import ConfigurationError, NodeProviderError
from flygrid.nodes.aws import AWSNodeProvider
from flygrid.nodes.providers import (
    CustomNodeProvider,
    NodeProvider,
    ProviderType,
    StaticNodeProvider,
    custom_provider,
    node_provider_from_config,
)


class RecordingProvider:
    """Duck-typed provider used to exercise custom installation."""

    def __init__(self):
        self.removed = []

    def list_live_nodes(self):
        return ["http://10.0.0.1:5555/wd/hub"]

    def remove(self, url):
        self.removed.append(url)


def client_error(operation):
    return ClientError({"Error": {"Code": "UnauthorizedOperation", "Message": "denied"}}, operation)


class TestStaticNodeProvider:
    """Tests for StaticNodeProvider."""

    def test_default_endpoint(self):
        provider = StaticNodeProvider()

        assert provider.list_live_nodes() == {DEFAULT_NODE_URL}
        assert provider.provider_type == ProviderType.STATIC

    def test_configured_list(self):
        provider = StaticNodeProvider(["http://a:1", "http://b:1", "http://a:1"])

        assert provider.list_live_nodes() == {"http://a:1", "http://b:1"}

    def test_remove_is_noop(self):
        provider = StaticNodeProvider(["http://a:1"])

        provider.remove("http://a:1")

        assert provider.list_live_nodes() == {"http://a:1"}


class TestCustomProvider:
    """Tests for custom provider installation."""

    def test_from_mapping(self):
        remove = MagicMock()
        provider = custom_provider({
            "list_live_nodes": lambda: ["http://a:1"],
            "remove": remove,
        })

        assert isinstance(provider, CustomNodeProvider)
        assert provider.list_live_nodes() == {"http://a:1"}
        provider.remove("http://a:1")
        remove.assert_called_once_with("http://a:1")

    def test_mapping_without_remove(self):
        provider = custom_provider({"list_live_nodes": lambda: []})

        provider.remove("http://a:1")

        assert provider.list_live_nodes() == set()

    def test_mapping_missing_listing(self):
        with pytest.raises(ConfigurationError):
            custom_provider({"remove": lambda url: None})

    def test_mapping_with_unknown_operation(self):
        with pytest.raises(ConfigurationError):
            custom_provider({"list_live_nodes": lambda: [], "add": lambda url: None})

    def test_provider_instance_used_as_is(self):
        provider = StaticNodeProvider(["http://a:1"])

        assert custom_provider(provider) is provider

    def test_duck_typed_object(self):
        impl = RecordingProvider()
        provider = custom_provider(impl)

        assert provider.list_live_nodes() == {"http://10.0.0.1:5555/wd/hub"}
        provider.remove("http://10.0.0.1:5555/wd/hub")
        assert impl.removed == ["http://10.0.0.1:5555/wd/hub"]

    def test_import_path(self):
        """A 'module:attribute' path naming a provider class is instantiated."""
        provider = custom_provider("flygrid.nodes.providers:StaticNodeProvider")

        assert isinstance(provider, StaticNodeProvider)
        assert provider.list_live_nodes() == {DEFAULT_NODE_URL}

    @pytest.mark.parametrize("path", ["no_colon", "missing.module:Thing", "flygrid.nodes:Missing"])
    def test_bad_import_path(self, path):
        with pytest.raises(ConfigurationError):
            custom_provider(path)

    def test_unsupported_object(self):
        with pytest.raises(ConfigurationError):
            custom_provider(42)


class TestNodeProviderFromConfig:
    """Tests for provider selection."""

    def test_static_by_default(self):
        provider = node_provider_from_config(NodePoolConfig())

        assert isinstance(provider, StaticNodeProvider)
        assert provider.list_live_nodes() == {DEFAULT_NODE_URL}

    def test_static_node_list(self):
        provider = node_provider_from_config(NodePoolConfig(node_list=["http://a:1"]))

        assert provider.list_live_nodes() == {"http://a:1"}

    def test_explicit_implementation_wins(self):
        impl = StaticNodeProvider(["http://custom:1"])
        config = NodePoolConfig(
            node_provider=impl,
            cloud_config={"provider": "aws"},
            node_list=["http://a:1"],
        )

        assert node_provider_from_config(config) is impl

    def test_aws_cloud_config(self):
        with patch("flygrid.nodes.aws.boto3") as mock_boto3:
            provider = node_provider_from_config(
                NodePoolConfig(cloud_config={"provider": "aws", "region": "eu-west-1"})
            )

        assert isinstance(provider, AWSNodeProvider)
        assert provider.provider_type == ProviderType.CLOUD
        mock_boto3.client.assert_called_once_with("ec2", region_name="eu-west-1")

    def test_unsupported_cloud_provider(self):
        """Unsupported cloud providers fail fast with a user-visible error."""
        config = NodePoolConfig(cloud_config={"provider": "gcp"})

        with pytest.raises(ConfigurationError) as exc_info:
            node_provider_from_config(config)

        assert "AWS is the only currently supported provider" in str(exc_info.value)
        assert exc_info.value.user_visible is True
        assert exc_info.value.status == 500

    def test_no_memoization(self):
        config = NodePoolConfig(node_list=["http://a:1"])

        assert node_provider_from_config(config) is not node_provider_from_config(config)


class TestAWSNodeProvider:
    """Tests for AWSNodeProvider."""

    @pytest.fixture
    def ec2(self):
        client = MagicMock()
        paginator = MagicMock()
        paginator.paginate.return_value = [
            {
                "Reservations": [
                    {
                        "Instances": [
                            {"InstanceId": "i-1", "PrivateIpAddress": "10.0.0.1", "PublicIpAddress": "3.3.3.1"},
                            {"InstanceId": "i-2", "PrivateIpAddress": "10.0.0.2"},
                        ]
                    }
                ]
            },
            {"Reservations": [{"Instances": [{"InstanceId": "i-3"}]}]},
        ]
        client.get_paginator.return_value = paginator
        return client

    def test_list_live_nodes(self, ec2):
        provider = AWSNodeProvider({"provider": "aws", "tag_filters": {"role": "selenium"}}, client=ec2)

        assert provider.list_live_nodes() == {
            "http://10.0.0.1:5555/wd/hub",
            "http://10.0.0.2:5555/wd/hub",
        }
        ec2.get_paginator.assert_called_once_with("describe_instances")
        filters = ec2.get_paginator.return_value.paginate.call_args.kwargs["Filters"]
        assert {"Name": "instance-state-name", "Values": ["running"]} in filters
        assert {"Name": "tag:role", "Values": ["selenium"]} in filters

    def test_public_ip_and_template(self, ec2):
        provider = AWSNodeProvider(
            {
                "provider": "aws",
                "use_private_ip": False,
                "node_url_template": "http://{ip}:4444",
            },
            client=ec2,
        )

        assert provider.list_live_nodes() == {"http://3.3.3.1:4444"}

    def test_remove_terminates_instance(self, ec2):
        provider = AWSNodeProvider({"provider": "aws"}, client=ec2)

        provider.remove("http://10.0.0.2:5555/wd/hub")

        ec2.terminate_instances.assert_called_once_with(InstanceIds=["i-2"])

    def test_remove_unknown_url(self, ec2):
        provider = AWSNodeProvider({"provider": "aws"}, client=ec2)

        provider.remove("http://10.9.9.9:5555/wd/hub")

        ec2.terminate_instances.assert_not_called()

    def test_listing_failure(self, ec2):
        ec2.get_paginator.return_value.paginate.side_effect = client_error("DescribeInstances")
        provider = AWSNodeProvider({"provider": "aws"}, client=ec2)

        with pytest.raises(NodeProviderError) as exc_info:
            provider.list_live_nodes()

        assert exc_info.value.provider == "aws"

    def test_terminate_failure(self, ec2):
        ec2.terminate_instances.side_effect = client_error("TerminateInstances")
        provider = AWSNodeProvider({"provider": "aws"}, client=ec2)

        with pytest.raises(NodeProviderError):
            provider.remove("http://10.0.0.1:5555/wd/hub")

    def test_is_a_node_provider(self, ec2):
        assert isinstance(AWSNodeProvider({"provider": "aws"}, client=ec2), NodeProvider)

"""Shared fixtures."""

from unittest.mock import MagicMock

import pytest

from fleet_provisioner.aws_client import AWSInfrastructure
from fleet_provisioner.config import RunConfig
from fleet_provisioner.poller import StagePoller

from .helpers import (
    LISTENER_ARN,
    LOAD_BALANCER_ARN,
    LOAD_BALANCER_DNS,
    REGION,
    TARGET_GROUP_ARN,
    FakeClock,
    auto_scaling_group,
    source_instance,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def run_config() -> RunConfig:
    return RunConfig(group_name="fleet_a", instance_id="i-0001", instances=2, region=REGION)


@pytest.fixture
def poller(clock: FakeClock) -> StagePoller:
    return StagePoller(tick=1, timeout=10, sleep=clock.sleep, clock=clock)


@pytest.fixture
def boto_clients():
    """MagicMock ec2, elbv2 and autoscaling clients"""
    return MagicMock(), MagicMock(), MagicMock()


@pytest.fixture
def infrastructure(boto_clients) -> AWSInfrastructure:
    ec2, elbv2, autoscaling = boto_clients
    return AWSInfrastructure(region=REGION, project="fleet_a", ec2=ec2, elbv2=elbv2, autoscaling=autoscaling)


@pytest.fixture
def control_plane() -> MagicMock:
    """A control plane client where every stage succeeds"""
    client = MagicMock()
    client.region = REGION
    client.describe_instance.return_value = source_instance()
    client.get_default_vpc.return_value = {"VpcId": "vpc-default", "State": "available"}
    client.get_default_subnets.return_value = ["subnet-a", "subnet-b"]
    client.create_image.return_value = "ami-0001"
    client.get_image_state.side_effect = ["pending", "pending", "available"]
    client.create_launch_template.return_value = "lt-0001"
    client.create_target_group.return_value = TARGET_GROUP_ARN
    client.create_load_balancer.return_value = {
        "LoadBalancerArn": LOAD_BALANCER_ARN,
        "DNSName": LOAD_BALANCER_DNS,
        "State": {"Code": "provisioning"},
    }
    client.get_load_balancer_state.side_effect = ["provisioning", "active"]
    client.load_balancer_exists.return_value = False
    client.create_listener.return_value = LISTENER_ARN
    client.describe_auto_scaling_group.side_effect = [
        auto_scaling_group(0),
        auto_scaling_group(1, total=2),
        auto_scaling_group(2),
    ]
    return client

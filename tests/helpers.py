"""Test helpers shared across modules."""

from botocore.exceptions import ClientError


REGION = "us-east-1"
TARGET_GROUP_ARN = "arn:aws:elasticloadbalancing:us-east-1:123456789012:targetgroup/fleet-a/0123456789abcdef"
LOAD_BALANCER_ARN = "arn:aws:elasticloadbalancing:us-east-1:123456789012:loadbalancer/app/fleet-a/0123456789abcdef"
LISTENER_ARN = "arn:aws:elasticloadbalancing:us-east-1:123456789012:listener/app/fleet-a/0123456789abcdef/fedcba"
LOAD_BALANCER_DNS = "fleet-a-1234567890.us-east-1.elb.amazonaws.com"


class FakeClock:
    """Stands in for time.monotonic/time.sleep; sleeping advances the clock"""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def client_error(code: str, message: str = "boom", operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def source_instance() -> dict:
    return {
        "InstanceId": "i-0001",
        "InstanceType": "t3.micro",
        "KeyName": "deploy-key",
        "VpcId": "vpc-source",
        "Placement": {"AvailabilityZone": "us-east-1a", "GroupName": "", "Tenancy": "default"},
        "Licenses": [{"LicenseConfigurationArn": "arn:aws:license-manager:us-east-1:123456789012:license-configuration:lic-1"}],
        "NetworkInterfaces": [
            {
                "NetworkInterfaceId": "eni-1",
                "SubnetId": "subnet-source",
                "Groups": [{"GroupId": "sg-1", "GroupName": "web"}],
                "Association": {"PublicIp": "203.0.113.10"},
                "Attachment": {"DeviceIndex": 0, "DeleteOnTermination": True, "NetworkCardIndex": 0},
                "InterfaceType": "interface",
                "Description": "",
            }
        ],
    }


def auto_scaling_group(healthy: int, total: int = None) -> dict:
    total = healthy if total is None else total
    instances = []
    for index in range(total):
        in_service = index < healthy
        instances.append({
            "InstanceId": f"i-fleet{index}",
            "LifecycleState": "InService" if in_service else "Pending",
            "HealthStatus": "Healthy" if in_service else "Unhealthy",
        })
    return {"AutoScalingGroupName": "fleet_a", "Instances": instances}



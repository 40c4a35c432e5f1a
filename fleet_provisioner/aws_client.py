"""
Thin boto3 facade over the EC2, Elastic Load Balancing v2 and Auto Scaling
control planes.

Every method issues exactly one request (or one paginated listing) and turns
botocore failures into TransientCallError, so that callers decide what is
retried. Nothing here waits or retries on its own.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .errors import CardinalityError, TerminalStateError, TransientCallError

logger = logging.getLogger(__name__)

SPOT_MARKET = "spot"
LATEST_VERSION = "$Latest"
METRICS_GRANULARITY = "1Minute"

# Placement fields a launch template accepts; the availability zone is left
# to the auto scaling group, which spreads instances across subnets.
PLACEMENT_FIELDS = (
    "Affinity",
    "GroupName",
    "GroupId",
    "HostId",
    "HostResourceGroupArn",
    "PartitionNumber",
    "SpreadDomain",
    "Tenancy",
)

IMAGE_NOT_FOUND = {"InvalidAMIID.NotFound", "InvalidAMIID.Unavailable"}
LAUNCH_TEMPLATE_NOT_FOUND = {"InvalidLaunchTemplateId.NotFound", "InvalidLaunchTemplateName.NotFoundException"}
TARGET_GROUP_NOT_FOUND = {"TargetGroupNotFound"}
LOAD_BALANCER_NOT_FOUND = {"LoadBalancerNotFound"}


def _single(items: List[Dict], kind: str, key: str) -> Dict:
    if len(items) != 1:
        raise CardinalityError(kind, key, len(items))
    return items[0]


def _error_code_in(codes: Iterable[str]) -> Callable[[TransientCallError], bool]:
    return lambda error: error.error_code in codes


def _is_missing_group(error: TransientCallError) -> bool:
    # Auto Scaling reports unknown groups as a generic ValidationError
    return error.error_code == "ValidationError" and "not found" in str(error.cause).lower()


def extract_license_specifications(instance: Dict) -> List[Dict]:
    return [
        {"LicenseConfigurationArn": license["LicenseConfigurationArn"]}
        for license in instance.get("Licenses", [])
        if license.get("LicenseConfigurationArn")
    ]


def extract_placement(instance: Dict) -> Dict:
    placement = instance.get("Placement", {})
    result = {
        key: placement[key]
        for key in PLACEMENT_FIELDS
        if placement.get(key) not in (None, "")
    }
    # a placement group is referenced by id or by name, never both
    if "GroupId" in result:
        result.pop("GroupName", None)
    return result


def extract_network_interfaces(instance: Dict) -> List[Dict]:
    """Network interface shape of the instance, without security groups

    Subnets, addresses and security groups are resolved when the group
    launches an instance, so only the interface layout is kept.
    """
    interfaces = []
    for interface in instance.get("NetworkInterfaces", []):
        attachment = interface.get("Attachment", {})
        request = {
            "DeviceIndex": attachment.get("DeviceIndex", 0),
            "DeleteOnTermination": attachment.get("DeleteOnTermination", True),
        }
        if "NetworkCardIndex" in attachment:
            request["NetworkCardIndex"] = attachment["NetworkCardIndex"]
        if interface.get("Description"):
            request["Description"] = interface["Description"]
        if interface.get("InterfaceType") in ("efa", "efa-only"):
            request["InterfaceType"] = interface["InterfaceType"]
        if request["DeviceIndex"] == 0:
            request["AssociatePublicIpAddress"] = "Association" in interface
        interfaces.append(request)
    return sorted(interfaces, key=lambda request: (request.get("NetworkCardIndex", 0), request["DeviceIndex"]))


def build_launch_template_data(image_id: str, instance: Dict) -> Dict:
    """Launch template data for spot instances shaped like the given instance"""
    data: Dict[str, Any] = {
        "ImageId": image_id,
        "InstanceType": instance["InstanceType"],
        "InstanceMarketOptions": {"MarketType": SPOT_MARKET},
    }
    if instance.get("KernelId"):
        data["KernelId"] = instance["KernelId"]
    if instance.get("KeyName"):
        data["KeyName"] = instance["KeyName"]
    licenses = extract_license_specifications(instance)
    if licenses:
        data["LicenseSpecifications"] = licenses
    placement = extract_placement(instance)
    if placement:
        data["Placement"] = placement
    interfaces = extract_network_interfaces(instance)
    if interfaces:
        data["NetworkInterfaces"] = interfaces
    return data


def count_healthy_instances(group: Dict) -> int:
    """Number of group instances that are both InService and Healthy"""
    return sum(
        1
        for instance in group.get("Instances", [])
        if instance.get("LifecycleState") == "InService" and instance.get("HealthStatus") == "Healthy"
    )


class AWSInfrastructure:
    def __init__(
        self,
        region: Optional[str] = None,
        project: Optional[str] = None,
        ec2=None,
        elbv2=None,
        autoscaling=None,
    ):
        """Initialize AWS clients"""
        session = boto3.session.Session(region_name=region)
        self.region = region or session.region_name
        self.project = project
        self.ec2 = ec2 or session.client("ec2")
        self.elbv2 = elbv2 or session.client("elbv2")
        self.autoscaling = autoscaling or session.client("autoscaling")

    def _call(self, operation: str, method: Callable, **params) -> Any:
        try:
            return method(**params)
        except (ClientError, BotoCoreError) as e:
            raise TransientCallError(operation, e) from e

    def _delete(self, operation: str, is_missing: Callable[[TransientCallError], bool], method: Callable, **params) -> bool:
        """Issue a delete call; returns False if the resource was already gone"""
        try:
            self._call(operation, method, **params)
        except TransientCallError as e:
            if is_missing(e):
                logger.info(f"{operation}: resource already gone ({e.error_code})")
                return False
            raise
        return True

    def _tags(self, name: str) -> List[Dict[str, str]]:
        tags = [{"Key": "Name", "Value": name}]
        if self.project:
            tags.append({"Key": "Project", "Value": self.project})
        return tags

    # Inventory

    def describe_instance(self, instance_id: str) -> Dict:
        """Get the description of the source instance"""
        response = self._call("describe instance", self.ec2.describe_instances, InstanceIds=[instance_id])
        reservation = _single(response.get("Reservations", []), "reservations", f"instance id {instance_id}")
        return _single(reservation.get("Instances", []), "instances", f"instance id {instance_id}")

    def get_default_vpc(self) -> Dict:
        """Get the default VPC of the account, which must be available"""
        response = self._call(
            "describe default vpc",
            self.ec2.describe_vpcs,
            Filters=[{"Name": "isDefault", "Values": ["true"]}],
        )
        vpc = _single(response.get("Vpcs", []), "default VPCs", f"region {self.region}")
        if vpc.get("State") != "available":
            raise TerminalStateError(f"default VPC {vpc['VpcId']}", vpc.get("State"))
        return vpc

    def get_default_subnets(self, vpc_id: str) -> List[str]:
        """Get the default-for-AZ subnets of the VPC"""
        paginator = self.ec2.get_paginator("describe_subnets")
        pages = paginator.paginate(
            Filters=[
                {"Name": "vpc-id", "Values": [vpc_id]},
                {"Name": "default-for-az", "Values": ["true"]},
            ]
        )
        subnet_ids = []
        try:
            for page in pages:
                for subnet in page.get("Subnets", []):
                    if subnet.get("DefaultForAz"):
                        subnet_ids.append(subnet["SubnetId"])
        except (ClientError, BotoCoreError) as e:
            raise TransientCallError("describe subnets", e) from e
        if not subnet_ids:
            raise CardinalityError("default subnets", f"VPC {vpc_id}", 0)
        return subnet_ids

    # Image

    def create_image(self, instance_id: str, name: str) -> str:
        """Create an AMI from the instance; returns the image id"""
        response = self._call(
            "create image",
            self.ec2.create_image,
            InstanceId=instance_id,
            Name=name,
            NoReboot=False,
            TagSpecifications=[{"ResourceType": "image", "Tags": self._tags(name)}],
        )
        return response["ImageId"]

    def get_image_state(self, image_id: str) -> str:
        response = self._call("describe image", self.ec2.describe_images, ImageIds=[image_id])
        return _single(response.get("Images", []), "images", f"image id {image_id}")["State"]

    def deregister_image(self, image_id: str) -> bool:
        """Deregister the image together with the EBS snapshots it was built on"""
        return self._delete(
            "deregister image",
            _error_code_in(IMAGE_NOT_FOUND),
            self.ec2.deregister_image,
            ImageId=image_id,
            DeleteAssociatedSnapshots=True,
        )

    # Launch template

    def create_launch_template(self, name: str, image_id: str, instance: Dict) -> str:
        """Create a launch template from the image and the instance shape; returns its id"""
        response = self._call(
            "create launch template",
            self.ec2.create_launch_template,
            LaunchTemplateName=name,
            LaunchTemplateData=build_launch_template_data(image_id, instance),
            TagSpecifications=[{"ResourceType": "launch-template", "Tags": self._tags(name)}],
        )
        return response["LaunchTemplate"]["LaunchTemplateId"]

    def delete_launch_template(self, launch_template_id: str) -> bool:
        return self._delete(
            "delete launch template",
            _error_code_in(LAUNCH_TEMPLATE_NOT_FOUND),
            self.ec2.delete_launch_template,
            LaunchTemplateId=launch_template_id,
        )

    # Target group

    def create_target_group(self, name: str, vpc_id: str, health_path: str, port: int) -> str:
        """Create an HTTP target group with a health check; returns its ARN"""
        response = self._call(
            "create target group",
            self.elbv2.create_target_group,
            Name=name,
            Protocol="HTTP",
            Port=port,
            VpcId=vpc_id,
            TargetType="instance",
            HealthCheckEnabled=True,
            HealthCheckProtocol="HTTP",
            HealthCheckPath=health_path,
            HealthCheckPort=str(port),
            Tags=self._tags(name),
        )
        target_group = _single(response.get("TargetGroups", []), "target groups", f"name {name!r}")
        return target_group["TargetGroupArn"]

    def delete_target_group(self, target_group_arn: str) -> bool:
        return self._delete(
            "delete target group",
            _error_code_in(TARGET_GROUP_NOT_FOUND),
            self.elbv2.delete_target_group,
            TargetGroupArn=target_group_arn,
        )

    # Load balancer

    def create_load_balancer(self, name: str, subnets: List[str]) -> Dict:
        """Create an internet-facing Application Load Balancer; returns its description"""
        response = self._call(
            "create load balancer",
            self.elbv2.create_load_balancer,
            Name=name,
            Subnets=subnets,
            Scheme="internet-facing",
            Type="application",
            Tags=self._tags(name),
        )
        return _single(response.get("LoadBalancers", []), "load balancers", f"name {name!r}")

    def get_load_balancer_state(self, load_balancer_arn: str) -> str:
        response = self._call(
            "describe load balancer",
            self.elbv2.describe_load_balancers,
            LoadBalancerArns=[load_balancer_arn],
        )
        load_balancer = _single(response.get("LoadBalancers", []), "load balancers", f"arn {load_balancer_arn}")
        return load_balancer["State"]["Code"]

    def load_balancer_exists(self, load_balancer_arn: str) -> bool:
        try:
            response = self._call(
                "describe load balancer",
                self.elbv2.describe_load_balancers,
                LoadBalancerArns=[load_balancer_arn],
            )
        except TransientCallError as e:
            if e.error_code in LOAD_BALANCER_NOT_FOUND:
                return False
            raise
        return bool(response.get("LoadBalancers"))

    def create_listener(self, load_balancer_arn: str, target_group_arn: str, port: int) -> str:
        """Forward all HTTP traffic on the port to the target group; returns the listener ARN"""
        response = self._call(
            "create listener",
            self.elbv2.create_listener,
            LoadBalancerArn=load_balancer_arn,
            Protocol="HTTP",
            Port=port,
            DefaultActions=[
                {
                    "Type": "forward",
                    "ForwardConfig": {
                        "TargetGroups": [{"TargetGroupArn": target_group_arn, "Weight": 1}],
                    },
                }
            ],
        )
        return _single(response.get("Listeners", []), "listeners", f"load balancer {load_balancer_arn}")["ListenerArn"]

    def delete_load_balancer(self, load_balancer_arn: str) -> bool:
        return self._delete(
            "delete load balancer",
            _error_code_in(LOAD_BALANCER_NOT_FOUND),
            self.elbv2.delete_load_balancer,
            LoadBalancerArn=load_balancer_arn,
        )

    # Auto scaling group

    def create_auto_scaling_group(
        self,
        name: str,
        launch_template_id: str,
        target_group_arn: str,
        subnets: List[str],
        min_size: int,
        max_size: int,
        desired_capacity: int,
        health_check_grace_period: int,
    ) -> None:
        """Create an Auto Scaling Group using the launch template"""
        self._call(
            "create auto scaling group",
            self.autoscaling.create_auto_scaling_group,
            AutoScalingGroupName=name,
            LaunchTemplate={
                "LaunchTemplateId": launch_template_id,
                "Version": LATEST_VERSION,
            },
            MinSize=min_size,
            MaxSize=max_size,
            DesiredCapacity=desired_capacity,
            CapacityRebalance=True,
            VPCZoneIdentifier=",".join(subnets),
            TargetGroupARNs=[target_group_arn],
            HealthCheckType="ELB",
            HealthCheckGracePeriod=health_check_grace_period,
            Tags=[dict(tag, PropagateAtLaunch=True) for tag in self._tags(name)],
        )

    def describe_auto_scaling_group(self, name: str) -> Dict:
        response = self._call(
            "describe auto scaling group",
            self.autoscaling.describe_auto_scaling_groups,
            AutoScalingGroupNames=[name],
        )
        return _single(response.get("AutoScalingGroups", []), "auto scaling groups", f"name {name!r}")

    def enable_metrics_collection(self, name: str) -> None:
        self._call(
            "enable metrics collection",
            self.autoscaling.enable_metrics_collection,
            AutoScalingGroupName=name,
            Granularity=METRICS_GRANULARITY,
        )

    def delete_auto_scaling_group(self, name: str) -> bool:
        return self._delete(
            "delete auto scaling group",
            _is_missing_group,
            self.autoscaling.delete_auto_scaling_group,
            AutoScalingGroupName=name,
            ForceDelete=True,
        )

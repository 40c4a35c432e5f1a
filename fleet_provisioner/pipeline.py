"""
Staged provisioning of a load-balanced auto scaling fleet.

Stages run strictly in order and feed each other:

    describe instance -> discover network -> image -> launch template
        -> target group -> load balancer (+ listener) -> auto scaling group

Each created resource is recorded in the ProvisionedResourceSet as soon as
its create call returns, before it is polled. If any stage fails, the
pipeline rolls back whatever was recorded and re-raises the StageError with
the rollback report attached.
"""

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from .aws_client import AWSInfrastructure, count_healthy_instances
from .config import RunConfig
from .errors import CardinalityError, StageError, TransientCallError
from .links import health_check_url
from .names import DerivedNames, derive_names, validate_names
from .poller import PollStatus, StagePoller, classify_by_state
from .resources import ProvisionedResourceSet, ProvisioningResult
from .rollback import RollbackManager

logger = logging.getLogger(__name__)

STAGE_PROVISION = "provision"
STAGE_VALIDATE_NAMES = "validate names"
STAGE_DESCRIBE_INSTANCE = "describe instance"
STAGE_DISCOVER_NETWORK = "discover network"
STAGE_IMAGE = "image"
STAGE_LAUNCH_TEMPLATE = "launch template"
STAGE_TARGET_GROUP = "target group"
STAGE_LOAD_BALANCER = "load balancer"
STAGE_AUTO_SCALING_GROUP = "auto scaling group"

classify_image = classify_by_state(pending="pending", ready="available")
classify_load_balancer = classify_by_state(pending="provisioning", ready="active")


class ProvisioningPipeline:
    def __init__(
        self,
        config: RunConfig,
        client: AWSInfrastructure,
        poller: Optional[StagePoller] = None,
        rollback_manager: Optional[RollbackManager] = None,
    ):
        self.config = config
        self.client = client
        self.names: DerivedNames = derive_names(config.group_name)
        self.poller = poller or StagePoller(config.update_tick, config.update_timeout)
        self.rollback_manager = rollback_manager or RollbackManager(client)
        self.resources = ProvisionedResourceSet()

    @contextmanager
    def _stage(self, stage: str, resource: Optional[str] = None) -> Iterator[None]:
        logger.debug(f"stage {stage!r} started")
        try:
            yield
        except StageError:
            raise
        except Exception as e:
            raise StageError(stage, resource, e) from e

    def run(self) -> ProvisioningResult:
        """Provision the whole fleet, rolling everything back on failure"""
        try:
            return self._provision()
        except Exception as e:
            logger.error(f"provisioning aborted: {e}")
            report = self.rollback_manager.rollback(self.resources)
            if isinstance(e, StageError):
                e.rollback_report = report
                raise
            error = StageError(STAGE_PROVISION, None, e)
            error.rollback_report = report
            raise error from e

    def _provision(self) -> ProvisioningResult:
        with self._stage(STAGE_VALIDATE_NAMES):
            validate_names(self.names)

        instance = self.describe_instance()
        vpc_id, subnet_ids = self.discover_network()
        self._log_plan(instance, vpc_id, subnet_ids)

        image_id = self.create_image()
        launch_template_id = self.create_launch_template(image_id, instance)
        target_group_arn = self.create_target_group(vpc_id)
        load_balancer_arn, load_balancer_dns, listener_arn = self.create_load_balancer(target_group_arn, subnet_ids)
        self.create_auto_scaling_group(launch_template_id, target_group_arn, subnet_ids)

        return ProvisioningResult(
            image_id=image_id,
            launch_template_id=launch_template_id,
            target_group_arn=target_group_arn,
            load_balancer_arn=load_balancer_arn,
            load_balancer_name=self.names.load_balancer,
            load_balancer_dns=load_balancer_dns,
            listener_arn=listener_arn,
            auto_scaling_group_name=self.names.auto_scaling_group,
            vpc_id=vpc_id,
            subnet_ids=subnet_ids,
            health_check_url=health_check_url(load_balancer_dns, self.config.port, self.config.health_path),
        )

    def _log_plan(self, instance: Dict, vpc_id: str, subnet_ids: List[str]) -> None:
        cfg = self.config
        logger.info(f"will create an AMI {self.names.image!r} from the instance {cfg.instance_id}")
        logger.info(f"will create a launch template {self.names.launch_template!r}")
        logger.info(f"will create a target group {self.names.target_group!r} in VPC {vpc_id}")
        logger.info(f"will create a load balancer {self.names.load_balancer!r} in subnets {', '.join(subnet_ids)}")
        logger.info(
            f"will create an auto scaling group {self.names.auto_scaling_group!r} "
            f"with {cfg.instances} {instance['InstanceType']} spot instances"
        )

    def describe_instance(self) -> Dict:
        with self._stage(STAGE_DESCRIBE_INSTANCE, self.config.instance_id):
            return self.client.describe_instance(self.config.instance_id)

    def discover_network(self):
        """Default VPC and its default-for-AZ subnets"""
        with self._stage(STAGE_DISCOVER_NETWORK):
            vpc_id = self.client.get_default_vpc()["VpcId"]
            subnet_ids = self.client.get_default_subnets(vpc_id)
        logger.info(f"using default VPC {vpc_id} with subnets {', '.join(subnet_ids)}")
        return vpc_id, subnet_ids

    def create_image(self) -> str:
        name = self.names.image
        with self._stage(STAGE_IMAGE, name):
            image_id = self.client.create_image(self.config.instance_id, name)
            self.resources.image_id = image_id
            logger.info(f"creating image {image_id} ({name!r}) from instance {self.config.instance_id}")

            def fetch_state() -> str:
                state = self.client.get_image_state(image_id)
                logger.info(f"{image_id} ({name!r}): {state}")
                return state

            # a fresh AMI may not be listed yet, so an empty describe is retried too
            self.poller.wait_until_ready(
                f"image {image_id} ({name!r})",
                fetch_state,
                classify_image,
                retry_on=(TransientCallError, CardinalityError),
            )
        logger.info(f"image {image_id} is available")
        return image_id

    def create_launch_template(self, image_id: str, instance: Dict) -> str:
        name = self.names.launch_template
        with self._stage(STAGE_LAUNCH_TEMPLATE, name):
            launch_template_id = self.client.create_launch_template(name, image_id, instance)
            self.resources.launch_template_id = launch_template_id
        logger.info(f"created launch template {name!r} ({launch_template_id})")
        return launch_template_id

    def create_target_group(self, vpc_id: str) -> str:
        name = self.names.target_group
        with self._stage(STAGE_TARGET_GROUP, name):
            target_group_arn = self.client.create_target_group(
                name, vpc_id, self.config.health_path, self.config.port
            )
            self.resources.target_group_arn = target_group_arn
        logger.info(f"created target group {name!r} ({target_group_arn})")
        return target_group_arn

    def create_load_balancer(self, target_group_arn: str, subnet_ids: List[str]):
        """Create the balancer, wait for it to become active, then add the listener"""
        name = self.names.load_balancer
        with self._stage(STAGE_LOAD_BALANCER, name):
            load_balancer = self.client.create_load_balancer(name, subnet_ids)
            load_balancer_arn = load_balancer["LoadBalancerArn"]
            self.resources.load_balancer_arn = load_balancer_arn
            self.resources.load_balancer_name = name
            load_balancer_dns = load_balancer["DNSName"]
            logger.info(f"creating load balancer {name!r} ({load_balancer_arn})")

            def fetch_state() -> str:
                state = self.client.get_load_balancer_state(load_balancer_arn)
                logger.info(f"load balancer {name!r}: {state}")
                return state

            self.poller.wait_until_ready(f"load balancer {name!r}", fetch_state, classify_load_balancer)
            # the listener is rejected until the balancer is active
            listener_arn = self.client.create_listener(load_balancer_arn, target_group_arn, self.config.port)
        logger.info(f"created listener {listener_arn} on port {self.config.port}")
        return load_balancer_arn, load_balancer_dns, listener_arn

    def _classify_group(self, group: Dict) -> PollStatus:
        if count_healthy_instances(group) >= self.config.instances:
            return PollStatus.READY
        return PollStatus.PENDING

    def create_auto_scaling_group(self, launch_template_id: str, target_group_arn: str, subnet_ids: List[str]) -> None:
        name = self.names.auto_scaling_group
        cfg = self.config
        with self._stage(STAGE_AUTO_SCALING_GROUP, name):
            self.client.create_auto_scaling_group(
                name,
                launch_template_id,
                target_group_arn,
                subnet_ids,
                min_size=cfg.instances,
                max_size=cfg.max_instances,
                desired_capacity=cfg.instances,
                health_check_grace_period=cfg.grace_period_seconds,
            )
            self.resources.auto_scaling_group_name = name
            logger.info(f"creating auto scaling group {name!r}")

            def fetch_state() -> Dict:
                group = self.client.describe_auto_scaling_group(name)
                instances = group.get("Instances", [])
                for instance in instances:
                    logger.info(
                        f"group {name!r}, instance {instance['InstanceId']!r}: "
                        f"{instance.get('LifecycleState')}, {instance.get('HealthStatus')}"
                    )
                logger.info(
                    f"group {name!r}: {len(instances)} instances in total, "
                    f"{count_healthy_instances(group)} instances are in service and healthy ({cfg.instances} needed)"
                )
                return group

            self.poller.wait_until_ready(f"auto scaling group {name!r}", fetch_state, self._classify_group)
        logger.info(f"successfully created an auto scaling group {name!r}")
        self._enable_metrics(name)

    def _enable_metrics(self, name: str) -> None:
        try:
            self.client.enable_metrics_collection(name)
        except TransientCallError as e:
            logger.warning(
                f"cannot enable metrics collection for the group {name!r}, consider adding them in the console manually: {e}"
            )
            return
        logger.info(f"enabled metrics collection for the group {name!r}")

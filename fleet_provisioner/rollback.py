"""Best-effort teardown of a partially provisioned fleet."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from .aws_client import AWSInfrastructure
from .poller import PollStatus, StagePoller
from .resources import ProvisionedResourceSet

logger = logging.getLogger(__name__)

KIND_LOAD_BALANCER = "load balancer"

# load balancer deletion is asynchronous; its target group stays in use until it is gone
DETACH_TICK = 5
DETACH_TIMEOUT = 300


@dataclass(frozen=True)
class RollbackFailure:
    kind: str
    identifier: str
    error: Exception

    def __str__(self) -> str:
        return f"cannot delete {self.kind} {self.identifier!r}: {self.error}"


@dataclass
class RollbackReport:
    deleted: List[Tuple[str, str]] = field(default_factory=list)
    failures: List[RollbackFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class RollbackManager:
    """Deletes recorded resources in reverse creation order

    Every populated resource gets its own delete attempt; a failed delete is
    recorded and the remaining ones still run. rollback() never raises.
    """

    def __init__(self, client: AWSInfrastructure, poller: Optional[StagePoller] = None):
        self.client = client
        self.poller = poller or StagePoller(DETACH_TICK, DETACH_TIMEOUT)

    def _plan(self, resources: ProvisionedResourceSet) -> List[Tuple[str, Optional[str], Callable[[str], bool]]]:
        return [
            ("auto scaling group", resources.auto_scaling_group_name, self.client.delete_auto_scaling_group),
            (KIND_LOAD_BALANCER, resources.load_balancer_arn, self.client.delete_load_balancer),
            ("target group", resources.target_group_arn, self.client.delete_target_group),
            ("launch template", resources.launch_template_id, self.client.delete_launch_template),
            ("image", resources.image_id, self.client.deregister_image),
        ]

    def rollback(self, resources: ProvisionedResourceSet) -> RollbackReport:
        report = RollbackReport()
        if resources.is_empty():
            logger.info("nothing to roll back")
            return report

        for kind, identifier, delete in self._plan(resources):
            if not identifier:
                continue
            try:
                removed = delete(identifier)
            except Exception as e:
                failure = RollbackFailure(kind, identifier, e)
                logger.error(str(failure))
                report.failures.append(failure)
                continue
            logger.info(f"deleted {kind} {identifier!r}")
            report.deleted.append((kind, identifier))
            if kind == KIND_LOAD_BALANCER and removed and resources.target_group_arn:
                self._wait_for_load_balancer_deletion(identifier)

        if report.failures:
            logger.error(f"rollback finished with {len(report.failures)} failure(s); clean up the rest manually")
        else:
            logger.info("rollback finished, every created resource was deleted")
        return report

    def _wait_for_load_balancer_deletion(self, load_balancer_arn: str) -> None:
        try:
            self.poller.wait_until_ready(
                f"deletion of load balancer {load_balancer_arn!r}",
                lambda: self.client.load_balancer_exists(load_balancer_arn),
                lambda exists: PollStatus.PENDING if exists else PollStatus.READY,
            )
        except Exception as e:
            logger.warning(f"deleting the target group anyway: {e}")

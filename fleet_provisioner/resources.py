"""Records of what a provisioning run created."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ProvisionedResourceSet:
    """Identifiers of every resource confirmed created during one run

    A field is only filled in once the create call returned an identifier,
    and before the resource is polled, so a failure while waiting still
    leaves it here for rollback.
    """

    image_id: Optional[str] = None
    launch_template_id: Optional[str] = None
    target_group_arn: Optional[str] = None
    load_balancer_arn: Optional[str] = None
    load_balancer_name: Optional[str] = None
    # set once the group create call returned
    auto_scaling_group_name: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((
            self.image_id,
            self.launch_template_id,
            self.target_group_arn,
            self.load_balancer_arn,
            self.auto_scaling_group_name,
        ))


@dataclass(frozen=True)
class ProvisioningResult:
    image_id: str
    launch_template_id: str
    target_group_arn: str
    load_balancer_arn: str
    load_balancer_name: str
    load_balancer_dns: str
    listener_arn: str
    auto_scaling_group_name: str
    vpc_id: str
    subnet_ids: List[str] = field(default_factory=list)
    health_check_url: str = ""

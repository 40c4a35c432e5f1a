"""
Resource naming for a fleet.

Every artifact is named after the logical group name. Elastic Load Balancing
names (target group, load balancer) are the strictest: 3 to 32 alphanumerics
or hyphens, no leading or trailing hyphen, and no "internal" prefix. The
group name may contain underscores, so those are turned into hyphens for the
ELB names.
"""

import re
from dataclasses import dataclass
from typing import Dict

from .errors import NameValidationError

IMAGE_SUFFIX = " v1"
MAX_IMAGE_NAME = 128
MAX_LAUNCH_TEMPLATE_NAME = 128

ROLE_IMAGE = "image"
ROLE_LAUNCH_TEMPLATE = "launch template"
ROLE_TARGET_GROUP = "target group"
ROLE_LOAD_BALANCER = "load balancer"
ROLE_AUTO_SCALING_GROUP = "auto scaling group"


@dataclass(frozen=True)
class NameRule:
    min_length: int
    max_length: int
    charset: re.Pattern
    charset_hint: str
    elb_style: bool = False


ELB_NAME_RULE = NameRule(3, 32, re.compile(r"^[a-zA-Z0-9-]+$"), "alphanumeric characters or hyphens", elb_style=True)

NAME_RULES: Dict[str, NameRule] = {
    ROLE_IMAGE: NameRule(3, MAX_IMAGE_NAME, re.compile(r"^[a-zA-Z0-9()\[\] ./'@_-]+$"),
                         "alphanumeric characters, spaces or ()[]./-'@_"),
    ROLE_LAUNCH_TEMPLATE: NameRule(3, MAX_LAUNCH_TEMPLATE_NAME, re.compile(r"^[a-zA-Z0-9()./_-]+$"),
                                   "alphanumeric characters or ()./-_"),
    ROLE_TARGET_GROUP: ELB_NAME_RULE,
    ROLE_LOAD_BALANCER: ELB_NAME_RULE,
    ROLE_AUTO_SCALING_GROUP: NameRule(1, 255, re.compile(r"^[^\x00-\x08\x0a-\x1f\x7f]+$"), "printable characters"),
}


@dataclass(frozen=True)
class DerivedNames:
    image: str
    launch_template: str
    target_group: str
    load_balancer: str
    auto_scaling_group: str

    def by_role(self) -> Dict[str, str]:
        return {
            ROLE_IMAGE: self.image,
            ROLE_LAUNCH_TEMPLATE: self.launch_template,
            ROLE_TARGET_GROUP: self.target_group,
            ROLE_LOAD_BALANCER: self.load_balancer,
            ROLE_AUTO_SCALING_GROUP: self.auto_scaling_group,
        }


def elb_name(group_name: str) -> str:
    """Name used for the target group and the load balancer"""
    return group_name.replace("_", "-")


def image_name(group_name: str) -> str:
    return group_name[:MAX_IMAGE_NAME - len(IMAGE_SUFFIX)] + IMAGE_SUFFIX


def launch_template_name(group_name: str) -> str:
    return group_name[:MAX_LAUNCH_TEMPLATE_NAME]


def derive_names(group_name: str) -> DerivedNames:
    """Map the logical group name to the name of every artifact"""
    return DerivedNames(
        image=image_name(group_name),
        launch_template=launch_template_name(group_name),
        target_group=elb_name(group_name),
        load_balancer=elb_name(group_name),
        auto_scaling_group=group_name,
    )


def validate_name(name: str, role: str) -> None:
    """Raise NameValidationError if the name is not acceptable for the role"""
    rule = NAME_RULES[role]
    if len(name) < rule.min_length:
        raise NameValidationError(
            role, name, f"it shouldn't contain less than {rule.min_length} symbols, but contains {len(name)}"
        )
    if len(name) > rule.max_length:
        raise NameValidationError(
            role, name, f"it shouldn't contain more than {rule.max_length} symbols, but contains {len(name)}"
        )
    if not rule.charset.match(name):
        raise NameValidationError(role, name, f"it must contain only {rule.charset_hint}")
    if not rule.elb_style:
        return
    if name.startswith("-") or name.endswith("-"):
        raise NameValidationError(role, name, "it must not begin or end with a hyphen")
    if name.startswith("internal"):
        raise NameValidationError(role, name, 'it must not begin with "internal"')


def validate_names(names: DerivedNames) -> None:
    """Validate every derived name, failing on the first bad one"""
    for role, name in names.by_role().items():
        validate_name(name, role)

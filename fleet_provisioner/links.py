"""AWS console links for the created artifacts."""

from urllib.parse import quote

EC2_CONSOLE = "https://console.aws.amazon.com/ec2/v2/home?region={region}"
AUTOSCALING_CONSOLE = "https://console.aws.amazon.com/ec2autoscaling/home?region={region}"


def image_link(region: str, image_id: str) -> str:
    return EC2_CONSOLE.format(region=region) + f"#ImageDetails:imageId={image_id}"


def launch_template_link(region: str, launch_template_id: str) -> str:
    return EC2_CONSOLE.format(region=region) + f"#LaunchTemplateDetails:launchTemplateId={launch_template_id}"


def target_group_link(region: str, target_group_arn: str) -> str:
    return EC2_CONSOLE.format(region=region) + f"#TargetGroup:targetGroupArn={target_group_arn}"


def load_balancer_link(region: str, load_balancer_name: str) -> str:
    return EC2_CONSOLE.format(region=region) + f"#LoadBalancers:search={quote(load_balancer_name)}"


def auto_scaling_group_link(region: str, group_name: str) -> str:
    return AUTOSCALING_CONSOLE.format(region=region) + f"#/details/{quote(group_name)}"


def health_check_url(dns_name: str, port: int, health_path: str) -> str:
    return f"http://{dns_name}:{port}{health_path}"

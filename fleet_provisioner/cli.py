"""
Command line entry point

Usage:
    fleet-provisioner -group my_service -instance i-0123456789abcdef0 \\
        -instances 2 -port 80 -health-path /health

AWS credentials and the region come from the usual boto3 sources
(environment variables, shared config, instance profile). Pass -region to
override the region.
"""

import argparse
import logging
import sys
from typing import List, Optional

from botocore.exceptions import BotoCoreError
from pydantic import ValidationError

from . import links
from .aws_client import AWSInfrastructure
from .config import (
    DEFAULT_HEALTH_CHECK_GRACE_PERIOD,
    DEFAULT_HEALTH_PATH,
    DEFAULT_INSTANCES,
    DEFAULT_PORT,
    DEFAULT_UPDATE_TICK,
    DEFAULT_UPDATE_TIMEOUT,
    RunConfig,
    parse_duration,
)
from .errors import StageError
from .pipeline import ProvisioningPipeline
from .resources import ProvisioningResult
from .rollback import RollbackReport

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2


def duration(value: str):
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"{e}; use duration strings like 45s, 1m or 1h30m")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fleet-provisioner",
        description="Create a load-balanced auto scaling group of spot instances from a single EC2 instance.",
        allow_abbrev=False,
    )
    parser.add_argument("-group", "--group", required=True,
                        help="the name of the auto scaling group to create; seeds every other resource name")
    parser.add_argument("-instance", "--instance", required=True,
                        help="EC2 instance ID to create the service from")
    parser.add_argument("-health-path", "--health-path", default=DEFAULT_HEALTH_PATH,
                        help="the health HTTP handler for the service (default: %(default)s)")
    parser.add_argument("-port", "--port", type=int, default=DEFAULT_PORT,
                        help="the HTTP traffic port for the service (default: %(default)s)")
    parser.add_argument("-instances", "--instances", type=int, default=DEFAULT_INSTANCES,
                        help="number of instances in the group; min and desired capacity are set to this value, "
                             "max capacity to twice this value (default: %(default)s)")
    parser.add_argument("-health-check-grace-period", "--health-check-grace-period", type=duration,
                        default=DEFAULT_HEALTH_CHECK_GRACE_PERIOD,
                        help="time for a launched instance to become healthy (default: %(default)s)")
    parser.add_argument("-update-timeout", "--update-timeout", type=duration, default=DEFAULT_UPDATE_TIMEOUT,
                        help="time limit for each resource to become ready (default: %(default)s)")
    parser.add_argument("-update-tick", "--update-tick", type=duration, default=DEFAULT_UPDATE_TICK,
                        help="time between status checks; lower values may speed things up (default: %(default)s)")
    parser.add_argument("-region", "--region", default=None,
                        help="AWS region (default: AWS_DEFAULT_REGION or the shared config)")
    parser.add_argument("-verbose", "--verbose", action="store_true", help="enable debug logging")
    return parser


def build_config(args: argparse.Namespace) -> RunConfig:
    return RunConfig(
        group_name=args.group,
        instance_id=args.instance,
        instances=args.instances,
        health_path=args.health_path,
        port=args.port,
        health_check_grace_period=args.health_check_grace_period,
        update_timeout=args.update_timeout,
        update_tick=args.update_tick,
        region=args.region,
    )


def print_summary(result: ProvisioningResult, region: str) -> None:
    print("=" * 60)
    print("Deployment Complete!")
    print("=" * 60)
    print(f"AMI: {result.image_id}")
    print(f"  {links.image_link(region, result.image_id)}")
    print(f"Launch Template: {result.launch_template_id}")
    print(f"  {links.launch_template_link(region, result.launch_template_id)}")
    print(f"Target Group ARN: {result.target_group_arn}")
    print(f"  {links.target_group_link(region, result.target_group_arn)}")
    print(f"Load Balancer ARN: {result.load_balancer_arn}")
    print(f"Load Balancer DNS: {result.load_balancer_dns}")
    print(f"  {links.load_balancer_link(region, result.load_balancer_name)}")
    print(f"Auto Scaling Group: {result.auto_scaling_group_name}")
    print(f"  {links.auto_scaling_group_link(region, result.auto_scaling_group_name)}")
    print()
    print(f"Check out the health status: {result.health_check_url}")


def print_rollback_report(report: Optional[RollbackReport], file=None) -> None:
    if report is None:
        return
    file = file or sys.stdout
    for kind, identifier in report.deleted:
        print(f"  ✓ deleted {kind} {identifier}", file=file)
    for failure in report.failures:
        print(f"  ✗ {failure}", file=file)
    if not report.deleted and not report.failures:
        print("  nothing was created, nothing to roll back", file=file)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # botocore is chatty at debug level
    logging.getLogger("botocore").setLevel(logging.WARNING)

    try:
        config = build_config(args)
    except ValidationError as e:
        print(f"✗ Invalid configuration: {e}", file=sys.stderr)
        return EXIT_USAGE

    try:
        client = AWSInfrastructure(region=config.region, project=config.group_name)
    except BotoCoreError as e:
        print(f"✗ Cannot set up AWS clients: {e}", file=sys.stderr)
        return EXIT_USAGE

    pipeline = ProvisioningPipeline(config, client)
    try:
        result = pipeline.run()
    except StageError as e:
        print(f"\n✗ Infrastructure deployment failed: {e}", file=sys.stderr)
        print("Rollback:", file=sys.stderr)
        print_rollback_report(e.rollback_report, file=sys.stderr)
        return EXIT_FAILURE

    print_summary(result, client.region)
    print("\n✓ Infrastructure deployment completed successfully")
    return EXIT_OK

"""RollbackManager tests."""

from unittest.mock import MagicMock, call

from fleet_provisioner.errors import TransientCallError
from fleet_provisioner.poller import StagePoller
from fleet_provisioner.resources import ProvisionedResourceSet
from fleet_provisioner.rollback import RollbackManager

from .helpers import LOAD_BALANCER_ARN, TARGET_GROUP_ARN, FakeClock, client_error


def rollback_manager(client: MagicMock, clock: FakeClock) -> RollbackManager:
    return RollbackManager(client, poller=StagePoller(tick=5, timeout=20, sleep=clock.sleep, clock=clock))


def full_resource_set() -> ProvisionedResourceSet:
    return ProvisionedResourceSet(
        image_id="ami-0001",
        launch_template_id="lt-0001",
        target_group_arn=TARGET_GROUP_ARN,
        load_balancer_arn=LOAD_BALANCER_ARN,
        load_balancer_name="fleet-a",
        auto_scaling_group_name="fleet_a",
    )


class TestRollback:
    def test_image_and_launch_template_only(self) -> None:
        client = MagicMock()
        resources = ProvisionedResourceSet(image_id="ami-0001", launch_template_id="lt-0001")

        report = RollbackManager(client).rollback(resources)

        assert client.mock_calls == [
            call.delete_launch_template("lt-0001"),
            call.deregister_image("ami-0001"),
        ]
        assert report.ok
        assert report.deleted == [("launch template", "lt-0001"), ("image", "ami-0001")]

    def test_failed_delete_does_not_stop_the_rest(self) -> None:
        client = MagicMock()
        client.delete_launch_template.side_effect = TransientCallError(
            "delete launch template", client_error("UnauthorizedOperation")
        )
        resources = ProvisionedResourceSet(image_id="ami-0001", launch_template_id="lt-0001")

        report = RollbackManager(client).rollback(resources)

        client.deregister_image.assert_called_once_with("ami-0001")
        assert not report.ok
        assert len(report.failures) == 1
        assert report.failures[0].kind == "launch template"
        assert report.failures[0].identifier == "lt-0001"
        assert "lt-0001" in str(report.failures[0])
        assert report.deleted == [("image", "ami-0001")]

    def test_reverse_creation_order(self, clock) -> None:
        client = MagicMock()
        client.load_balancer_exists.return_value = False

        rollback_manager(client, clock).rollback(full_resource_set())

        assert client.mock_calls == [
            call.delete_auto_scaling_group("fleet_a"),
            call.delete_load_balancer(LOAD_BALANCER_ARN),
            call.load_balancer_exists(LOAD_BALANCER_ARN),
            call.delete_target_group(TARGET_GROUP_ARN),
            call.delete_launch_template("lt-0001"),
            call.deregister_image("ami-0001"),
        ]

    def test_never_raises(self, clock) -> None:
        client = MagicMock()
        client.delete_auto_scaling_group.side_effect = RuntimeError("unexpected")
        client.delete_load_balancer.side_effect = TransientCallError("delete load balancer", client_error("Throttling"))

        report = rollback_manager(client, clock).rollback(full_resource_set())

        assert [failure.kind for failure in report.failures] == ["auto scaling group", "load balancer"]
        assert [kind for kind, _ in report.deleted] == ["target group", "launch template", "image"]

    def test_target_group_waits_for_load_balancer_deletion(self, clock) -> None:
        client = MagicMock()
        client.load_balancer_exists.side_effect = [True, True, False]

        report = rollback_manager(client, clock).rollback(full_resource_set())

        assert client.load_balancer_exists.call_count == 3
        assert clock.sleeps == [5, 5]
        names = [name for name, _, _ in client.mock_calls]
        assert names.index("delete_target_group") > names.index("load_balancer_exists")
        assert report.ok

    def test_target_group_deleted_even_if_load_balancer_lingers(self, clock) -> None:
        client = MagicMock()
        client.load_balancer_exists.return_value = True
        client.delete_target_group.side_effect = TransientCallError(
            "delete target group", client_error("ResourceInUse")
        )

        report = rollback_manager(client, clock).rollback(full_resource_set())

        assert client.load_balancer_exists.call_count == 4
        client.delete_target_group.assert_called_once_with(TARGET_GROUP_ARN)
        assert [failure.kind for failure in report.failures] == ["target group"]
        assert [kind for kind, _ in report.deleted] == ["auto scaling group", "load balancer", "launch template", "image"]

    def test_no_wait_when_load_balancer_was_already_gone(self, clock) -> None:
        client = MagicMock()
        client.delete_load_balancer.return_value = False

        rollback_manager(client, clock).rollback(full_resource_set())

        client.load_balancer_exists.assert_not_called()

    def test_nothing_recorded(self) -> None:
        client = MagicMock()

        report = RollbackManager(client).rollback(ProvisionedResourceSet())

        assert client.mock_calls == []
        assert report.ok
        assert report.deleted == []

"""
Tests for CloudFormation stack management functionality.
"""

from unittest.mock import Mock

import pytest

from cloudformation.client import StackOperationClient
from cloudformation.errors import (
    CompositeFailure,
    ProviderError,
    StackError,
    StackNotFoundError,
)
from cloudformation.models import (
    SharedResources,
    StackResource,
    StackState,
    StackSummary,
)
from cloudformation.stack_manager import StackManager
from cloudformation.tracker import LifecycleTracker
from config import TrackerConfig
from conftest import (
    T0,
    FakeClient,
    FakeClock,
    ScriptedSubmitClient,
    make_event,
    not_found,
)


class TestStackManager:
    """Test CloudFormation stack management."""

    def create_manager(self, client: StackOperationClient, **config) -> StackManager:
        """Create a test manager with a scripted client and fake clock."""
        clock = FakeClock()
        tracker = LifecycleTracker(client, clock=clock, sleep=clock.sleep)
        return StackManager(config=TrackerConfig(**config), client=client, tracker=tracker)

    def test_create(self) -> None:
        """Test creating a stack submits CreateStack with tags and parameters."""
        client = FakeClient()
        client.responses["CreateStack"] = {"StackId": "arn:stack/demo/1"}
        manager = self.create_manager(client)

        identity = manager.create("demo", "{}", {"tag.env": "prod", "Size": "3"})

        assert identity.name == "demo"
        assert identity.id == "arn:stack/demo/1"
        submitted = client.submitted[0]
        assert submitted["action"] == "CreateStack"
        assert submitted["params"]["Tags.member.2.Key"] == "env"
        assert submitted["params"]["Parameters.member.1.ParameterKey"] == "Size"

    def test_create_merges_default_tags(self) -> None:
        """Test configured default tags are added and explicit tags win."""
        client = FakeClient()
        manager = self.create_manager(
            client, default_tags={"team": "platform", "env": "dev"}
        )

        manager.create("demo", "{}", {"tag.env": "prod"})

        params = client.submitted[0]["params"]
        tags = {
            params[f"Tags.member.{i}.Key"]: params[f"Tags.member.{i}.Value"]
            for i in range(1, 4)
        }
        assert tags == {"Name": "demo", "env": "prod", "team": "platform"}

    def test_update_ignores_tags(self) -> None:
        """Test updating never sends tags."""
        client = FakeClient()
        client.responses["UpdateStack"] = {"StackId": "arn:stack/demo/1"}
        manager = self.create_manager(client, default_tags={"team": "platform"})

        manager.update("demo", "{}", {"tag.env": "prod", "Size": "3"})

        params = client.submitted[0]["params"]
        assert client.submitted[0]["action"] == "UpdateStack"
        assert not any(key.startswith("Tags.") for key in params)

    def test_create_rejected(self) -> None:
        """Test a rejected create raises the provider error."""
        client = FakeClient()
        client.responses["CreateStack"] = ProviderError(
            "AlreadyExistsException", "Stack [demo] already exists"
        )
        manager = self.create_manager(client)

        with pytest.raises(ProviderError):
            manager.create("demo", "{}")

    def test_set_policy_from_dict(self) -> None:
        """Test a dict policy is JSON encoded."""
        client = FakeClient()
        manager = self.create_manager(client)

        manager.set_policy("demo", {"Statement": []})

        assert client.submitted[0]["params"]["StackPolicyBody"] == '{"Statement": []}'

    def test_get_template(self) -> None:
        """Test fetching the stack template."""
        client = FakeClient()
        client.responses["GetTemplate"] = {"TemplateBody": '{"Resources": {}}'}

        assert self.create_manager(client).get_template("demo") == '{"Resources": {}}'

    def test_get_template_missing_stack(self) -> None:
        """Test a missing stack is reported as StackNotFoundError."""
        client = FakeClient()
        client.responses["GetTemplate"] = ProviderError(
            "ValidationError", "Stack with id demo does not exist"
        )

        with pytest.raises(StackNotFoundError):
            self.create_manager(client).get_template("demo")

    def test_get_stack_vpc(self) -> None:
        """Test the VPC is found among stack resources."""
        client = FakeClient()
        client.list_stack_resources = Mock(
            return_value=[
                StackResource("Sg", "sg-1", "AWS::EC2::SecurityGroup", "CREATE_COMPLETE"),
                StackResource("Vpc", "vpc-1", "AWS::EC2::VPC", "CREATE_COMPLETE"),
            ]
        )
        manager = self.create_manager(client)

        assert manager.get_stack_vpc("demo") == "vpc-1"

        client.list_stack_resources.return_value = []
        with pytest.raises(StackError, match="No VPC found"):
            manager.get_stack_vpc("demo")

    def test_get_stack_parameters(self) -> None:
        """Test parameters recorded on the stack are returned."""
        client = FakeClient()
        client.responses["DescribeStacks"] = {
            "Stacks": [
                {
                    "StackName": "demo",
                    "Parameters": [
                        {"ParameterKey": "KeyName", "ParameterValue": "ops"},
                    ],
                }
            ]
        }

        assert self.create_manager(client).get_stack_parameters("demo") == {
            "KeyName": "ops"
        }

    def test_get_stack_parameters_missing_stack(self) -> None:
        """Test a stack that does not exist raises StackNotFoundError."""
        client = FakeClient()
        client.responses["DescribeStacks"] = not_found("demo")

        with pytest.raises(StackNotFoundError):
            self.create_manager(client).get_stack_parameters("demo")

    def test_get_shared_resources(self) -> None:
        """Test parameters and shared resource ids are collected from a base stack."""
        client = FakeClient()
        client.responses["DescribeStacks"] = {
            "Stacks": [
                {
                    "StackName": "base",
                    "Parameters": [
                        {"ParameterKey": "KeyName", "ParameterValue": "ops"},
                        {"ParameterKey": "DnsZone", "ParameterValue": "example.com"},
                    ],
                }
            ]
        }
        client.list_stack_resources = Mock(
            return_value=[
                StackResource("WebSG", "sg-1", "AWS::EC2::SecurityGroup", "CREATE_COMPLETE"),
                StackResource("DbSG", "sg-2", "AWS::EC2::SecurityGroup", "CREATE_COMPLETE"),
                StackResource(
                    "Profile",
                    "base-Profile-1",
                    "AWS::IAM::InstanceProfile",
                    "CREATE_COMPLETE",
                ),
                StackResource("Vpc", "vpc-1", "AWS::EC2::VPC", "CREATE_COMPLETE"),
                StackResource("Bucket", "base-bucket", "AWS::S3::Bucket", "CREATE_COMPLETE"),
            ]
        )

        shared = self.create_manager(client).get_shared_resources("base")

        assert shared == SharedResources(
            parameters={"KeyName": "ops", "DnsZone": "example.com"},
            security_groups={"WebSG": "sg-1", "DbSG": "sg-2"},
            roles={"Profile": "base-Profile-1"},
            vpc_id="vpc-1",
        )
        client.list_stack_resources.assert_called_once_with("base")

    def test_get_shared_resources_without_vpc(self) -> None:
        """Test a base stack without a VPC leaves vpc_id empty."""
        client = FakeClient()
        client.responses["DescribeStacks"] = {"Stacks": [{"StackName": "base"}]}
        client.list_stack_resources = Mock(return_value=[])

        shared = self.create_manager(client).get_shared_resources("base")

        assert shared == SharedResources()

    def test_status_of_stack_that_does_not_exist(self) -> None:
        """Test status reports a rejected lookup as a missing stack."""
        client = ScriptedSubmitClient({"DescribeStacks": [not_found("demo")]})

        state = self.create_manager(client).status("demo")

        assert not state.found
        assert state.name == "demo"

    def test_exists_and_list_active(self) -> None:
        """Test existence and listing use a single DescribeStacks snapshot."""
        client = FakeClient()
        client.describe_stacks = Mock(
            return_value=[
                StackState(name="web", found=True, status="CREATE_COMPLETE"),
                StackState(name="db", found=True, status="UPDATE_COMPLETE"),
            ]
        )
        manager = self.create_manager(client)

        assert manager.exists("web")
        assert not manager.exists("cache")
        assert manager.list_active() == ["web", "db"]
        assert client.describe_stacks.call_count == 3

    def test_list_all(self) -> None:
        """Test listing all stacks includes deleted ones."""
        client = FakeClient()
        summaries = [StackSummary("old", "id-1", "DELETE_COMPLETE")]
        client.list_stacks = Mock(return_value=summaries)

        assert self.create_manager(client).list_all() == summaries

    def test_create_and_wait_success(self) -> None:
        """Test create then wait returns the final state."""
        client = FakeClient(["CREATE_IN_PROGRESS", "CREATE_COMPLETE"])
        manager = self.create_manager(client)

        state = manager.create_and_wait("demo", "{}")

        assert state.status == "CREATE_COMPLETE"
        assert client.submitted[0]["action"] == "CreateStack"
        assert len(client.status_queries) == 2

    def test_update_and_wait_failure(self) -> None:
        """Test update failures surface as CompositeFailure."""
        client = FakeClient(
            ["UPDATE_IN_PROGRESS", "UPDATE_ROLLBACK_IN_PROGRESS"],
            events=[make_event("UPDATE_FAILED", "Invalid runtime", T0)],
        )
        manager = self.create_manager(client)

        with pytest.raises(CompositeFailure) as exc_info:
            manager.update_and_wait("demo", "{}")

        assert exc_info.value.failures == ("UPDATE_FAILED: Invalid runtime",)

    def test_delete_and_wait_stack_gone(self) -> None:
        """Test a stack that disappears counts as deleted."""
        client = FakeClient(["DELETE_IN_PROGRESS", None])
        manager = self.create_manager(client)

        manager.delete_and_wait("demo")

        assert client.submitted[0]["action"] == "DeleteStack"
        assert len(client.status_queries) == 2

    def test_delete_and_wait_rejected_lookup(self) -> None:
        """Test a "does not exist" rejection after delete counts as deleted."""
        client = ScriptedSubmitClient(
            {
                "DescribeStacks": [
                    {"Stacks": [{"StackName": "demo", "StackStatus": "DELETE_IN_PROGRESS"}]},
                    not_found("demo"),
                ]
            }
        )

        self.create_manager(client).delete_and_wait("demo")

        assert client.calls == ["DeleteStack", "DescribeStacks", "DescribeStacks"]

    def test_delete_and_wait_delete_complete(self) -> None:
        """Test DELETE_COMPLETE is a successful delete."""
        client = FakeClient(["DELETE_COMPLETE"])

        self.create_manager(client).delete_and_wait("demo")

    def test_delete_and_wait_other_complete(self) -> None:
        """Test a different final status is an error."""
        client = FakeClient(["UPDATE_ROLLBACK_COMPLETE"], reason="rolled back")

        with pytest.raises(StackError, match="UPDATE_ROLLBACK_COMPLETE: rolled back"):
            self.create_manager(client).delete_and_wait("demo")

    def test_wait_uses_config_timeout(self) -> None:
        """Test the configured timeout applies when none is given."""
        client = FakeClient(["CREATE_IN_PROGRESS"])
        manager = self.create_manager(client, timeout=10)

        with pytest.raises(StackError):
            manager.wait("demo")

        assert len(client.status_queries) == 4

    def test_wait_for_complete_missing(self) -> None:
        """Test waiting on a missing stack raises StackNotFoundError."""
        client = FakeClient([None])

        with pytest.raises(StackNotFoundError):
            self.create_manager(client).wait_for_complete("demo")

    def test_default_tracker_uses_config(self) -> None:
        """Test the tracker is built from polling settings."""
        manager = StackManager(
            config=TrackerConfig(poll_interval=1.5, lookback=4.0), client=FakeClient()
        )

        assert manager.tracker.interval == 1.5
        assert manager.tracker.lookback.total_seconds() == 4.0
        assert manager.tracker.aggregator is manager.aggregator


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

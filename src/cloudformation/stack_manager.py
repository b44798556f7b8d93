"""
CloudFormation stack management operations.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from config import TrackerConfig

from .client import QueryClient, StackOperationClient
from .errors import ProviderError, StackError, StackNotFoundError
from .failures import FailureAggregator
from .models import (
    SharedResources,
    StackIdentity,
    StackResource,
    StackState,
    StackSummary,
)
from .parameters import ParameterEncoder, Template
from .tracker import LifecycleTracker

logger = logging.getLogger(__name__)

VPC_TYPE = "AWS::EC2::VPC"
SECURITY_GROUP_TYPE = "AWS::EC2::SecurityGroup"
INSTANCE_PROFILE_TYPE = "AWS::IAM::InstanceProfile"


class StackManager:
    """Manage CloudFormation stack operations."""

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        client: Optional[StackOperationClient] = None,
        tracker: Optional[LifecycleTracker] = None,
    ):
        """
        Initialize stack manager.

        Args:
            config: Region, credentials profile and polling settings
            client: Client to use instead of a QueryClient built from config
            tracker: Tracker to use instead of one built from config
        """
        self.config = config or TrackerConfig()
        self.client = client or QueryClient.from_config(self.config)
        self.encoder: ParameterEncoder = self.client.encoder
        self.aggregator = FailureAggregator(self.client)
        self.tracker = tracker or LifecycleTracker(
            self.client,
            aggregator=self.aggregator,
            interval=self.config.poll_interval,
            lookback=self.config.lookback,
        )

    @property
    def region(self) -> str:
        return self.config.region

    def create(
        self, name: str, template: Template, options: Optional[Mapping[str, str]] = None
    ) -> StackIdentity:
        """
        Create a CloudFormation stack.

        Options are taken as template parameters, except for:
            StackPolicyDuringUpdateBody: optional update policy
            tag.KEY: tags applied to the stack at creation
        """
        merged = {**self.config.tag_options(), **(options or {})}
        response = self.client.submit("CreateStack", self.encoder.create(name, template, merged))
        stack_id = response.get("StackId", "")
        logger.info(f"Creating stack {name} ({stack_id})")
        return StackIdentity(name=name, id=stack_id)

    def update(
        self, name: str, template: Template, options: Optional[Mapping[str, str]] = None
    ) -> StackIdentity:
        """Update an existing stack. Tag options are ignored."""
        response = self.client.submit("UpdateStack", self.encoder.update(name, template, options))
        stack_id = response.get("StackId", "")
        logger.info(f"Updating stack {name} ({stack_id})")
        return StackIdentity(name=name, id=stack_id)

    def delete(self, name: str) -> None:
        """Delete an entire stack by name."""
        self.client.submit("DeleteStack", self.encoder.delete(name))
        logger.info(f"Deleting stack {name}")

    def set_policy(self, name: str, policy: Union[Template, Dict[str, Any]]) -> None:
        """Set a stack policy."""
        if isinstance(policy, dict):
            policy = json.dumps(policy)
        self.client.submit("SetStackPolicy", self.encoder.set_policy(name, policy))
        logger.info(f"Set stack policy on {name}")

    def get_template(self, name: str) -> str:
        """Get the template body the stack was last deployed with."""
        try:
            response = self.client.submit("GetTemplate", self.encoder.get_template(name))
        except ProviderError as e:
            if e.is_not_found:
                raise StackNotFoundError(name) from e
            raise
        return str(response.get("TemplateBody", ""))

    def list_resources(self, name: str) -> List[StackResource]:
        """List all resources associated with a stack."""
        return self.client.list_stack_resources(name)

    def get_stack_vpc(self, name: str) -> str:
        """Get the physical id of the stack's VPC."""
        for resource in self.list_resources(name):
            if resource.resource_type == VPC_TYPE:
                return resource.physical_id
        raise StackError("No VPC found")

    def get_stack_parameters(self, name: str) -> Dict[str, str]:
        """Get the parameters a stack was deployed with."""
        try:
            response = self.client.submit(
                "DescribeStacks", self.encoder.describe_stacks(name)
            )
        except ProviderError as e:
            if e.is_not_found:
                raise StackNotFoundError(name) from e
            raise
        for stack in response.get("Stacks", []):
            if stack.get("StackName") == name:
                return {
                    param["ParameterKey"]: param.get("ParameterValue", "")
                    for param in stack.get("Parameters", [])
                }
        raise StackNotFoundError(name)

    def get_shared_resources(self, name: str) -> SharedResources:
        """
        Collect what dependent stacks need from a base stack.

        Args:
            name: Base stack name

        Returns:
            The base stack's parameters, plus the physical ids of its security
            groups, instance profiles and VPC
        """
        parameters = self.get_stack_parameters(name)
        security_groups: Dict[str, str] = {}
        roles: Dict[str, str] = {}
        vpc_id = ""

        for resource in self.list_resources(name):
            if resource.resource_type == SECURITY_GROUP_TYPE:
                security_groups[resource.logical_id] = resource.physical_id
            elif resource.resource_type == INSTANCE_PROFILE_TYPE:
                roles[resource.logical_id] = resource.physical_id
            elif resource.resource_type == VPC_TYPE:
                vpc_id = resource.physical_id

        return SharedResources(
            parameters=parameters,
            security_groups=security_groups,
            roles=roles,
            vpc_id=vpc_id,
        )

    def status(self, name: str) -> StackState:
        """Get current stack state; a stack that does not exist is reported as missing."""
        try:
            return self.client.query_status(name)
        except ProviderError as e:
            if e.is_not_found:
                return StackState.missing(name)
            raise

    def exists(self, name: str) -> bool:
        """Check whether a stack with this name is active."""
        return any(stack.name == name for stack in self.client.describe_stacks())

    def list_active(self) -> List[str]:
        """Return the names of all active stacks."""
        return [stack.name for stack in self.client.describe_stacks()]

    def list_all(self) -> List[StackSummary]:
        """List all stacks, including inactive and deleted ones."""
        return self.client.list_stacks()

    def create_and_wait(
        self,
        name: str,
        template: Template,
        options: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> StackState:
        self.create(name, template, options)
        return self.wait(name, timeout)

    def update_and_wait(
        self,
        name: str,
        template: Template,
        options: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> StackState:
        self.update(name, template, options)
        return self.wait(name, timeout)

    def delete_and_wait(self, name: str, timeout: Optional[float] = None) -> None:
        """Delete a stack and wait until it is gone."""
        self.delete(name)
        try:
            final = self.tracker.wait_for_complete(name, self._timeout(timeout))
        except StackNotFoundError:
            logger.info(f"Stack {name} deleted")
            return

        if final.status != "DELETE_COMPLETE":
            raise StackError(f"{final.status}: {final.status_reason}")
        logger.info(f"Stack {name} deleted")

    def wait(self, name: str, timeout: Optional[float] = None) -> StackState:
        """Wait for the current create or update on a stack to finish."""
        return self.tracker.wait(name, self._timeout(timeout))

    def wait_for_complete(self, name: str, timeout: Optional[float] = None) -> StackState:
        """Wait for any final _COMPLETE status."""
        return self.tracker.wait_for_complete(name, self._timeout(timeout))

    def _timeout(self, timeout: Optional[float]) -> float:
        return self.config.timeout if timeout is None else timeout

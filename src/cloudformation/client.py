"""
Clients that execute CloudFormation Query actions.

``StackOperationClient`` is the narrow interface the tracker and manager
depend on. ``QueryClient`` implements it with a boto3 session for
credentials and endpoint resolution, botocore for SigV4 signing and XML
decoding, and requests for HTTP.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterator, List, Optional
from urllib.parse import urlencode

import boto3
import requests
from botocore.auth import SigV4Auth
from botocore.awsrequest import AWSRequest
from botocore.exceptions import BotoCoreError
from botocore.parsers import ResponseParserError, create_parser

from .errors import ProviderError, StackError, TransportError
from .models import StackEvent, StackResource, StackState, StackSummary
from .parameters import ParameterEncoder

logger = logging.getLogger(__name__)


class StackOperationClient(ABC):
    """Executes CloudFormation actions and decodes their results."""

    def __init__(self, encoder: Optional[ParameterEncoder] = None):
        self.encoder = encoder or ParameterEncoder()

    @abstractmethod
    def submit(self, action: str, params: Dict[str, str]) -> Dict[str, Any]:
        """
        Execute a named action with flattened wire parameters.

        Returns:
            The decoded result body

        Raises:
            ProviderError: The control plane rejected the request
            TransportError: The request could not be completed
        """

    def query_status(self, name: str) -> StackState:
        """
        Return a snapshot of the named stack's current state.

        A stack absent from the response is reported as missing. A rejected
        query, including "does not exist", is raised as ProviderError.
        """
        response = self.submit("DescribeStacks", self.encoder.describe_stacks(name))
        for stack in response.get("Stacks", []):
            if name in (stack.get("StackName"), stack.get("StackId")):
                return StackState.from_response(stack)
        return StackState.missing(name)

    def query_events(self, name: str) -> List[StackEvent]:
        """Return the stack's full event history, oldest first."""
        events = [
            StackEvent.from_response(event)
            for event in self._paginate(
                "DescribeStackEvents",
                lambda token: self.encoder.describe_stack_events(name, token),
                "StackEvents",
            )
        ]
        # The API pages newest first
        events.reverse()
        return events

    def describe_stacks(self) -> List[StackState]:
        """Return every active stack."""
        return [
            StackState.from_response(stack)
            for stack in self._paginate(
                "DescribeStacks",
                lambda token: self.encoder.describe_stacks(None, token),
                "Stacks",
            )
        ]

    def list_stacks(self) -> List[StackSummary]:
        """Return every stack, including deleted ones."""
        return [
            StackSummary.from_response(summary)
            for summary in self._paginate(
                "ListStacks", self.encoder.list_stacks, "StackSummaries"
            )
        ]

    def list_stack_resources(self, name: str) -> List[StackResource]:
        return [
            StackResource.from_response(resource)
            for resource in self._paginate(
                "ListStackResources",
                lambda token: self.encoder.list_stack_resources(name, token),
                "StackResourceSummaries",
            )
        ]

    def _paginate(
        self,
        action: str,
        build: Callable[[Optional[str]], Dict[str, str]],
        key: str,
    ) -> Iterator[Dict[str, Any]]:
        token: Optional[str] = None
        while True:
            response = self.submit(action, build(token))
            yield from response.get(key, [])
            token = response.get("NextToken")
            if not token:
                break


class QueryClient(StackOperationClient):
    """CloudFormation client speaking the signed Query protocol."""

    API_VERSION = "2010-05-15"
    SERVICE = "cloudformation"
    CONTENT_TYPE = "application/x-www-form-urlencoded; charset=utf-8"

    def __init__(
        self,
        region: str,
        profile: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        request_timeout: float = 30.0,
        session: Optional[boto3.Session] = None,
        http: Optional[requests.Session] = None,
        encoder: Optional[ParameterEncoder] = None,
    ):
        """
        Initialize the client.

        Args:
            region: AWS region
            profile: AWS profile to use
            endpoint_url: Override the resolved CloudFormation endpoint
            request_timeout: HTTP timeout in seconds
            session: boto3 session to take credentials from
            http: requests session used to send requests
        """
        super().__init__(encoder)
        self.region = region
        self.request_timeout = request_timeout

        session_args = {"region_name": region}
        if profile:
            session_args["profile_name"] = profile
        try:
            self.session = session or boto3.Session(**session_args)
            cloudformation = self.session.client(
                "cloudformation", region_name=region, endpoint_url=endpoint_url
            )
        except BotoCoreError as e:
            raise StackError(f"Unable to set up AWS session: {e}") from e

        self.endpoint_url = cloudformation.meta.endpoint_url
        self._service_model = cloudformation.meta.service_model
        self._parser = create_parser("query")
        self._http = http or requests.Session()

    @classmethod
    def from_config(cls, config: Any) -> "QueryClient":
        return cls(
            region=config.region,
            profile=config.profile,
            endpoint_url=config.endpoint_url,
            request_timeout=config.request_timeout,
        )

    def submit(self, action: str, params: Dict[str, str]) -> Dict[str, Any]:
        body = dict(params)
        body["Action"] = action
        body["Version"] = self.API_VERSION

        request = AWSRequest(
            method="POST",
            url=self.endpoint_url,
            data=urlencode(list(body.items())).encode("utf-8"),
            headers={"Content-Type": self.CONTENT_TYPE},
        )
        self._sign(request)

        logger.debug(f"{action} -> {self.endpoint_url}")
        try:
            response = self._http.post(
                request.url,
                data=request.body,
                headers=dict(request.headers.items()),
                timeout=self.request_timeout,
            )
        except requests.RequestException as e:
            raise TransportError(f"{action}: {e}") from e

        return self._decode(action, response)

    def _sign(self, request: AWSRequest) -> None:
        try:
            credentials = self.session.get_credentials()
            if credentials is None:
                raise StackError("Unable to locate AWS credentials")
            frozen = credentials.get_frozen_credentials()
        except BotoCoreError as e:
            raise StackError(f"Unable to load AWS credentials: {e}") from e
        SigV4Auth(frozen, self.SERVICE, self.region).add_auth(request)

    def _decode(self, action: str, response: requests.Response) -> Dict[str, Any]:
        operation = self._service_model.operation_model(action)
        try:
            parsed = self._parser.parse(
                {
                    "body": response.content,
                    "headers": response.headers,
                    "status_code": response.status_code,
                },
                operation.output_shape,
            )
        except ResponseParserError as e:
            raise TransportError(f"{action}: unreadable response: {e}") from e

        if "Error" in parsed:
            error = parsed["Error"]
            raise ProviderError(
                code=error.get("Code", ""),
                message=error.get("Message", ""),
                status_code=response.status_code,
                action=action,
            )

        parsed.pop("ResponseMetadata", None)
        return parsed

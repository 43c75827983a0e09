"""Shared fakes and fixtures for stackflow tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from stackflow.diagnostics import DiagnosticCoordinator, InMemoryDiagnosticsSink
from stackflow.documents import InMemoryDocumentStore
from stackflow.featureflags import RegionFeatureFlag
from stackflow.services.stack_api import WaiterResult, WaiterState
from stackflow.syntaxtree import YamlSyntaxTreeProvider
from stackflow.utils.retry import RetryOptions
from stackflow.workflows import WorkflowComponents

TEMPLATE_URI = "file:///templates/app.yaml"

TEMPLATE = """AWSTemplateFormatVersion: "2010-09-09"
Resources:
  Bucket:
    Type: AWS::S3::Bucket
    Properties:
      BucketName: my-bucket
  Queue:
    Type: AWS::SQS::Queue
"""


class FakeApiError(Exception):
    """Stands in for botocore's ClientError."""


class FakeStackApi:
    """Scriptable in-memory stack API recording every call."""

    def __init__(self, region: Optional[str] = "us-east-1") -> None:
        self.region = region
        self.calls: List[str] = []
        self.stacks: Dict[str, str] = {}
        self.created: List[Dict[str, Any]] = []
        self.executed: List[Dict[str, Any]] = []
        self.deleted_change_sets: List[str] = []
        self.deleted_stacks: List[str] = []
        self.uploads: List[Dict[str, str]] = []

        self.change_set_result = WaiterResult(state=WaiterState.SUCCESS)
        self.changes: List[Dict[str, Any]] = [
            {
                "Type": "Resource",
                "ResourceChange": {
                    "Action": "Add",
                    "LogicalResourceId": "Bucket",
                    "ResourceType": "AWS::S3::Bucket",
                },
            }
        ]
        self.deployment_result = WaiterResult(state=WaiterState.SUCCESS)
        self.stack_deleted_result = WaiterResult(state=WaiterState.SUCCESS)
        self.event_pages: List[Dict[str, Any]] = [{"OperationEvents": []}]
        self.stack_events: List[Dict[str, Any]] = []
        self.change_set_summaries: List[Dict[str, Any]] = []
        self.change_set_summaries_token: Optional[str] = None

        self.execute_error: Optional[Exception] = None
        self.describe_events_error: Optional[Exception] = None
        self.delete_change_set_failures = 0
        self.delete_stack_failures = 0
        self.change_set_lingers = False

    # ------------------------------------------------------------------
    async def describe_stacks(self, stack_name: str) -> Dict[str, Any]:
        self.calls.append("describe_stacks")
        if stack_name not in self.stacks:
            raise FakeApiError(f"Stack with id {stack_name} does not exist")
        return {"Stacks": [{"StackName": stack_name, "StackStatus": self.stacks[stack_name]}]}

    async def create_change_set(self, **params: Any) -> Dict[str, Any]:
        self.calls.append("create_change_set")
        self.created.append(params)
        if params["ChangeSetType"] in ("CREATE", "IMPORT") and params["StackName"] not in self.stacks:
            self.stacks[params["StackName"]] = "REVIEW_IN_PROGRESS"
        return {"Id": params["ChangeSetName"]}

    async def describe_change_set(
        self, stack_name: str, change_set_name: str, include_property_values: bool = True
    ) -> Dict[str, Any]:
        self.calls.append("describe_change_set")
        if change_set_name in self.deleted_change_sets and not self.change_set_lingers:
            raise FakeApiError(
                f"An error occurred (ChangeSetNotFound): ChangeSet [{change_set_name}] does not exist"
            )
        return {"ChangeSetName": change_set_name, "Changes": list(self.changes)}

    async def list_change_sets(
        self, stack_name: str, next_token: Optional[str] = None
    ) -> Dict[str, Any]:
        self.calls.append("list_change_sets")
        return {
            "Summaries": list(self.change_set_summaries),
            "NextToken": self.change_set_summaries_token,
        }

    async def execute_change_set(
        self,
        stack_name: str,
        change_set_name: str,
        client_request_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.calls.append("execute_change_set")
        if self.execute_error is not None:
            raise self.execute_error
        self.executed.append(
            {
                "StackName": stack_name,
                "ChangeSetName": change_set_name,
                "ClientRequestToken": client_request_token,
            }
        )
        return {}

    async def delete_change_set(self, stack_name: str, change_set_name: str) -> None:
        self.calls.append("delete_change_set")
        if self.delete_change_set_failures > 0:
            self.delete_change_set_failures -= 1
            raise FakeApiError("Throttling: Rate exceeded")
        self.deleted_change_sets.append(change_set_name)

    async def delete_stack(self, stack_name: str) -> None:
        self.calls.append("delete_stack")
        if self.delete_stack_failures > 0:
            self.delete_stack_failures -= 1
            raise FakeApiError("Throttling: Rate exceeded")
        self.deleted_stacks.append(stack_name)

    async def wait_until_change_set_created(
        self, stack_name: str, change_set_name: str
    ) -> WaiterResult:
        self.calls.append("wait_until_change_set_created")
        return self.change_set_result

    async def wait_until_stack_created(self, stack_name: str) -> WaiterResult:
        self.calls.append("wait_until_stack_created")
        return self.deployment_result

    async def wait_until_stack_updated(self, stack_name: str) -> WaiterResult:
        self.calls.append("wait_until_stack_updated")
        return self.deployment_result

    async def wait_until_stack_imported(self, stack_name: str) -> WaiterResult:
        self.calls.append("wait_until_stack_imported")
        return self.deployment_result

    async def wait_until_stack_deleted(self, stack_name: str) -> WaiterResult:
        self.calls.append("wait_until_stack_deleted")
        return self.stack_deleted_result

    async def describe_events(
        self,
        stack_name: str,
        change_set_name: Optional[str] = None,
        failed_events_only: bool = False,
        next_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.calls.append("describe_events")
        if self.describe_events_error is not None:
            raise self.describe_events_error
        index = int(next_token) if next_token else 0
        page = dict(self.event_pages[index])
        if index + 1 < len(self.event_pages):
            page["NextToken"] = str(index + 1)
        return page

    async def describe_stack_events(
        self, stack_name: str, next_token: Optional[str] = None
    ) -> Dict[str, Any]:
        self.calls.append("describe_stack_events")
        return {"StackEvents": list(self.stack_events)}

    async def upload_template(self, bucket: str, key: str, body: str) -> str:
        self.calls.append("upload_template")
        self.uploads.append({"bucket": bucket, "key": key, "body": body})
        return f"https://{bucket}.s3.{self.region}.amazonaws.com/{key}"


def validation_event(
    logical_id: str = "Bucket",
    path: Optional[str] = "/Resources/Bucket/Properties/BucketName",
    mode: str = "FAIL",
    name: str = "BucketNameCheck",
    reason: str = "Bucket name already exists",
) -> Dict[str, Any]:
    return {
        "EventType": "VALIDATION_ERROR",
        "LogicalResourceId": logical_id,
        "ValidationPath": path,
        "ValidationFailureMode": mode,
        "ValidationName": name,
        "ValidationStatusReason": reason,
    }


@pytest.fixture
def stack_api() -> FakeStackApi:
    return FakeStackApi()


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    store = InMemoryDocumentStore()
    store.open(TEMPLATE_URI, TEMPLATE)
    return store


@pytest.fixture
def sink() -> InMemoryDiagnosticsSink:
    return InMemoryDiagnosticsSink()


@pytest.fixture
def coordinator(sink) -> DiagnosticCoordinator:
    return DiagnosticCoordinator(sink)


@pytest.fixture
def components(stack_api, documents, coordinator) -> WorkflowComponents:
    return WorkflowComponents(
        stack_api=stack_api,
        documents=documents,
        syntax_trees=YamlSyntaxTreeProvider(documents),
        diagnostics=coordinator,
        feature_flags=RegionFeatureFlag(["us-east-1"]),
        cleanup_retry=RetryOptions(max_attempts=2, initial_delay=0, operation_name="Cleanup"),
        deletion_poll_interval=0,
        deletion_timeout=0.2,
    )


@pytest.fixture
def fake_api_error():
    return FakeApiError


@pytest.fixture
def make_event():
    return validation_event


@pytest.fixture
def template_uri() -> str:
    return TEMPLATE_URI


@pytest.fixture
def template_body() -> str:
    return TEMPLATE

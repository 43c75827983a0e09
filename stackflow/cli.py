"""Command line interface for running stack action workflows."""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

import typer

from stackflow.config import StackflowConfig, load_config
from stackflow.contracts import (
    DeletionRequest,
    DeploymentMode,
    DescribeStatusResult,
    Parameter,
    StackActionResult,
    StackActionState,
    TemplateUpload,
    WorkflowRequest,
)
from stackflow.diagnostics import DiagnosticCoordinator, InMemoryDiagnosticsSink
from stackflow.documents import InMemoryDocumentStore
from stackflow.errors import extract_error_message
from stackflow.services import get_stack_api
from stackflow.syntaxtree import YamlSyntaxTreeProvider
from stackflow.workflows import (
    ChangeSetDeletionWorkflow,
    StackActionWorkflow,
    WorkflowComponents,
    create_deployment_workflow,
    create_validation_workflow,
)

app = typer.Typer(help="CLI for stack change set workflows")


@app.callback()
def main() -> None:
    """stackflow CLI entry point."""
    pass


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    for noisy in ("botocore", "boto3", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def _load_settings(
    config_path: Optional[Path], region: Optional[str], profile: Optional[str]
) -> StackflowConfig:
    config = load_config(str(config_path) if config_path else None)
    if region:
        config.aws.region = region
    if profile:
        config.aws.profile = profile
    _configure_logging(config.log_level)
    return config


def _parse_parameters(values: List[str]) -> List[Parameter]:
    parameters = []
    for value in values:
        key, sep, raw = value.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{value}'", param_hint="--parameter")
        parameters.append(Parameter(parameter_key=key, parameter_value=raw))
    return parameters


def _parse_upload(bucket: Optional[str], key: Optional[str], template: Path) -> Optional[TemplateUpload]:
    if bucket is None:
        return None
    return TemplateUpload(bucket=bucket, key=key or template.name)


def _build_components(
    config: StackflowConfig, documents: InMemoryDocumentStore
) -> Tuple[WorkflowComponents, InMemoryDiagnosticsSink]:
    sink = InMemoryDiagnosticsSink()
    components = WorkflowComponents.from_config(
        config,
        stack_api=get_stack_api(config),
        documents=documents,
        syntax_trees=YamlSyntaxTreeProvider(documents),
        diagnostics=DiagnosticCoordinator(sink),
    )
    return components, sink


async def _run_to_completion(
    workflow: StackActionWorkflow, request: WorkflowRequest
) -> Tuple[StackActionResult, DescribeStatusResult]:
    result = await workflow.start(request)
    await workflow.wait(result.id)
    return result, workflow.describe_status(result.id)


def _echo_status(result: StackActionResult, status: DescribeStatusResult) -> None:
    typer.echo(f"Workflow {result.id}: {status.phase.value} ({status.state.value})")
    typer.echo(f"Change set: {result.change_set_name}")
    if status.failure_reason:
        typer.secho(f"Reason: {status.failure_reason}", fg=typer.colors.RED)
    for change in status.changes or []:
        rc = change.resource_change
        if rc is not None:
            typer.echo(f"- {rc.action} {rc.logical_resource_id} ({rc.resource_type})")
    for detail in status.validation_details or []:
        location = f" [{detail.logical_id}]" if detail.logical_id else ""
        typer.echo(f"{detail.severity.value} {detail.validation_name}{location}: {detail.message}")
    for event in status.deployment_events or []:
        reason = f" - {event.resource_status_reason}" if event.resource_status_reason else ""
        typer.echo(f"  {event.logical_resource_id}: {event.resource_status}{reason}")


def _run_stack_action(
    deploy: bool,
    template: Path,
    stack_name: str,
    parameters: List[str],
    capabilities: List[str],
    keep_change_set: bool,
    bucket: Optional[str],
    key: Optional[str],
    revert_drift: bool,
    config: StackflowConfig,
) -> None:
    template = template.expanduser()
    if not template.exists():
        typer.secho("Specified template does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    documents = InMemoryDocumentStore()
    document = documents.open_file(template)
    components, sink = _build_components(config, documents)
    workflow = (
        create_deployment_workflow(components) if deploy else create_validation_workflow(components)
    )
    request = WorkflowRequest(
        id=str(uuid.uuid4()),
        uri=document.uri,
        stack_name=stack_name,
        parameters=_parse_parameters(parameters),
        capabilities=capabilities,
        keep_change_set=keep_change_set,
        upload=_parse_upload(bucket, key, template),
        deployment_mode=DeploymentMode.REVERT_DRIFT if revert_drift else None,
    )

    try:
        result, status = asyncio.run(_run_to_completion(workflow, request))
    except Exception as e:
        typer.secho(f"Failed to start workflow: {extract_error_message(e)}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    _echo_status(result, status)
    for diagnostic in sink.latest(document.uri):
        start = diagnostic.range.start
        typer.echo(f"{template.name}:{start.line + 1}:{start.character + 1}: {diagnostic.message}")

    if status.state == StackActionState.FAILED:
        raise typer.Exit(code=1)


@app.command("validate")
def validate(
    template: Path,
    stack_name: str = typer.Option(..., "--stack-name", "-s", help="Target stack name"),
    parameter: List[str] = typer.Option([], "--parameter", "-p", help="Template parameter as KEY=VALUE"),
    capability: List[str] = typer.Option([], "--capability", "-c", help="Capability to acknowledge"),
    keep_change_set: bool = typer.Option(False, help="Leave the change set in place afterwards"),
    bucket: Optional[str] = typer.Option(None, help="Bucket to stage the template in"),
    key: Optional[str] = typer.Option(None, help="Object key for the staged template"),
    region: Optional[str] = typer.Option(None, help="Region, overriding the config file"),
    profile: Optional[str] = typer.Option(None, help="Credentials profile name"),
    config: Optional[Path] = typer.Option(None, help="Path to a config YAML file"),
) -> None:
    """
    Validate a template by creating a change set without executing it.

    Waits for the change set, prints the planned changes and any validation
    findings with their template location, then deletes the change set
    unless --keep-change-set is given.

    Example:
        stackflow validate template.yaml --stack-name my-stack -p Env=dev
    """
    _run_stack_action(
        False, template, stack_name, parameter, capability, keep_change_set, bucket, key, False,
        _load_settings(config, region, profile),
    )


@app.command("deploy")
def deploy(
    template: Path,
    stack_name: str = typer.Option(..., "--stack-name", "-s", help="Target stack name"),
    parameter: List[str] = typer.Option([], "--parameter", "-p", help="Template parameter as KEY=VALUE"),
    capability: List[str] = typer.Option([], "--capability", "-c", help="Capability to acknowledge"),
    bucket: Optional[str] = typer.Option(None, help="Bucket to stage the template in"),
    key: Optional[str] = typer.Option(None, help="Object key for the staged template"),
    revert_drift: bool = typer.Option(False, help="Create the change set in REVERT_DRIFT mode"),
    region: Optional[str] = typer.Option(None, help="Region, overriding the config file"),
    profile: Optional[str] = typer.Option(None, help="Credentials profile name"),
    config: Optional[Path] = typer.Option(None, help="Path to a config YAML file"),
) -> None:
    """
    Validate and execute a change set, then wait for the stack.

    Example:
        stackflow deploy template.yaml --stack-name my-stack -c CAPABILITY_IAM
    """
    _run_stack_action(
        True, template, stack_name, parameter, capability, True, bucket, key, revert_drift,
        _load_settings(config, region, profile),
    )


@app.command("delete-change-set")
def delete_change_set(
    stack_name: str,
    change_set_name: str,
    region: Optional[str] = typer.Option(None, help="Region, overriding the config file"),
    profile: Optional[str] = typer.Option(None, help="Credentials profile name"),
    config: Optional[Path] = typer.Option(None, help="Path to a config YAML file"),
) -> None:
    """Delete a change set, and its stack if only the change set created it."""
    loaded = _load_settings(config, region, profile)
    components, _ = _build_components(loaded, InMemoryDocumentStore())
    workflow = ChangeSetDeletionWorkflow(components)
    request = DeletionRequest(
        id=str(uuid.uuid4()), stack_name=stack_name, change_set_name=change_set_name
    )

    async def run() -> DescribeStatusResult:
        result = await workflow.start(request)
        await workflow.wait(result.id)
        return workflow.describe_status(result.id)

    try:
        status = asyncio.run(run())
    except Exception as e:
        typer.secho(f"Failed to delete change set: {extract_error_message(e)}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.echo(f"Deletion {request.id}: {status.phase.value} ({status.state.value})")
    if status.failure_reason:
        typer.secho(f"Reason: {status.failure_reason}", fg=typer.colors.RED)
        raise typer.Exit(code=1)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()

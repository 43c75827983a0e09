"""CLI tests."""

import pytest
from typer.testing import CliRunner

import stackflow.cli as cli
from stackflow.cli import app
from stackflow.services.stack_api import WaiterResult, WaiterState


@pytest.fixture
def cli_env(tmp_path, monkeypatch, stack_api, template_body):
    template = tmp_path / "app.yaml"
    template.write_text(template_body)
    config = tmp_path / "config.yaml"
    config.write_text(
        "feature_flags:\n  enhanced_diagnostics_regions: ['*']\n"
        "cleanup:\n  initial_delay: 0\n"
        "workflows:\n  deletion_poll_interval: 0\n"
    )
    monkeypatch.setattr(cli, "get_stack_api", lambda config: stack_api)
    return template, config


def test_validate_prints_changes_and_diagnostics(cli_env, stack_api, make_event):
    template, config = cli_env
    stack_api.event_pages = [{"OperationEvents": [make_event(mode="WARN")]}]

    runner = CliRunner()
    result = runner.invoke(
        app,
        ["validate", str(template), "--stack-name", "app", "-p", "Env=dev", "--config", str(config)],
    )

    assert result.exit_code == 0, f"Command failed with exit code {result.exit_code}. Output: {result.stdout}"
    output = result.stdout
    assert "VALIDATION_COMPLETE (SUCCESSFUL)" in output
    assert "- Add Bucket (AWS::S3::Bucket)" in output
    assert "app.yaml:6:7: BucketNameCheck: Bucket name already exists" in output
    assert stack_api.created[0]["Parameters"] == [{"ParameterKey": "Env", "ParameterValue": "dev"}]
    assert stack_api.deleted_change_sets


def test_validate_failure_exits_non_zero(cli_env, stack_api):
    template, config = cli_env
    stack_api.change_set_result = WaiterResult(
        state=WaiterState.FAILURE, reason={"StatusReason": "Template format error"}
    )

    result = CliRunner().invoke(
        app, ["validate", str(template), "--stack-name", "app", "--config", str(config)]
    )

    assert result.exit_code == 1
    assert "Reason: Template format error" in result.stdout


def test_validate_rejects_bad_parameter(cli_env):
    template, config = cli_env
    result = CliRunner().invoke(
        app, ["validate", str(template), "-s", "app", "-p", "novalue", "--config", str(config)]
    )
    assert result.exit_code != 0


def test_missing_template(tmp_path):
    result = CliRunner().invoke(app, ["validate", str(tmp_path / "nope.yaml"), "-s", "app"])
    assert result.exit_code == 1
    assert "Specified template does not exist" in result.stdout


def test_deploy_keeps_change_set_and_executes(cli_env, stack_api):
    template, config = cli_env

    result = CliRunner().invoke(
        app, ["deploy", str(template), "-s", "app", "--revert-drift", "--config", str(config)]
    )

    assert result.exit_code == 0, result.stdout
    assert "DEPLOYMENT_COMPLETE (SUCCESSFUL)" in result.stdout
    assert "Dry-Run Validation: Validation succeeded" in result.stdout
    assert stack_api.created[0]["DeploymentMode"] == "REVERT_DRIFT"
    assert len(stack_api.executed) == 1
    assert stack_api.deleted_change_sets == []


def test_delete_change_set_command(cli_env, stack_api):
    _, config = cli_env
    stack_api.stacks["app"] = "UPDATE_COMPLETE"

    result = CliRunner().invoke(app, ["delete-change-set", "app", "cs-1", "--config", str(config)])

    assert result.exit_code == 0, result.stdout
    assert "DELETION_COMPLETE (SUCCESSFUL)" in result.stdout
    assert stack_api.deleted_change_sets == ["cs-1"]

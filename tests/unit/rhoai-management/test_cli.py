from unittest.mock import MagicMock, patch

import httpx
import pytest
from click.testing import CliRunner

from rhoai_management.cli import EXIT_FAILURE, EXIT_INTERRUPTED, cli
from rhoai_management.errors import SessionError, WaitTimeoutError
from rhoai_management.ignorelist import ReconcileResult


@pytest.fixture()
def session():
    with patch("rhoai_management.cli.check_session") as check_session:
        yield check_session


def run(*args):
    return CliRunner().invoke(cli, list(args))


@pytest.mark.parametrize(
    "args,target",
    [
        (["install", "-y"], "rhoai_management.install.install_rhoai"),
        (["prepare-upgrade", "-y"], "rhoai_management.prepare_upgrade.prepare_upgrade"),
        (["approve-upgrade", "--yes"], "rhoai_management.upgrade.approve_upgrade"),
        (["cleanup", "--version", "3.x", "-y"], "rhoai_management.cleanup.cleanup_rhoai"),
        (["capture", "--stage", "pre"], "rhoai_management.capture.capture_cluster_state"),
    ],
)
def test_commands_succeed(session, args, target):
    with patch(target) as operation:
        result = run(*args)

    assert result.exit_code == 0
    operation.assert_called_once()
    assert operation.call_args.args[0] is session.return_value.client


def test_install_options(session):
    with patch("rhoai_management.install.install_rhoai") as install_rhoai:
        result = run("install", "quay.io/test/catalog:1", "--yes")

    assert result.exit_code == 0
    config = install_rhoai.call_args.args[1]
    assert config.catalog_image == "quay.io/test/catalog:1"
    assert config.assume_yes


def test_context_option(session):
    with patch("rhoai_management.upgrade.approve_upgrade"):
        run("--context", "admin", "approve-upgrade")

    session.assert_called_once_with("admin")


@pytest.mark.parametrize("dry_run", [True, False])
def test_ignorelist_options(session, dry_run):
    args = ["hardwareprofiles-ignorelist", "-n", "redhat-ods-applications"]
    if dry_run:
        args.append("--dry-run")
    reconcile = MagicMock(return_value=ReconcileResult(dry_run=dry_run, annotation_updated=True))

    with patch("rhoai_management.ignorelist.reconcile_inferenceservice_config", reconcile):
        result = run(*args)

    assert result.exit_code == 0
    config = reconcile.call_args.args[1]
    assert config.namespace == "redhat-ods-applications"
    assert config.dry_run == dry_run


def test_ignorelist_requires_namespace(session):
    result = run("hardwareprofiles-ignorelist")

    assert result.exit_code == EXIT_FAILURE
    session.assert_not_called()


@pytest.mark.parametrize("namespace", ["", "  "])
def test_ignorelist_rejects_empty_namespace(session, namespace):
    with patch("rhoai_management.ignorelist.reconcile_inferenceservice_config") as reconcile:
        result = run("hardwareprofiles-ignorelist", "-n", namespace)

    assert result.exit_code == EXIT_FAILURE
    assert "must not be empty" in result.output
    reconcile.assert_not_called()
    session.assert_not_called()


def test_cleanup_rejects_unknown_version(session):
    result = run("cleanup", "--version", "4.x", "-y")

    assert result.exit_code == EXIT_FAILURE
    assert "4.x" in result.output


@pytest.mark.parametrize("args", [["no-such-command"], ["--no-such-option", "capture"]])
def test_usage_errors_exit_code(session, args):
    result = run(*args)

    assert result.exit_code == EXIT_FAILURE
    session.assert_not_called()


def test_capture_rejects_unknown_stage(session):
    result = run("capture", "--stage", "during")

    assert result.exit_code == EXIT_FAILURE


@pytest.mark.parametrize(
    "error,exit_code",
    [
        (WaitTimeoutError("CatalogSource did not become READY"), EXIT_FAILURE),
        (httpx.ConnectError("Connection refused"), EXIT_FAILURE),
        (KeyboardInterrupt(), EXIT_INTERRUPTED),
    ],
)
def test_errors_exit_code(session, error, exit_code):
    with patch("rhoai_management.prepare_upgrade.prepare_upgrade", side_effect=error):
        result = run("prepare-upgrade", "-y")

    assert result.exit_code == exit_code


def test_no_session(session):
    session.side_effect = SessionError("Not logged in to an OpenShift cluster")

    with patch("rhoai_management.cleanup.cleanup_rhoai") as cleanup_rhoai:
        result = run("cleanup", "-y")

    assert result.exit_code == EXIT_FAILURE
    cleanup_rhoai.assert_not_called()


def test_api_error_exit_code(session, api_error):
    with patch("rhoai_management.prepare_upgrade.prepare_upgrade", side_effect=api_error(500)):
        result = run("prepare-upgrade", "-y")

    assert result.exit_code == EXIT_FAILURE

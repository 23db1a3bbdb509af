"""The rhoai command line: install, upgrade and clean up RHOAI on an OpenShift cluster."""

import logging

import click
import httpx
from lightkube import Client
from lightkube.core.exceptions import ApiError

from rhoai_management import capture, cleanup, ignorelist, install, prepare_upgrade, upgrade
from rhoai_management.config import RunConfig
from rhoai_management.errors import LifecycleError
from rhoai_management.helpers.session import check_session

log = logging.getLogger("rhoai_management")

EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130

yes_option = click.option(
    "--yes", "-y", "assume_yes", is_flag=True, help="Do not ask for confirmation."
)


class LifecycleGroup(click.Group):
    """A command group turning the errors of the lifecycle commands into exit codes."""

    def make_context(self, info_name, args, parent=None, **extra):
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = EXIT_FAILURE
            raise

    def invoke(self, ctx: click.Context):
        try:
            return super().invoke(ctx)
        except click.UsageError as e:
            e.show()
            ctx.exit(EXIT_FAILURE)
        except LifecycleError as e:
            log.error("%s", e)
            ctx.exit(EXIT_FAILURE)
        except ApiError as e:
            log.error(
                "Unexpected error from the API server: %s %s", e.status.code, e.status.message
            )
            ctx.exit(EXIT_FAILURE)
        except httpx.HTTPError as e:
            log.error("Failed to reach the API server: %s", e)
            ctx.exit(EXIT_FAILURE)
        except (KeyboardInterrupt, click.Abort):
            log.error("Operation aborted by user")
            ctx.exit(EXIT_INTERRUPTED)


def _require_namespace(ctx: click.Context, param: click.Parameter, value: str) -> str:
    if not value.strip():
        raise click.BadParameter("must not be empty")
    return value


def _client(ctx: click.Context) -> Client:
    """Check the cluster session and return its client."""
    return check_session(ctx.obj["context"]).client


@click.group(cls=LifecycleGroup)
@click.option("--context", help="The kubeconfig context to use, instead of the current one.")
@click.option("--verbose", "-v", is_flag=True, help="Enables verbose mode.")
@click.version_option(package_name="rhoai-management")
@click.pass_context
def cli(ctx: click.Context, context, verbose):
    """Red Hat OpenShift AI lifecycle management utilities."""
    logging.basicConfig(
        format="%(asctime)s:%(name)s:%(levelname)s - %(message)s",
        level=logging.INFO,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    log.setLevel(logging.DEBUG if verbose else logging.INFO)

    ctx.obj = {"context": context}


@cli.command("install")
@click.argument("catalog_image", required=False)
@yes_option
@click.pass_context
def install_command(ctx: click.Context, catalog_image, assume_yes):
    """Install RHOAI 2.25.1 and its prerequisite operators.

    CATALOG_IMAGE overrides the catalog image picked for the OpenShift version.
    """
    config = RunConfig(catalog_image=catalog_image, assume_yes=assume_yes)
    install.install_rhoai(_client(ctx), config)


@cli.command("hardwareprofiles-ignorelist")
@click.option(
    "--namespace",
    "-n",
    required=True,
    callback=_require_namespace,
    help="The namespace of the inferenceservice-config ConfigMap.",
)
@click.option("--dry-run", is_flag=True, help="Show what would change without changing it.")
@click.pass_context
def hardwareprofiles_ignorelist(ctx: click.Context, namespace, dry_run):
    """Make KServe ignore the hardware profile annotations of InferenceServices."""
    config = RunConfig(namespace=namespace, dry_run=dry_run)
    result = ignorelist.reconcile_inferenceservice_config(_client(ctx), config)
    if not result.changed:
        log.info("%s is already configured, no change", ignorelist.CONFIGMAP_NAME)
    elif result.dry_run:
        log.info("Dry-run complete. Run without --dry-run to apply changes.")
    else:
        log.info("Configuration completed successfully!")


@cli.command("prepare-upgrade")
@yes_option
@click.pass_context
def prepare_upgrade_command(ctx: click.Context, assume_yes):
    """Prepare an RHOAI 2.25 installation for the upgrade to 3.3."""
    prepare_upgrade.prepare_upgrade(_client(ctx), RunConfig(assume_yes=assume_yes))


@cli.command("approve-upgrade")
@yes_option
@click.pass_context
def approve_upgrade(ctx: click.Context, assume_yes):
    """Approve the InstallPlan upgrading RHOAI to 3.3."""
    upgrade.approve_upgrade(_client(ctx), RunConfig(assume_yes=assume_yes))


@cli.command("cleanup")
@click.option("--version", "version", help="The RHOAI version to remove: 2.x or 3.x.")
@yes_option
@click.pass_context
def cleanup_command(ctx: click.Context, version, assume_yes):
    """Remove an RHOAI installation and its prerequisite operators."""
    cleanup.cleanup_rhoai(_client(ctx), RunConfig(assume_yes=assume_yes), version)


@cli.command("capture")
@click.option("--stage", type=click.Choice(["pre", "post"], case_sensitive=False))
@click.option(
    "--output-dir",
    "-o",
    default=capture.DEFAULT_OUTPUT_DIR,
    show_default=True,
    help="The directory to write the captured state into.",
)
@click.pass_context
def capture_command(ctx: click.Context, stage, output_dir):
    """Save the RHOAI-related cluster state before or after an upgrade."""
    capture.capture_cluster_state(_client(ctx), stage, output_dir)


def main():
    """Entrypoint of the rhoai console script."""
    cli()

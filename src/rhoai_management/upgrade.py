"""Module responsible for approving the pending RHOAI upgrade InstallPlan."""

import logging

from lightkube import Client
from lightkube.core.exceptions import ApiError
from lightkube.types import PatchType

from rhoai_management.catalog.operators import RHODS_3_3
from rhoai_management.config import RunConfig
from rhoai_management.errors import PatchRejectedError, ResourceFetchError
from rhoai_management.helpers.k8s import get_field
from rhoai_management.helpers.prompt import confirm
from rhoai_management.helpers.resources import InstallPlan
from rhoai_management.helpers.wait import check_condition, wait_for, warn_unless_ready
from rhoai_management.olm import get_installplan_name

log = logging.getLogger(__name__)


def approve_upgrade(client: Client, config: RunConfig) -> bool:
    """Approve the InstallPlan the RHOAI Subscription is waiting on.

    Args:
        client: The client to use.
        config: The run configuration.

    Returns:
        False if the operator declined the confirmation, True otherwise.

    Raises:
        ResourceFetchError: If the Subscription doesn't exist or references no InstallPlan.
        PatchRejectedError: If the approval was rejected.
    """
    namespace = RHODS_3_3.namespace
    try:
        install_plan = get_installplan_name(client, RHODS_3_3)
        plan = client.get(InstallPlan, install_plan, namespace=namespace) if install_plan else None
    except ApiError as e:
        raise ResourceFetchError(
            "Failed to retrieve the InstallPlan of subscription %s: %s %s"
            % (RHODS_3_3.name, e.status.code, e.status.message)
        ) from e

    if plan is None:
        raise ResourceFetchError(
            "Subscription %s does not reference an InstallPlan, run prepare-upgrade first"
            % RHODS_3_3.name
        )

    if get_field(plan, "spec", "approved", default=False):
        log.info("InstallPlan %s is already approved", install_plan)
        return True

    csvs = get_field(plan, "spec", "clusterServiceVersionNames", default=[])
    log.warning("InstallPlan %s will install: %s", install_plan, ", ".join(csvs) or "unknown")
    if not confirm(f"Do you want to approve InstallPlan {install_plan}?", config.assume_yes):
        log.info("Operation cancelled by user")
        return False

    try:
        client.patch(
            InstallPlan,
            install_plan,
            {"spec": {"approved": True}},
            namespace=namespace,
            patch_type=PatchType.MERGE,
        )
    except ApiError as e:
        raise PatchRejectedError(
            "Failed to approve InstallPlan %s: %s %s"
            % (install_plan, e.status.code, e.status.message)
        ) from e
    log.info("InstallPlan %s approved", install_plan)

    state = wait_for(
        check_condition(client, InstallPlan, install_plan, "Installed", namespace=namespace),
        f"InstallPlan {install_plan} to be installed",
        timeout=config.timeouts.upgrade_installed,
        interval=config.timeouts.poll_interval,
    )
    if warn_unless_ready(state, f"Installation of InstallPlan {install_plan}"):
        log.info("RHOAI upgrade installed")
    return True

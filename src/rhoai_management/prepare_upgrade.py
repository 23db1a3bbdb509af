"""Module responsible for preparing an RHOAI 2.25 installation for the upgrade to 3.3.

The preparation runs in three phases:
1. disable the components RHOAI 3.x doesn't support (KServe serving, Service Mesh)
2. replace the 2.x prerequisite operators with Red Hat Connectivity Link
3. switch the RHOAI Subscription to the stable-3.3 channel with manual approval,
   so that the upgrade only starts once its InstallPlan is approved
"""

import logging
import time
from typing import Optional

from lightkube import Client
from lightkube.core.exceptions import ApiError
from lightkube.types import PatchType

from rhoai_management.catalog.operators import (
    AUTHORINO,
    CONNECTIVITY_LINK,
    RHODS_2_25,
    RHODS_UPGRADE_CHANNEL,
    SERVERLESS,
    SERVICE_MESH_2,
)
from rhoai_management.cleanup import delete_and_wait
from rhoai_management.config import DSC_NAME, DSCI_NAME, RunConfig, Timeouts
from rhoai_management.errors import PatchRejectedError, ResourceFetchError, WaitTimeoutError
from rhoai_management.helpers.k8s import ResourceType, get_field, resource_exists
from rhoai_management.helpers.prompt import confirm
from rhoai_management.helpers.resources import (
    DataScienceCluster,
    DSCInitialization,
    Namespace,
    Subscription,
)
from rhoai_management.helpers.wait import check_field, wait_for, warn_unless_ready
from rhoai_management.olm import apply_subscription, get_installplan_name, uninstall_operator

log = logging.getLogger(__name__)

BANNER = """=========================================
RHOAI 2.25 to 3.3 Upgrade Preparation
=========================================
Phase 1 - Disable incompatible components:
  - Set DSC KServe serving managementState to Removed
  - Set DSCI Service Mesh managementState to Removed

Phase 2 - Uninstall incompatible operators and install new dependencies:
  - Uninstall: Red Hat Authorino Operator
  - Uninstall: Red Hat OpenShift Serverless
  - Uninstall: Red Hat OpenShift Service Mesh 2
  - Install: Red Hat Connectivity Link v1.2.1

Phase 3 - Prepare RHOAI subscription:
  - Change installPlanApproval to Manual
  - Update channel to stable-3.3
  - Provide command to manually approve upgrade
========================================="""

APPROVE_COMMAND = (
    "oc patch installplan %s -n %s --type=merge -p '{\"spec\":{\"approved\":true}}'"
)

KSERVE_SERVING_STATE = ("spec", "components", "kserve", "serving", "managementState")
SERVICE_MESH_STATE = ("spec", "serviceMesh", "managementState")


def _wait_phase_ready(client: Client, res: ResourceType, name: str, timeouts: Timeouts) -> bool:
    state = wait_for(
        check_field(client, res, name, ("status", "phase"), "Ready"),
        f"{res.__name__} {name} to be ready",
        timeout=timeouts.component_ready,
        interval=timeouts.poll_interval,
    )
    return warn_unless_ready(state, f"{res.__name__} {name} reaching Ready state")


def set_removed(client: Client, res: ResourceType, name: str, path: tuple, what: str) -> bool:
    """Set the managementState at `path` of a DSC or DSCI to Removed, unless already so.

    Args:
        client: The client to use.
        res: The kind of the object, DataScienceCluster or DSCInitialization.
        name: The name of the object.
        path: The path to the managementState field, starting with "spec".
        what: Human friendly name of the component, for the logs.

    Returns:
        True if the object was patched.

    Raises:
        ResourceFetchError: If the object can't be read.
        PatchRejectedError: If the patch was rejected.
    """
    try:
        obj = client.get(res, name)
    except ApiError as e:
        raise ResourceFetchError(
            "Failed to retrieve %s %s: %s %s"
            % (res.__name__, name, e.status.code, e.status.message)
        ) from e

    current = get_field(obj, *path, default="")
    if current == "Removed":
        log.warning("%s is already set to Removed, skipping", what)
        return False

    log.info("Current %s managementState: %s", what, current)
    patch: dict = {"managementState": "Removed"}
    for step in reversed(path[:-1]):
        patch = {step: patch}

    try:
        client.patch(res, name, patch, patch_type=PatchType.MERGE)
    except ApiError as e:
        raise PatchRejectedError(
            "Failed to patch %s %s: %s %s"
            % (res.__name__, name, e.status.code, e.status.message)
        ) from e
    log.info("%s managementState set to Removed", what)
    return True


def disable_incompatible_components(client: Client, timeouts: Timeouts):
    """Phase 1: remove KServe serving and Service Mesh, then wait for DSCI and DSC.

    Raises:
        WaitTimeoutError: If the DSCI or the DSC isn't Ready after the change.
    """
    log.info("Phase 1: Disable incompatible components")

    log.info("Step 1: Checking DataScienceCluster status...")
    _wait_phase_ready(client, DataScienceCluster, DSC_NAME, timeouts)
    log.info("Step 2: Checking DSCInitialization status...")
    _wait_phase_ready(client, DSCInitialization, DSCI_NAME, timeouts)

    log.info("Step 3: Setting KServe serving managementState to Removed...")
    set_removed(client, DataScienceCluster, DSC_NAME, KSERVE_SERVING_STATE, "KServe serving")
    log.info("Step 4: Setting Service Mesh managementState to Removed...")
    set_removed(client, DSCInitialization, DSCI_NAME, SERVICE_MESH_STATE, "Service Mesh")

    # Give the operator time to pick up the change before reading the phase
    log.info("Step 5: Waiting for DSCInitialization to reconcile...")
    time.sleep(timeouts.settle)
    if not _wait_phase_ready(client, DSCInitialization, DSCI_NAME, timeouts):
        raise WaitTimeoutError(
            "DSCInitialization did not reach Ready state after disabling Service Mesh"
        )
    log.info("DSCInitialization is Ready")

    log.info("Step 6: Waiting for DataScienceCluster to reconcile...")
    time.sleep(timeouts.settle)
    if not _wait_phase_ready(client, DataScienceCluster, DSC_NAME, timeouts):
        raise WaitTimeoutError(
            "DataScienceCluster did not reach Ready state after disabling components"
        )
    log.info("DataScienceCluster is Ready")
    log.info("Phase 1 completed: DSC and DSCI are Ready for upgrade")


def replace_prerequisites(client: Client, timeouts: Timeouts):
    """Phase 2: uninstall Authorino, Serverless and Service Mesh 2, install Connectivity Link.

    Raises:
        PatchRejectedError: If the Connectivity Link Subscription was rejected.
    """
    log.info("Phase 2: Manage operator dependencies")

    log.info("Step 7: Uninstalling %s...", AUTHORINO.display_name)
    uninstall_operator(client, AUTHORINO)

    log.info("Step 8: Uninstalling %s...", SERVERLESS.display_name)
    installed = resource_exists(client, Subscription, SERVERLESS.name, SERVERLESS.namespace)
    uninstall_operator(client, SERVERLESS, delete_operator_group=installed)
    if installed and resource_exists(client, Namespace, SERVERLESS.namespace):
        log.info("  - Deleting namespace: %s", SERVERLESS.namespace)
        delete_and_wait(client, Namespace, SERVERLESS.namespace, timeouts=timeouts)

    log.info("Step 9: Uninstalling %s...", SERVICE_MESH_2.display_name)
    uninstall_operator(client, SERVICE_MESH_2)

    log.info("Step 10: Installing %s...", CONNECTIVITY_LINK.display_name)
    apply_subscription(client, CONNECTIVITY_LINK)
    state = wait_for(
        check_field(
            client,
            Subscription,
            CONNECTIVITY_LINK.name,
            ("status", "state"),
            "AtLatestKnown",
            namespace=CONNECTIVITY_LINK.namespace,
        ),
        f"{CONNECTIVITY_LINK.display_name} to be ready",
        timeout=timeouts.subscription_ready,
        interval=timeouts.poll_interval,
    )
    if warn_unless_ready(state, f"{CONNECTIVITY_LINK.name} subscription reaching AtLatestKnown"):
        log.info("%s operator installed", CONNECTIVITY_LINK.display_name)
    log.info("Phase 2 completed: incompatible operators replaced by Connectivity Link")


def prepare_rhoai_subscription(client: Client, timeouts: Timeouts) -> Optional[str]:
    """Phase 3: switch the RHOAI Subscription to manual approval and the 3.3 channel.

    Returns:
        The name of the InstallPlan waiting for approval, if OLM created it already.

    Raises:
        ResourceFetchError: If the RHOAI Subscription doesn't exist.
        PatchRejectedError: If the Subscription couldn't be patched.
    """
    log.info("Phase 3: Prepare RHOAI subscription")
    name, namespace = RHODS_2_25.name, RHODS_2_25.namespace

    try:
        subscription = client.get(Subscription, name, namespace=namespace)
    except ApiError as e:
        raise ResourceFetchError(
            "RHOAI subscription '%s' not found in %s namespace: %s %s"
            % (name, namespace, e.status.code, e.status.message)
        ) from e

    patch: dict = {}
    current_approval = get_field(subscription, "spec", "installPlanApproval", default="Unknown")
    log.info("Current installPlanApproval: %s", current_approval)
    if current_approval == "Manual":
        log.warning("installPlanApproval is already set to Manual")
    else:
        patch["installPlanApproval"] = "Manual"

    current_channel = get_field(subscription, "spec", "channel", default="Unknown")
    log.info("Current channel: %s", current_channel)
    if current_channel == RHODS_UPGRADE_CHANNEL:
        log.warning("Channel is already set to %s", RHODS_UPGRADE_CHANNEL)
    else:
        patch["channel"] = RHODS_UPGRADE_CHANNEL

    if patch:
        try:
            client.patch(
                Subscription,
                name,
                {"spec": patch},
                namespace=namespace,
                patch_type=PatchType.MERGE,
            )
        except ApiError as e:
            raise PatchRejectedError(
                "Failed to patch Subscription %s: %s %s" % (name, e.status.code, e.status.message)
            ) from e
        log.info("Subscription %s updated: %s", name, patch)

    state = wait_for(
        check_field(
            client, Subscription, name, ("status", "state"), "UpgradePending", namespace=namespace
        ),
        f"subscription {name} to reach UpgradePending",
        timeout=timeouts.upgrade_pending,
        interval=timeouts.poll_interval,
    )
    warn_unless_ready(state, f"Subscription {name} reaching UpgradePending state")

    install_plan = get_installplan_name(client, RHODS_2_25)
    if install_plan:
        log.info("Pending InstallPlan: %s", install_plan)
    else:
        log.warning("InstallPlan reference not yet available in subscription status")
    log.info("Phase 3 completed: RHOAI subscription prepared for upgrade")
    return install_plan


def prepare_upgrade(client: Client, config: RunConfig) -> bool:
    """Prepare an RHOAI 2.25 installation for the upgrade to 3.3.

    Args:
        client: The client to use.
        config: The run configuration.

    Returns:
        False if the operator declined the confirmation, True once prepared.

    Raises:
        LifecycleError: If any of the fatal steps failed.
    """
    for line in BANNER.splitlines():
        log.warning(line)

    if not confirm("Do you want to proceed with the upgrade preparation?", config.assume_yes):
        log.info("Operation cancelled by user")
        return False
    log.info("Proceeding with upgrade preparation...")

    disable_incompatible_components(client, config.timeouts)
    replace_prerequisites(client, config.timeouts)
    install_plan = prepare_rhoai_subscription(client, config.timeouts)

    log.info("Upgrade Preparation Complete!")
    log.warning("NEXT STEPS - Manual Approval Required")
    log.warning("Run 'rhoai approve-upgrade', or:")
    log.warning(APPROVE_COMMAND, install_plan or "<INSTALL_PLAN_NAME>", RHODS_2_25.namespace)
    return True

"""Names, defaults and the run configuration shared by all lifecycle commands."""

from typing import Optional

from pydantic import BaseModel, ConfigDict

OPERATORS_NAMESPACE = "openshift-operators"
MARKETPLACE_NAMESPACE = "openshift-marketplace"
RHODS_OPERATOR_NAMESPACE = "redhat-ods-operator"
APPLICATIONS_NAMESPACE = "redhat-ods-applications"
MONITORING_NAMESPACE = "redhat-ods-monitoring"
SERVERLESS_NAMESPACE = "openshift-serverless"

CATALOG_SOURCE_NAME = "rhoai-catalog-dev"
RHODS_OPERATOR = "rhods-operator"
DSC_NAME = "default-dsc"
DSCI_NAME = "default-dsci"

# Catalog images of the RHOAI 2.25.1 file-based catalog, per OpenShift minor version
DEFAULT_CATALOG_IMAGES = {
    "4.19": "quay.io/rhoai/rhoai-fbc-fragment@sha256:"
    "7f3df0e87ed6878cef295a15b1ef3c063121ff1e1fdc3e27d24ba1dbf0c56f51",
    "4.20": "quay.io/rhoai/rhoai-fbc-fragment@sha256:"
    "cd03ffb8f71bb6d237ea3b3d04ee9955ac8cdf31f0669f32b73f36aa3740a2a7",
    "4.21": "quay.io/rhoai/rhoai-fbc-fragment@sha256:"
    "f6e7db613cd040e53da2d47850477a9b914de18979adaaac47e15dc7c76f8a76",
}
FALLBACK_OPENSHIFT_VERSION = "4.20"


class Timeouts(BaseModel):
    """Upper bounds, in seconds, for every wait the commands perform.

    Args:
        catalog_source: For the CatalogSource to become READY.
        install_plan: For the operator InstallPlan to be created and installed.
        operator_deployment: For the rhods-operator Deployment to be Available.
        dsci_ready: For the DSCInitialization to become Ready after install.
        dsc_ready: For the DataScienceCluster to become Ready after install.
        component_ready: For DSC/DSCI to become Ready while preparing an upgrade.
        upgrade_pending: For the RHOAI Subscription to report UpgradePending.
        upgrade_installed: For the approved InstallPlan to be installed.
        subscription_ready: For a new operator Subscription to be AtLatestKnown.
        rollout: For a restarted Deployment to finish rolling out.
        resource_delete: For a deleted namespace, DSC or DSCI to disappear.
        settle: Pause after patching DSC/DSCI before waiting on them.
        poll_interval: Time between two reads of a polled status field.
    """

    model_config = ConfigDict(frozen=True)

    catalog_source: float = 300
    install_plan: float = 300
    operator_deployment: float = 300
    dsci_ready: float = 300
    dsc_ready: float = 1200
    component_ready: float = 600
    upgrade_pending: float = 120
    upgrade_installed: float = 600
    subscription_ready: float = 300
    rollout: float = 120
    resource_delete: float = 300
    settle: float = 10
    poll_interval: float = 5


class RunConfig(BaseModel):
    """The options of a single command invocation.

    Args:
        namespace: The namespace the command targets, if it targets one.
        dry_run: Compute and report changes without writing anything.
        assume_yes: Skip the interactive confirmation.
        catalog_image: Override for the CatalogSource image used by install.
        timeouts: Bounds for all waits.
    """

    model_config = ConfigDict(frozen=True)

    namespace: Optional[str] = None
    dry_run: bool = False
    assume_yes: bool = False
    catalog_image: Optional[str] = None
    timeouts: Timeouts = Timeouts()

"""Module responsible for installing RHOAI 2.25 and its prerequisite operators.

The main function exposed is install_rhoai(), which:
1. creates a CatalogSource serving the RHOAI 2.25 catalog image
2. subscribes to Authorino, Serverless and Service Mesh
3. subscribes to the RHOAI operator and waits for it to be installed
4. creates the default DSCInitialization and DataScienceCluster
5. configures KServe to ignore the hardware profile annotations
"""

import logging
from typing import Optional

from lightkube import Client, codecs
from lightkube.core.exceptions import ApiError

from rhoai_management import ignorelist
from rhoai_management.catalog.operators import (
    AUTHORINO,
    RHODS_2_25,
    SERVERLESS,
    SERVICE_MESH_2,
)
from rhoai_management.config import (
    APPLICATIONS_NAMESPACE,
    CATALOG_SOURCE_NAME,
    DEFAULT_CATALOG_IMAGES,
    DSC_NAME,
    DSCI_NAME,
    FALLBACK_OPENSHIFT_VERSION,
    MARKETPLACE_NAMESPACE,
    MONITORING_NAMESPACE,
    RHODS_OPERATOR,
    RHODS_OPERATOR_NAMESPACE,
    RunConfig,
)
from rhoai_management.errors import (
    LifecycleError,
    PatchRejectedError,
    ResourceFetchError,
    VersionDetectionError,
)
from rhoai_management.helpers.k8s import ResourceType, ensure_namespace, get_field, get_name
from rhoai_management.helpers.manifests import render_manifest
from rhoai_management.helpers.prompt import confirm
from rhoai_management.helpers.resources import (
    CatalogSource,
    ClusterVersion,
    DataScienceCluster,
    Deployment,
    DSCInitialization,
    InstallPlan,
    Subscription,
)
from rhoai_management.helpers.wait import (
    check_condition,
    check_field,
    require_ready,
    wait_for,
    warn_unless_ready,
)
from rhoai_management.olm import apply_catalog_source, apply_subscription, ensure_operator_group

log = logging.getLogger(__name__)

BANNER = """=========================================
RHOAI 2.25.1 Installation
=========================================
This will install the following on your cluster:
  - Red Hat Authorino Operator (stable channel)
  - Red Hat OpenShift Serverless (stable channel)
  - Red Hat OpenShift Service Mesh (stable channel)
  - Red Hat OpenShift AI 2.25.1 (stable-2.25 channel)
  - DataScienceCluster with dashboard, kserve, and workbenches

This will create/modify:
  - CatalogSource in openshift-marketplace
  - Operator subscriptions and installations
  - Namespaces: openshift-serverless, redhat-ods-operator
  - OperatorGroups in custom namespaces
========================================="""


def detect_openshift_version(client: Client) -> str:
    """Return the major.minor OpenShift version the cluster is updating to, e.g. 4.20.

    Raises:
        VersionDetectionError: If ClusterVersion/version can't be read or has no version.
    """
    log.info("Detecting OpenShift version...")
    try:
        cluster_version = client.get(ClusterVersion, "version")
    except ApiError as e:
        raise VersionDetectionError(
            "Failed to detect OpenShift version: %s %s" % (e.status.code, e.status.message)
        ) from e

    version = get_field(cluster_version, "status", "desired", "version")
    if not version:
        raise VersionDetectionError("Failed to detect OpenShift version")

    minor_version = ".".join(version.lstrip("v").split(".")[:2])
    log.info("Detected OpenShift version: %s", minor_version)
    return minor_version


def default_catalog_image(openshift_version: str) -> str:
    """Return the RHOAI 2.25.1 catalog image built for an OpenShift version."""
    image = DEFAULT_CATALOG_IMAGES.get(openshift_version)
    if image is None:
        log.warning(
            "Unknown OpenShift version: %s. Using default for %s",
            openshift_version,
            FALLBACK_OPENSHIFT_VERSION,
        )
        image = DEFAULT_CATALOG_IMAGES[FALLBACK_OPENSHIFT_VERSION]

    return image


def install_prerequisites(client: Client):
    """Subscribe to the operators RHOAI 2.x depends on.

    Raises:
        PatchRejectedError: If the API server rejected one of the objects.
    """
    log.info("Installing prerequisite operators...")
    apply_subscription(client, AUTHORINO)

    try:
        ensure_namespace(client, SERVERLESS.namespace)
    except ApiError as e:
        raise PatchRejectedError(
            "Failed to create namespace %s: %s %s"
            % (SERVERLESS.namespace, e.status.code, e.status.message)
        ) from e
    ensure_operator_group(client, SERVERLESS.operator_group, SERVERLESS.namespace)
    apply_subscription(client, SERVERLESS)

    apply_subscription(client, SERVICE_MESH_2)
    log.info("Prerequisite operators installation initiated")


def wait_for_rhoai_operator(client: Client, config: RunConfig):
    """Wait until the RHOAI operator is installed and its Deployment is available.

    Raises:
        WaitTimeoutError: If any of the steps didn't finish in time.
        ResourceFetchError: If the Subscription doesn't reference an InstallPlan.
    """
    timeouts = config.timeouts
    namespace = RHODS_2_25.namespace

    log.info("Step 1/4: Waiting for InstallPlan to be created...")
    state = wait_for(
        check_condition(
            client, Subscription, RHODS_2_25.name, "InstallPlanPending", namespace=namespace
        ),
        f"InstallPlan of {RHODS_2_25.name}",
        timeout=timeouts.install_plan,
        interval=timeouts.poll_interval,
    )
    require_ready(state, f"Creation of the InstallPlan of {RHODS_2_25.name}")

    log.info("Step 2/4: Getting InstallPlan name...")
    subscription = client.get(Subscription, RHODS_2_25.name, namespace=namespace)
    install_plan = get_field(subscription, "status", "installplan", "name")
    if not install_plan:
        raise ResourceFetchError(
            "Subscription %s does not reference an InstallPlan" % RHODS_2_25.name
        )
    log.info("InstallPlan: %s", install_plan)

    log.info("Step 3/4: Waiting for InstallPlan to be installed...")
    state = wait_for(
        check_condition(client, InstallPlan, install_plan, "Installed", namespace=namespace),
        f"InstallPlan {install_plan} to be installed",
        timeout=timeouts.install_plan,
        interval=timeouts.poll_interval,
    )
    require_ready(state, f"Installation of InstallPlan {install_plan}")

    log.info("Step 4/4: Waiting for %s deployment to be available...", RHODS_OPERATOR)
    state = wait_for(
        check_condition(client, Deployment, RHODS_OPERATOR, "Available", namespace=namespace),
        f"deployment {RHODS_OPERATOR}",
        timeout=timeouts.operator_deployment,
        interval=timeouts.poll_interval,
    )
    require_ready(state, f"Deployment {RHODS_OPERATOR}")
    log.info("RHOAI operator is ready!")


def get_phase(client: Client, res: ResourceType, name: str) -> str:
    """Return status.phase of a cluster-scoped object, or "Unknown"."""
    try:
        return get_field(client.get(res, name), "status", "phase", default="Unknown")
    except ApiError:
        return "Unknown"


def apply_and_wait_ready(
    client: Client,
    res: ResourceType,
    body: codecs.AnyResource,
    timeout: float,
    interval: float,
) -> str:
    """Create or update a DSC or DSCI and wait for its phase to become Ready.

    Returns:
        The phase of the object once the wait is over.

    Raises:
        PatchRejectedError: If the API server rejected the object.
    """
    name = get_name(body)
    log.info("Creating %s...", res.__name__)
    try:
        client.apply(body)
    except ApiError as e:
        raise PatchRejectedError(
            "Failed to apply %s %s: %s %s" % (res.__name__, name, e.status.code, e.status.message)
        ) from e
    log.info("%s created successfully", res.__name__)

    state = wait_for(
        check_field(client, res, name, ("status", "phase"), "Ready"),
        f"{res.__name__} {name} to be ready",
        timeout=timeout,
        interval=interval,
    )
    warn_unless_ready(state, f"{res.__name__} {name} reaching Ready state")

    phase = get_phase(client, res, name)
    log.info("%s phase: %s", res.__name__, phase)
    return phase


def install_rhoai(client: Client, config: RunConfig) -> bool:
    """Install RHOAI 2.25.1 on the cluster.

    Args:
        client: The client to use.
        config: The run configuration. Its catalog_image, if set, overrides the image
                picked for the OpenShift version of the cluster.

    Returns:
        False if the operator declined the confirmation, True once installed.

    Raises:
        VersionDetectionError: If no catalog image was given and the OpenShift version
                               can't be detected.
        PatchRejectedError: If the API server rejected any of the objects.
        WaitTimeoutError: If the catalog or the RHOAI operator didn't get ready in time.
    """
    for line in BANNER.splitlines():
        log.warning(line)

    if not confirm("Do you want to proceed with the installation?", config.assume_yes):
        log.info("Installation cancelled by user")
        return False
    log.info("Proceeding with installation...")

    catalog_image: Optional[str] = config.catalog_image
    if catalog_image is None:
        catalog_image = default_catalog_image(detect_openshift_version(client))
    log.info("Using catalog source image: %s", catalog_image)

    timeouts = config.timeouts
    try:
        ensure_namespace(client, RHODS_OPERATOR_NAMESPACE)
    except ApiError as e:
        raise PatchRejectedError(
            "Failed to create namespace %s: %s %s"
            % (RHODS_OPERATOR_NAMESPACE, e.status.code, e.status.message)
        ) from e

    apply_catalog_source(client, CATALOG_SOURCE_NAME, MARKETPLACE_NAMESPACE, catalog_image)
    state = wait_for(
        check_field(
            client,
            CatalogSource,
            CATALOG_SOURCE_NAME,
            ("status", "connectionState", "lastObservedState"),
            "READY",
            namespace=MARKETPLACE_NAMESPACE,
        ),
        f"CatalogSource {CATALOG_SOURCE_NAME} to be READY",
        timeout=timeouts.catalog_source,
        interval=timeouts.poll_interval,
    )
    require_ready(state, f"CatalogSource {CATALOG_SOURCE_NAME}")
    log.info("CatalogSource %s is READY", CATALOG_SOURCE_NAME)

    install_prerequisites(client)

    ensure_operator_group(client, RHODS_2_25.operator_group, RHODS_2_25.namespace)
    apply_subscription(client, RHODS_2_25)
    wait_for_rhoai_operator(client, config)

    dsci_phase = apply_and_wait_ready(
        client,
        DSCInitialization,
        render_manifest(
            "dscinitialization.yaml",
            name=DSCI_NAME,
            monitoring_namespace=MONITORING_NAMESPACE,
            applications_namespace=APPLICATIONS_NAMESPACE,
        ),
        timeouts.dsci_ready,
        timeouts.poll_interval,
    )
    dsc_phase = apply_and_wait_ready(
        client,
        DataScienceCluster,
        render_manifest("datasciencecluster.yaml", name=DSC_NAME),
        timeouts.dsc_ready,
        timeouts.poll_interval,
    )

    log.info("RHOAI 2.25.1 setup completed successfully!")
    log.info("Installed Operators:")
    for subscription in (AUTHORINO, SERVERLESS, SERVICE_MESH_2, RHODS_2_25):
        log.info("  - %s (%s)", subscription.display_name, subscription.namespace)
    log.info("RHOAI Configuration:")
    log.info("  - DSCInitialization: %s (Phase: %s)", DSCI_NAME, dsci_phase)
    log.info("  - DataScienceCluster: %s (Phase: %s)", DSC_NAME, dsc_phase)

    log.info("Configuring hardware profiles ignorelist...")
    ignorelist_config = RunConfig(namespace=APPLICATIONS_NAMESPACE, timeouts=timeouts)
    try:
        ignorelist.reconcile_inferenceservice_config(client, ignorelist_config)
        log.info("Hardware profiles ignorelist configured successfully")
    except LifecycleError as e:
        log.warning("Hardware profiles ignorelist configuration failed: %s", e)

    return True

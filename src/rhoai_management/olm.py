"""Utility module for installing and removing operators through OLM.

OLM (the Operator Lifecycle Manager) installs an operator from a Subscription,
which resolves to an InstallPlan, which in turn creates a ClusterServiceVersion
(CSV). Removing an operator means removing its Subscription and its CSV.
"""

import logging
from typing import List, Optional

from lightkube import Client
from lightkube.core.exceptions import ApiError

from rhoai_management.catalog.classes import OperatorSubscription
from rhoai_management.errors import PatchRejectedError
from rhoai_management.helpers.k8s import (
    DeleteResult,
    delete_if_exists,
    get_field,
    get_name,
    is_not_found,
    resource_exists,
)
from rhoai_management.helpers.manifests import render_manifest
from rhoai_management.helpers.resources import (
    ClusterServiceVersion,
    OperatorGroup,
    Subscription,
)

log = logging.getLogger(__name__)


def apply_catalog_source(client: Client, name: str, namespace: str, image: str):
    """Create or update a gRPC CatalogSource serving the given catalog image.

    Raises:
        PatchRejectedError: If the API server rejected the CatalogSource.
    """
    log.info("Creating CatalogSource: %s", name)
    body = render_manifest("catalogsource.yaml", name=name, namespace=namespace, image=image)
    try:
        client.apply(body)
    except ApiError as e:
        raise PatchRejectedError(
            "Failed to apply CatalogSource %s: %s %s" % (name, e.status.code, e.status.message)
        ) from e
    log.info("CatalogSource %s created successfully", name)


def apply_subscription(client: Client, subscription: OperatorSubscription):
    """Create or update the Subscription of an operator.

    Raises:
        PatchRejectedError: If the API server rejected the Subscription.
    """
    log.info("Installing %s...", subscription.display_name)
    body = render_manifest("subscription.yaml", subscription=subscription)
    try:
        client.apply(body)
    except ApiError as e:
        raise PatchRejectedError(
            "Failed to apply Subscription %s: %s %s"
            % (subscription.name, e.status.code, e.status.message)
        ) from e
    log.info("%s subscription created", subscription.display_name)


def ensure_operator_group(client: Client, name: str, namespace: str) -> bool:
    """Create an OperatorGroup in a namespace, unless the namespace already has one.

    A namespace must hold at most one OperatorGroup, so any existing one is kept,
    whatever its name.

    Returns:
        True if the OperatorGroup was created.

    Raises:
        PatchRejectedError: If the API server rejected the OperatorGroup.
    """
    if list(client.list(OperatorGroup, namespace=namespace)):
        log.info("OperatorGroup already exists in %s namespace, skipping creation", namespace)
        return False

    log.info("Creating OperatorGroup in %s namespace", namespace)
    body = render_manifest("operatorgroup.yaml", name=name, namespace=namespace)
    try:
        client.create(body)
    except ApiError as e:
        raise PatchRejectedError(
            "Failed to create OperatorGroup %s/%s: %s %s"
            % (namespace, name, e.status.code, e.status.message)
        ) from e
    log.info("OperatorGroup created successfully")
    return True


def find_csvs(client: Client, namespace: str, match: str) -> List[str]:
    """Return the names of the CSVs in a namespace whose name contains a substring.

    The match is case-insensitive. CSVs copied into a namespace by a global
    OperatorGroup are listed too, like `oc get csv` does.
    """
    try:
        csvs = list(client.list(ClusterServiceVersion, namespace=namespace))
    except ApiError as e:
        if is_not_found(e):
            return []
        raise

    return [get_name(csv) for csv in csvs if match.lower() in get_name(csv).lower()]


def get_installplan_name(client: Client, subscription: OperatorSubscription) -> Optional[str]:
    """Return the name of the InstallPlan a Subscription currently references."""
    obj = client.get(Subscription, subscription.name, namespace=subscription.namespace)
    return get_field(obj, "status", "installplan", "name")


def uninstall_operator(
    client: Client, subscription: OperatorSubscription, delete_operator_group: bool = True
) -> List[DeleteResult]:
    """Remove an operator by deleting its Subscription and CSVs.

    If the Subscription doesn't exist the operator is considered already removed and
    its CSVs are left alone. The operator's dedicated OperatorGroup, if it has one, is
    deleted regardless.

    Args:
        client: The client to use.
        subscription: The operator to remove.
        delete_operator_group: Also delete the operator's dedicated OperatorGroup.

    Returns:
        The result of every delete that was attempted.
    """
    log.info("Uninstalling %s...", subscription.display_name)
    results: List[DeleteResult] = []

    if resource_exists(client, Subscription, subscription.name, subscription.namespace):
        log.info("  - Deleting %s subscription...", subscription.display_name)
        results.append(
            delete_if_exists(client, Subscription, subscription.name, subscription.namespace)
        )

        for csv in find_csvs(client, subscription.namespace, subscription.csv_match):
            log.info("  - Deleting %s CSV: %s", subscription.display_name, csv)
            results.append(
                delete_if_exists(client, ClusterServiceVersion, csv, subscription.namespace)
            )
    else:
        log.warning("%s subscription not found, skipping", subscription.display_name)
        results.append(DeleteResult.ABSENT)

    if delete_operator_group and subscription.operator_group:
        if resource_exists(
            client, OperatorGroup, subscription.operator_group, subscription.namespace
        ):
            log.info("  - Deleting %s OperatorGroup...", subscription.display_name)
            results.append(
                delete_if_exists(
                    client, OperatorGroup, subscription.operator_group, subscription.namespace
                )
            )

    return results

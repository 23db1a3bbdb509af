"""Module responsible for tearing down an RHOAI installation.

Cleanup is best effort: every delete is attempted even if previous ones failed, and
the outcome of each one is counted in the CleanupSummary that is returned. Objects
that are already gone are not an error, they are only reported.
"""

import logging
from typing import Callable, List, Optional

from lightkube import Client
from lightkube.core.exceptions import ApiError
from pydantic import BaseModel

from rhoai_management.catalog.classes import CleanupPlan, OperatorSubscription, RhoaiVersion
from rhoai_management.catalog.operators import CLEANUP_PLANS
from rhoai_management.config import (
    CATALOG_SOURCE_NAME,
    DSC_NAME,
    MARKETPLACE_NAMESPACE,
    RunConfig,
    Timeouts,
)
from rhoai_management.helpers.k8s import (
    ALL_NAMESPACES,
    DeleteResult,
    ResourceType,
    delete_all,
    delete_if_exists,
)
from rhoai_management.helpers.prompt import choose, confirm
from rhoai_management.helpers.resources import (
    AcceleratorProfile,
    CatalogSource,
    ClusterServiceVersion,
    CustomResourceDefinition,
    DataScienceCluster,
    DSCInitialization,
    HardwareProfile,
    InferenceService,
    Namespace,
    Notebook,
    OperatorGroup,
    ServingRuntime,
    Subscription,
)
from rhoai_management.helpers.wait import (
    check_all_deleted,
    check_deleted,
    wait_for,
    warn_unless_ready,
)
from rhoai_management.olm import find_csvs, uninstall_operator

log = logging.getLogger(__name__)

WORKLOAD_KINDS = [InferenceService, ServingRuntime, Notebook, HardwareProfile, AcceleratorProfile]

VERSION_ALIASES = {
    "2": RhoaiVersion.V2,
    "2.x": RhoaiVersion.V2,
    "3": RhoaiVersion.V3,
    "3.x": RhoaiVersion.V3,
}


class CleanupSummary(BaseModel):
    """Class counting the outcome of every delete attempted during a cleanup.

    Args:
        version: The RHOAI version that was cleaned up.
        deleted: Number of objects deleted.
        absent: Number of objects that were already gone.
        failed: Number of deletes the API server rejected.
    """

    version: RhoaiVersion
    deleted: int = 0
    absent: int = 0
    failed: int = 0

    def record(self, results: List[DeleteResult]):
        """Add the outcomes of a step to the counts."""
        for result in results:
            if result == DeleteResult.DELETED:
                self.deleted += 1
            elif result == DeleteResult.ABSENT:
                self.absent += 1
            else:
                self.failed += 1

    def __str__(self) -> str:
        """Print the summary in human friendly way."""
        return (
            f"RHOAI {self.version}: {self.deleted} deleted, "
            f"{self.absent} already absent, {self.failed} failed"
        )


def delete_and_wait(
    client: Client,
    res: ResourceType,
    name: str,
    namespace: Optional[str] = None,
    timeouts: Timeouts = Timeouts(),
) -> DeleteResult:
    """Delete an object and wait for it to disappear, e.g. a namespace being finalized.

    A timeout is only reported, since the deletion carries on in the background.
    """
    result = delete_if_exists(client, res, name, namespace)
    if result != DeleteResult.DELETED:
        return result

    state = wait_for(
        check_deleted(client, res, name, namespace),
        f"{res.__name__} {name} to be deleted",
        timeout=timeouts.resource_delete,
        interval=timeouts.poll_interval,
    )
    if not warn_unless_ready(state, f"Deletion of {res.__name__} {name}"):
        log.warning("%s %s deletion may still be in progress", res.__name__, name)
    return result


def _run_step(description: str, step: Callable[[], List[DeleteResult]]) -> List[DeleteResult]:
    """Run a cleanup step, turning an unexpected API error into a FAILED outcome."""
    try:
        return step()
    except ApiError as e:
        log.warning("%s failed: %s %s", description, e.status.code, e.status.message)
        return [DeleteResult.FAILED]


def delete_workloads(client: Client) -> List[DeleteResult]:
    """Delete the user workloads and profiles of every namespace."""
    results: List[DeleteResult] = []
    for res in WORKLOAD_KINDS:
        log.info("  - Deleting %ss...", res.__name__)
        results += _run_step(
            f"Deleting {res.__name__}s",
            lambda res=res: delete_all(client, res, namespace=ALL_NAMESPACES),
        )
    return results


def delete_platform(client: Client, plan: CleanupPlan, timeouts: Timeouts) -> List[DeleteResult]:
    """Delete the DataScienceCluster(s) and DSCInitialization(s), and wait until gone."""
    results = [delete_if_exists(client, DataScienceCluster, DSC_NAME)]
    if plan.delete_all_dscs:
        log.info("  - Deleting remaining DataScienceClusters...")
        results += delete_all(client, DataScienceCluster)
    results += delete_all(client, DSCInitialization)

    log.info("Waiting for DataScienceCluster and DSCI to be fully deleted...")
    for res in (DataScienceCluster, DSCInitialization):
        state = wait_for(
            check_all_deleted(client, res),
            f"all {res.__name__}s to be deleted",
            timeout=timeouts.resource_delete,
            interval=timeouts.poll_interval,
        )
        warn_unless_ready(state, f"Deletion of {res.__name__}s")
    return results


def delete_rhoai_operator(client: Client, operator: OperatorSubscription) -> List[DeleteResult]:
    """Delete the RHOAI operator Subscription, CSV and OperatorGroup, and its catalog.

    Unlike the prerequisite operators, each object is deleted on its own so that a
    half-removed operator is cleaned up too.
    """
    results = [delete_if_exists(client, Subscription, operator.name, operator.namespace)]

    csvs = find_csvs(client, operator.namespace, operator.csv_match)
    if not csvs:
        log.warning("  - RHOAI CSV not found")
        results.append(DeleteResult.ABSENT)
    for csv in csvs:
        results.append(delete_if_exists(client, ClusterServiceVersion, csv, operator.namespace))

    if operator.operator_group:
        results.append(
            delete_if_exists(client, OperatorGroup, operator.operator_group, operator.namespace)
        )
    results.append(
        delete_if_exists(client, CatalogSource, CATALOG_SOURCE_NAME, MARKETPLACE_NAMESPACE)
    )
    return results


def run_cleanup(client: Client, plan: CleanupPlan, timeouts: Timeouts) -> CleanupSummary:
    """Delete everything a cleanup plan lists, continuing past failures.

    Args:
        client: The client to use.
        plan: What makes up the RHOAI installation to remove.
        timeouts: Bounds for the deletion waits.

    Returns:
        The count of deleted, absent and failed objects.
    """
    summary = CleanupSummary(version=plan.version)
    log.info("Starting RHOAI %s cleanup", plan.version)

    log.info("Step 1: Deleting RHOAI custom resources...")
    summary.record(delete_workloads(client))

    log.info("Step 2: Deleting DataScienceCluster and DSCInitialization...")
    summary.record(
        _run_step("Deleting DSC and DSCI", lambda: delete_platform(client, plan, timeouts))
    )

    log.info("Step 3: Deleting RHOAI operator...")
    summary.record(
        _run_step(
            "Deleting RHOAI operator", lambda: delete_rhoai_operator(client, plan.rhoai_operator)
        )
    )

    log.info("Step 4: Deleting prerequisite operators...")
    for operator in plan.operators:
        summary.record(
            _run_step(
                f"Deleting {operator.display_name}",
                lambda operator=operator: uninstall_operator(client, operator),
            )
        )

    log.info("Step 5: Deleting namespaces...")
    for namespace in plan.namespaces:
        summary.record(
            _run_step(
                f"Deleting namespace {namespace}",
                lambda namespace=namespace: [
                    delete_and_wait(client, Namespace, namespace, timeouts=timeouts)
                ],
            )
        )

    log.info("Step 6: Deleting RHOAI Custom Resource Definitions...")
    for crd in plan.crds:
        summary.record([delete_if_exists(client, CustomResourceDefinition, crd)])

    log.info("RHOAI %s cleanup completed", plan.version)
    return summary


def cleanup_rhoai(
    client: Client, config: RunConfig, version: Optional[str] = None
) -> Optional[CleanupSummary]:
    """Ask which RHOAI version to remove, confirm, and remove it.

    Args:
        client: The client to use.
        config: The run configuration.
        version: The version to remove, "2.x" or "3.x". Asked interactively if None.

    Returns:
        The summary of the cleanup, or None if the operator declined the confirmation.
    """
    selected = RhoaiVersion(
        choose("Which version of RHOAI do you want to clean up?", VERSION_ALIASES, version)
    )
    log.info("Selected RHOAI %s for cleanup", selected)
    plan = CLEANUP_PLANS[selected]

    log.warning("WARNING: DESTRUCTIVE OPERATION")
    log.warning("You are about to tear down the following RHOAI installation:")
    for line in str(plan).splitlines():
        log.warning("  %s", line)

    if not confirm("Are you sure you want to proceed?", config.assume_yes):
        log.info("Cleanup cancelled by user")
        return None
    log.info("Proceeding with cleanup...")

    summary = run_cleanup(client, plan, config.timeouts)
    log.info("Cleanup Summary: %s", summary)
    if summary.failed:
        log.warning("%d deletes failed, see the warnings above", summary.failed)
    return summary

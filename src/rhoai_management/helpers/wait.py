"""Bounded polling of K8s objects until they reach an expected state.

All waits go through wait_for(), which repeatedly calls a check until the check
reports READY or FAILED, or until the timeout passes. The check_* functions build
checks for the status shapes used by OLM, the RHOAI operator and Deployments.
"""

import logging
from enum import StrEnum
from typing import Any, Callable, Optional

import tenacity
from lightkube import Client
from lightkube.core.exceptions import ApiError

from rhoai_management.errors import WaitTimeoutError
from rhoai_management.helpers.k8s import ResourceType, get_condition, get_field, is_not_found
from rhoai_management.helpers.resources import Deployment

log = logging.getLogger(__name__)


class WaitState(StrEnum):
    """State of an object that is being waited on."""

    PENDING = "Pending"
    READY = "Ready"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


StateCheck = Callable[[], WaitState]


def wait_for(
    check: StateCheck, description: str, timeout: float, interval: float = 5
) -> WaitState:
    """Call a check until it stops reporting PENDING, for at most `timeout` seconds.

    Args:
        check: Returns the current state of the object waited on.
        description: What is being waited for, for the logs.
        timeout: Seconds after which to give up.
        interval: Seconds between two calls of the check.

    Returns:
        READY or FAILED as reported by the check, or TIMED_OUT.

    Raises:
        ApiError: From lightkube, if the check failed with an unexpected error.
    """
    log.info("Waiting up to %ss for %s...", int(timeout), description)
    retrying = tenacity.Retrying(
        stop=tenacity.stop_after_delay(timeout),
        wait=tenacity.wait_fixed(interval),
        retry=tenacity.retry_if_result(lambda state: state == WaitState.PENDING),
        retry_error_callback=lambda _: WaitState.TIMED_OUT,
    )
    state = retrying(check)
    log.debug("Finished waiting for %s: %s", description, state)
    return state


def require_ready(state: WaitState, description: str):
    """Raise if a wait that the command can't proceed without didn't succeed.

    Raises:
        WaitTimeoutError: If the state is anything other than READY.
    """
    if state != WaitState.READY:
        raise WaitTimeoutError("%s did not succeed (state: %s)" % (description, state))


def warn_unless_ready(state: WaitState, description: str) -> bool:
    """Log a warning if an advisory wait didn't succeed.

    Returns:
        True if the state is READY.
    """
    if state == WaitState.READY:
        return True

    log.warning("%s did not succeed within timeout (state: %s)", description, state)
    return False


def _read(client: Client, res: ResourceType, name: str, namespace: Optional[str]):
    """Return the object, or None if it doesn't exist yet."""
    try:
        return client.get(res, name, namespace=namespace)
    except ApiError as e:
        if is_not_found(e):
            return None
        raise


def check_field(
    client: Client,
    res: ResourceType,
    name: str,
    path: tuple,
    expected: Any,
    namespace: Optional[str] = None,
    failed_values: tuple = (),
) -> StateCheck:
    """Build a check that is READY when a field of an object equals a value.

    Args:
        client: The client to use.
        res: The kind of the object.
        name: The name of the object.
        path: The path to the field, e.g. ("status", "phase").
        expected: The value that makes the check READY.
        namespace: The namespace of the object, for namespaced kinds.
        failed_values: Values of the field that make the check FAILED.

    Returns:
        The check. A missing object or field is PENDING.
    """

    def check() -> WaitState:
        value = get_field(_read(client, res, name, namespace), *path)
        if value == expected:
            return WaitState.READY
        if value in failed_values:
            return WaitState.FAILED
        return WaitState.PENDING

    return check


def check_condition(
    client: Client,
    res: ResourceType,
    name: str,
    condition_type: str,
    namespace: Optional[str] = None,
) -> StateCheck:
    """Build a check that is READY when a status condition of an object is True."""

    def check() -> WaitState:
        obj = _read(client, res, name, namespace)
        condition = get_condition(obj, condition_type) if obj is not None else None
        if condition and condition.get("status") == "True":
            return WaitState.READY
        return WaitState.PENDING

    return check


def check_deleted(
    client: Client, res: ResourceType, name: str, namespace: Optional[str] = None
) -> StateCheck:
    """Build a check that is READY once an object doesn't exist anymore."""

    def check() -> WaitState:
        if _read(client, res, name, namespace) is None:
            return WaitState.READY
        return WaitState.PENDING

    return check


def check_all_deleted(
    client: Client, res: ResourceType, namespace: Optional[str] = None
) -> StateCheck:
    """Build a check that is READY once no object of a kind is left."""

    def check() -> WaitState:
        try:
            objs = list(client.list(res, namespace=namespace))
        except ApiError as e:
            if is_not_found(e):
                return WaitState.READY
            raise

        return WaitState.PENDING if objs else WaitState.READY

    return check


def check_rollout(client: Client, name: str, namespace: str) -> StateCheck:
    """Build a check that is READY once a Deployment finished rolling out.

    The rollout is complete when the controller observed the latest spec and all
    replicas are updated and available, with no old replica left. It is FAILED when
    the Deployment exceeded its progress deadline.
    """

    def check() -> WaitState:
        deployment = _read(client, Deployment, name, namespace)
        if deployment is None:
            return WaitState.PENDING

        generation = get_field(deployment, "metadata", "generation", default=0)
        observed = get_field(deployment, "status", "observedGeneration", default=0)
        if observed < generation:
            return WaitState.PENDING

        progressing = get_condition(deployment, "Progressing")
        if progressing and progressing.get("reason") == "ProgressDeadlineExceeded":
            return WaitState.FAILED

        desired = get_field(deployment, "spec", "replicas", default=1)
        updated = get_field(deployment, "status", "updatedReplicas", default=0)
        replicas = get_field(deployment, "status", "replicas", default=0)
        available = get_field(deployment, "status", "availableReplicas", default=0)
        if updated < desired or replicas > updated or available < updated:
            return WaitState.PENDING

        return WaitState.READY

    return check

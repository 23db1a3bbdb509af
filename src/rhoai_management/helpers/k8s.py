"""Generic helpers for manipulating K8s objects, via lightkube."""

import logging
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Dict, List, Optional, Type

from lightkube import Client, codecs
from lightkube.core.exceptions import ApiError
from lightkube.models.meta_v1 import ObjectMeta
from lightkube.types import PatchType

from rhoai_management.helpers.resources import Deployment, Namespace

log = logging.getLogger(__name__)

# Namespace value that makes lightkube list a namespaced kind in all namespaces
ALL_NAMESPACES = "*"
RESTARTED_AT_ANNOTATION = "kubectl.kubernetes.io/restartedAt"

ResourceType = Type[codecs.AnyResource]


class DeleteResult(StrEnum):
    """Outcome of deleting an object that may or may not exist."""

    DELETED = "deleted"
    ABSENT = "absent"
    FAILED = "failed"


def get_name(res: codecs.AnyResource) -> str:
    """Return the name from a lightkube resource.

    Args:
        res: The resource to get its name from metadata.name

    Raises:
        ValueError: if the object doesn't have metadata or metadata.name

    Returns:
        The name of the object from its metadata.
    """
    if not res.metadata:
        raise ValueError("Couldn't detect name, object has no metadata: %s" % res)

    if not res.metadata.name:
        raise ValueError("Couldn't detect name, object has no name field: %s" % res)

    return res.metadata.name


def get_annotations(res: codecs.AnyResource) -> Dict[str, str]:
    """Return annotations of a resource, or an empty dict.

    Args:
        res: The resource to return its annotations.

    Returns:
        A dictionary with the annotations, or empty dictionary if no annotations exist.
    """
    if res.metadata and res.metadata.annotations:
        return res.metadata.annotations

    return {}


def get_field(res: Optional[codecs.AnyResource], *path: Any, default: Any = None) -> Any:
    """Return a nested field of a resource, or a default if any step is missing.

    The resource is walked in the camelCase shape the API server returns it, so the
    same path works for typed and generic resources.

    Args:
        res: The resource to walk.
        path: The keys (for dicts) and indices (for lists) leading to the field.
        default: The value to return if the field doesn't exist.

    Returns:
        The value of the field.
    """
    if res is None:
        return default

    value: Any = res.to_dict()
    for step in path:
        try:
            value = value[step]
        except (IndexError, KeyError, TypeError):
            return default

    if value is None:
        return default
    return value


def get_condition(res: codecs.AnyResource, condition_type: str) -> Optional[Dict]:
    """Return the status condition of the given type, if the object reports it."""
    for condition in get_field(res, "status", "conditions", default=[]):
        if condition.get("type") == condition_type:
            return condition

    return None


def is_not_found(error: ApiError) -> bool:
    """Check if an API error means the requested object doesn't exist."""
    return error.status.code == 404


def resource_exists(
    client: Client, res: ResourceType, name: str, namespace: Optional[str] = None
) -> bool:
    """Check if an object exists.

    Raises:
        ApiError: From lightkube, if there was an error aside from 404.
    """
    try:
        client.get(res, name, namespace=namespace)
        return True
    except ApiError as e:
        if is_not_found(e):
            return False
        raise


def ensure_namespace(client: Client, name: str) -> bool:
    """Create a namespace if it doesn't exist yet.

    Args:
        name: The namespace to ensure exists.
        client: The lightkube client to use for talking to K8s.

    Returns:
        True if the namespace was created, False if it was already there.

    Raises:
        ApiError: From lightkube, if there was an error aside from 404.
    """
    log.info("Creating namespace: %s", name)
    if resource_exists(client, Namespace, name):
        log.warning("Namespace %s already exists, skipping creation", name)
        return False

    client.create(Namespace(metadata=ObjectMeta(name=name)))
    log.info("Namespace %s created successfully", name)
    return True


def delete_if_exists(
    client: Client, res: ResourceType, name: str, namespace: Optional[str] = None
) -> DeleteResult:
    """Delete an object, telling apart an object that was absent from a failed delete.

    Args:
        client: The lightkube client to use.
        res: The kind of the object.
        name: The name of the object.
        namespace: The namespace of the object, for namespaced kinds.

    Returns:
        DELETED if the delete request was accepted, ABSENT if there was no such object,
        FAILED if the API server returned any other error.
    """
    kind = res.__name__
    location = f"{namespace}/{name}" if namespace else name
    try:
        client.delete(res, name, namespace=namespace)
    except ApiError as e:
        if is_not_found(e):
            log.warning("%s %s not found", kind, location)
            return DeleteResult.ABSENT

        log.warning(
            "Failed to delete %s %s: %s %s", kind, location, e.status.code, e.status.message
        )
        return DeleteResult.FAILED

    log.info("Deleted %s %s", kind, location)
    return DeleteResult.DELETED


def delete_all(
    client: Client, res: ResourceType, namespace: Optional[str] = None
) -> List[DeleteResult]:
    """Delete every object of a kind.

    A kind whose CRD is not installed is treated as having no objects.

    Args:
        client: The lightkube client to use.
        res: The kind of the objects.
        namespace: ALL_NAMESPACES or a namespace for namespaced kinds, None for
                   cluster-scoped kinds.

    Returns:
        The result of each delete. An empty list if there was nothing to delete.
    """
    try:
        objs = list(client.list(res, namespace=namespace))
    except ApiError as e:
        if is_not_found(e):
            log.warning("No %s found, the kind is not served by the cluster", res.__name__)
            return []

        log.warning("Failed to list %s: %s %s", res.__name__, e.status.code, e.status.message)
        return [DeleteResult.FAILED]

    if not objs:
        log.warning("No %s found", res.__name__)
        return []

    return [delete_if_exists(client, res, get_name(obj), obj.metadata.namespace) for obj in objs]


def restart_deployment(client: Client, name: str, namespace: str):
    """Trigger a rolling restart of a Deployment, like `kubectl rollout restart`.

    Raises:
        ApiError: From lightkube, if the Deployment couldn't be patched.
    """
    restarted_at = datetime.now(timezone.utc).isoformat()
    annotations = {RESTARTED_AT_ANNOTATION: restarted_at}
    patch = {"spec": {"template": {"metadata": {"annotations": annotations}}}}
    client.patch(Deployment, name, patch, namespace=namespace, patch_type=PatchType.MERGE)
    log.info("Restart of deployment %s/%s triggered", namespace, name)

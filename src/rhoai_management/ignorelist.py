"""Module responsible for making KServe ignore hardware profile annotations.

The KServe controller copies the annotations of an InferenceService to the objects
it creates, except the ones in serviceAnnotationDisallowedList of its
inferenceservice-config ConfigMap. The RHOAI operator owns that ConfigMap and
would revert manual edits, unless the ConfigMap is annotated as not managed.

The main function exposed is reconcile_inferenceservice_config(), which:
1. annotates the ConfigMap with opendatahub.io/managed=false
2. appends the hardware profile annotations to serviceAnnotationDisallowedList
3. restarts the KServe controller so that it picks up the new list

Each step only writes when the ConfigMap isn't already in the desired state.
"""

import json
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from lightkube import Client
from lightkube.core.exceptions import ApiError
from lightkube.types import PatchType
from pydantic import BaseModel, ConfigDict

from rhoai_management.config import RunConfig
from rhoai_management.errors import (
    InvalidArgumentError,
    MalformedPayloadError,
    NamespaceNotFoundError,
    PatchRejectedError,
    ResourceFetchError,
)
from rhoai_management.helpers.k8s import get_annotations, resource_exists, restart_deployment
from rhoai_management.helpers.resources import ConfigMap, Namespace
from rhoai_management.helpers.wait import WaitState, check_rollout, wait_for, warn_unless_ready

log = logging.getLogger(__name__)

CONFIGMAP_NAME = "inferenceservice-config"
PAYLOAD_KEY = "inferenceService"
DISALLOWED_LIST_KEY = "serviceAnnotationDisallowedList"
MANAGED_ANNOTATION = "opendatahub.io/managed"
CONTROLLER_DEPLOYMENT = "kserve-controller-manager"

ANNOTATIONS_TO_DISALLOW = (
    "opendatahub.io/hardware-profile-name",
    "opendatahub.io/hardware-profile-namespace",
)


class ReconcileResult(BaseModel):
    """Class representing what a reconciliation changed, or would change in dry-run.

    Args:
        dry_run: If the changes were only computed and not applied.
        annotation_updated: If the managed annotation was (or would be) set to "false".
        added_entries: The entries appended (or that would be) to the disallowed list.
        restart: The state of the controller restart, or None if none was performed.
    """

    model_config = ConfigDict(frozen=True)

    dry_run: bool
    annotation_updated: bool = False
    added_entries: Tuple[str, ...] = ()
    restart: Optional[WaitState] = None

    @property
    def changed(self) -> bool:
        """If the ConfigMap needed any change."""
        return self.annotation_updated or bool(self.added_entries)


def fetch_configmap(client: Client, namespace: str) -> ConfigMap:
    """Return the inferenceservice-config ConfigMap.

    Raises:
        ResourceFetchError: If the ConfigMap doesn't exist or can't be read.
    """
    try:
        return client.get(ConfigMap, CONFIGMAP_NAME, namespace=namespace)
    except ApiError as e:
        raise ResourceFetchError(
            "Failed to retrieve ConfigMap '%s' from namespace '%s': %s %s"
            % (CONFIGMAP_NAME, namespace, e.status.code, e.status.message)
        ) from e


def parse_payload(configmap: ConfigMap) -> Dict:
    """Return the JSON document held in data.inferenceService of the ConfigMap.

    A missing field is treated as an empty document.

    Raises:
        MalformedPayloadError: If the field isn't a JSON object.
    """
    raw = (configmap.data or {}).get(PAYLOAD_KEY)
    if raw is None:
        return {}

    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError("Failed to parse data.%s as JSON: %s" % (PAYLOAD_KEY, e))

    if not isinstance(payload, dict):
        raise MalformedPayloadError("data.%s is not a JSON object" % PAYLOAD_KEY)

    return payload


def get_disallowed_list(payload: Dict) -> List[str]:
    """Return serviceAnnotationDisallowedList of the document, or an empty list.

    Raises:
        MalformedPayloadError: If the field isn't a JSON array.
    """
    current = payload.get(DISALLOWED_LIST_KEY)
    if current is None:
        return []

    if not isinstance(current, list):
        raise MalformedPayloadError("%s is not a JSON array" % DISALLOWED_LIST_KEY)

    return current


def missing_entries(current: Sequence[str], desired: Sequence[str]) -> List[str]:
    """Return the desired entries not in the current list, in their desired order."""
    missing = []
    for entry in desired:
        if entry in current:
            log.info("Annotation '%s' already in disallowed list", entry)
        elif entry not in missing:
            missing.append(entry)

    return missing


def is_managed_annotation_disabled(configmap: ConfigMap) -> bool:
    """Check if the ConfigMap is already annotated with opendatahub.io/managed=false."""
    current_value = get_annotations(configmap).get(MANAGED_ANNOTATION)
    if current_value == "false":
        log.info("Annotation '%s=false' already exists", MANAGED_ANNOTATION)
        return True

    log.info(
        "Annotation '%s' is '%s', will set to 'false'",
        MANAGED_ANNOTATION,
        current_value if current_value is not None else "not-set",
    )
    return False


def _patch_configmap(client: Client, namespace: str, patch: Dict, what: str):
    try:
        client.patch(
            ConfigMap, CONFIGMAP_NAME, patch, namespace=namespace, patch_type=PatchType.MERGE
        )
    except ApiError as e:
        raise PatchRejectedError(
            "Failed to patch ConfigMap %s (%s): %s %s"
            % (CONFIGMAP_NAME, what, e.status.code, e.status.message)
        ) from e


def restart_controller(client: Client, namespace: str, timeout: float, interval: float = 5):
    """Restart the KServe controller and wait for the rollout to finish.

    A rollout that doesn't finish in time is only reported, since the ConfigMap has
    already been updated by then and the controller will eventually pick it up.

    Returns:
        The final state of the rollout.

    Raises:
        PatchRejectedError: If the restart request was rejected.
    """
    log.info("Restarting %s deployment...", CONTROLLER_DEPLOYMENT)
    try:
        restart_deployment(client, CONTROLLER_DEPLOYMENT, namespace)
    except ApiError as e:
        raise PatchRejectedError(
            "Failed to restart %s deployment: %s %s"
            % (CONTROLLER_DEPLOYMENT, e.status.code, e.status.message)
        ) from e

    state = wait_for(
        check_rollout(client, CONTROLLER_DEPLOYMENT, namespace),
        f"rollout of {CONTROLLER_DEPLOYMENT}",
        timeout=timeout,
        interval=interval,
    )
    if warn_unless_ready(state, f"Rollout of {CONTROLLER_DEPLOYMENT}"):
        log.info("Controller restarted successfully")
    return state


def reconcile_inferenceservice_config(client: Client, config: RunConfig) -> ReconcileResult:
    """Ensure inferenceservice-config ignores the hardware profile annotations.

    Args:
        client: The client to use.
        config: The run configuration. Its namespace selects the ConfigMap and its
                dry_run flag disables every write.

    Returns:
        What was changed, or what would have been changed in dry-run.

    Raises:
        NamespaceNotFoundError: If the namespace doesn't exist.
        ResourceFetchError: If the ConfigMap doesn't exist.
        InvalidArgumentError: If no namespace was given.
        MalformedPayloadError: If data.inferenceService isn't valid JSON. Nothing has
                               been written when this is raised.
        PatchRejectedError: If a write was rejected by the API server.
    """
    namespace = config.namespace
    if not namespace or not namespace.strip():
        raise InvalidArgumentError("A namespace is required to reconcile %s" % CONFIGMAP_NAME)

    if not resource_exists(client, Namespace, namespace):
        raise NamespaceNotFoundError("Namespace '%s' does not exist" % namespace)

    if config.dry_run:
        log.info("DRY-RUN MODE")

    configmap = fetch_configmap(client, namespace)
    # Fail on a malformed payload before writing the annotation
    get_disallowed_list(parse_payload(configmap))

    annotation_updated = not is_managed_annotation_disabled(configmap)
    if annotation_updated:
        if config.dry_run:
            log.info("[DRY-RUN] Would add annotation: %s=false", MANAGED_ANNOTATION)
        else:
            _patch_configmap(
                client,
                namespace,
                {"metadata": {"annotations": {MANAGED_ANNOTATION: "false"}}},
                "managed annotation",
            )
            log.info("Added annotation: %s=false", MANAGED_ANNOTATION)
            configmap = fetch_configmap(client, namespace)

    payload = parse_payload(configmap)
    current_list = get_disallowed_list(payload)
    to_add = missing_entries(current_list, ANNOTATIONS_TO_DISALLOW)

    if not to_add:
        log.info("No annotations need to be added")
        return ReconcileResult(dry_run=config.dry_run, annotation_updated=annotation_updated)

    if config.dry_run:
        log.info("[DRY-RUN] Would add to disallowed list:")
        for entry in to_add:
            log.info("  - %s", entry)
        log.info("[DRY-RUN] Would restart %s deployment", CONTROLLER_DEPLOYMENT)
        return ReconcileResult(
            dry_run=True, annotation_updated=annotation_updated, added_entries=tuple(to_add)
        )

    payload[DISALLOWED_LIST_KEY] = list(current_list) + to_add
    _patch_configmap(
        client,
        namespace,
        {"data": {PAYLOAD_KEY: json.dumps(payload, indent=2)}},
        DISALLOWED_LIST_KEY,
    )
    log.info("Added to disallowed list:")
    for entry in to_add:
        log.info("  - %s", entry)

    restart = restart_controller(
        client, namespace, config.timeouts.rollout, config.timeouts.poll_interval
    )
    return ReconcileResult(
        dry_run=False,
        annotation_updated=annotation_updated,
        added_entries=tuple(to_add),
        restart=restart,
    )

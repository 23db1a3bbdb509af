"""Module responsible for saving the RHOAI-related cluster state before and after an upgrade.

Every capture step writes one YAML file named <stage>-upgrade-<suffix>.yaml, so that
the pre and post files of the same step can be compared side by side.
"""

import logging
from enum import StrEnum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml
from lightkube import Client, codecs, operators
from lightkube.core.exceptions import ApiError
from pydantic import BaseModel, ConfigDict

from rhoai_management.config import DSC_NAME, DSCI_NAME
from rhoai_management.helpers.k8s import ALL_NAMESPACES, get_field
from rhoai_management.helpers.prompt import choose
from rhoai_management.helpers.resources import (
    AcceleratorProfile,
    DataScienceCluster,
    Deployment,
    DSCInitialization,
    HardwareProfile,
    InferenceService,
    Notebook,
    Pod,
    ReplicaSet,
    ServingRuntime,
    StatefulSet,
)

log = logging.getLogger(__name__)

DEFAULT_OUTPUT_DIR = "pre-post-cluster-state"
ISVC_LABEL = "serving.kserve.io/inferenceservice"
WORKBENCH_LABEL = "opendatahub.io/workbenches"


class CaptureStage(StrEnum):
    """Whether the state is captured before or after the upgrade."""

    PRE = "pre"
    POST = "post"


class CaptureStep(BaseModel):
    """Class representing one file of a capture.

    Args:
        suffix: The suffix of the file name.
        description: What is captured, for the logs.
        res: The kind of the captured objects.
        name: The name of the single object to capture, or None to capture all
              objects of the kind in all namespaces.
        label: Restricts the captured objects to the ones carrying this label, whatever
               its value.
        stages: The stages this step runs in.
        owners_only: Write a namespace/name/owner kind row per object, instead of the
                     objects themselves.
    """

    model_config = ConfigDict(frozen=True)

    suffix: str
    description: str
    res: type
    name: Optional[str] = None
    label: Optional[str] = None
    stages: Tuple[CaptureStage, ...] = (CaptureStage.PRE, CaptureStage.POST)
    owners_only: bool = False

    def filename(self, stage: CaptureStage) -> str:
        """Return the name of the file this step writes in a stage."""
        return f"{stage}-upgrade-{self.suffix}.yaml"


CAPTURE_STEPS = [
    CaptureStep(
        suffix="dsc", description="DataScienceCluster", res=DataScienceCluster, name=DSC_NAME
    ),
    CaptureStep(
        suffix="dsci", description="DSCInitialization", res=DSCInitialization, name=DSCI_NAME
    ),
    CaptureStep(
        suffix="hwps",
        description="HardwareProfiles",
        res=HardwareProfile,
        stages=(CaptureStage.POST,),
    ),
    CaptureStep(suffix="aps", description="AcceleratorProfiles", res=AcceleratorProfile),
    CaptureStep(suffix="servingruntimes", description="ServingRuntimes", res=ServingRuntime),
    CaptureStep(suffix="isvcs", description="InferenceServices", res=InferenceService),
    CaptureStep(
        suffix="isvc-pods",
        description="InferenceService Pods",
        res=Pod,
        label=ISVC_LABEL,
    ),
    CaptureStep(
        suffix="isvc-replicasets",
        description="InferenceService ReplicaSets",
        res=ReplicaSet,
        label=ISVC_LABEL,
    ),
    CaptureStep(
        suffix="isvc-deployments",
        description="InferenceService Deployments",
        res=Deployment,
        label=ISVC_LABEL,
    ),
    CaptureStep(suffix="notebooks", description="Notebooks", res=Notebook),
    CaptureStep(
        suffix="notebook-pods",
        description="Notebook Pods",
        res=Pod,
        label=WORKBENCH_LABEL,
    ),
    CaptureStep(
        suffix="notebook-statefulsets",
        description="Notebook StatefulSets",
        res=StatefulSet,
        owners_only=True,
    ),
]


def strip_managed_fields(obj: Dict) -> Dict:
    """Remove metadata.managedFields from an object, in place."""
    (obj.get("metadata") or {}).pop("managedFields", None)
    return obj


def owner_row(obj: codecs.AnyResource) -> Dict[str, str]:
    """Return the namespace, name and first owner kind of an object."""
    return {
        "namespace": get_field(obj, "metadata", "namespace", default="<none>"),
        "name": get_field(obj, "metadata", "name", default="<none>"),
        "ownerKind": get_field(obj, "metadata", "ownerReferences", 0, "kind", default="<none>"),
    }


def collect(client: Client, step: CaptureStep):
    """Return the document a step writes.

    Raises:
        ApiError: From lightkube, if the objects couldn't be read.
    """
    if step.name is not None:
        return strip_managed_fields(client.get(step.res, step.name).to_dict())

    labels = {step.label: operators.exists()} if step.label else None
    objs = client.list(step.res, namespace=ALL_NAMESPACES, labels=labels)
    if step.owners_only:
        return [owner_row(obj) for obj in objs]

    return {
        "apiVersion": "v1",
        "kind": "List",
        "items": [strip_managed_fields(obj.to_dict()) for obj in objs],
        "metadata": {"resourceVersion": ""},
    }


def capture_state(client: Client, stage: CaptureStage, output_dir: Path) -> List[Path]:
    """Write one file per capture step of a stage into a directory.

    A step that fails is reported and skipped, the other steps still run.

    Args:
        client: The client to use.
        stage: Whether this is the state before or after the upgrade.
        output_dir: The directory to write into. Created if it doesn't exist.

    Returns:
        The paths of the files written.
    """
    if output_dir.is_dir():
        log.info("Directory already exists: %s", output_dir)
    else:
        log.info("Creating directory: %s", output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
    log.info("Saving cluster state to: %s", output_dir.resolve())

    log.info("Starting %s-upgrade state capture", stage)
    steps = [step for step in CAPTURE_STEPS if stage in step.stages]
    written = []
    for i, step in enumerate(steps, start=1):
        log.info("Step %d: Capturing %s...", i, step.description)
        try:
            document = collect(client, step)
        except ApiError as e:
            log.warning(
                "Failed to capture %s: %s %s", step.description, e.status.code, e.status.message
            )
            continue

        path = output_dir / step.filename(stage)
        with open(path, "w") as f:
            yaml.safe_dump(document, f, default_flow_style=False, sort_keys=False)
        log.info("  Saved to %s", path.name)
        written.append(path)

    log.info("Capture stage: %s-upgrade", stage)
    log.info("Output directory: %s", output_dir.resolve())
    log.info("Files saved:")
    for path in written:
        log.info("  - %s", path.name)
    return written


def capture_cluster_state(
    client: Client, stage: Optional[str] = None, output_dir: str = DEFAULT_OUTPUT_DIR
) -> List[Path]:
    """Ask for the stage, unless given, and capture the cluster state."""
    selected = CaptureStage(
        choose(
            "Do you want to capture pre or post upgrade state?",
            {"pre": CaptureStage.PRE, "post": CaptureStage.POST},
            stage,
        )
    )
    log.info("Selected %s-upgrade state capture", selected)
    return capture_state(client, selected, Path(output_dir))

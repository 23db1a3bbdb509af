"""This package provides classes for the fixed catalog of operators and resources.

The goal of these classes is to describe what the lifecycle commands install and
remove in a more Pythonic way, rather than as scattered string constants, so that
install, upgrade preparation and cleanup share the same description of an operator.

The classes don't talk to the cluster themselves.
"""

import logging
from enum import StrEnum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from rhoai_management.config import MARKETPLACE_NAMESPACE, OPERATORS_NAMESPACE

log = logging.getLogger(__name__)


class RhoaiVersion(StrEnum):
    """Class representing the RHOAI major version an installation belongs to."""

    V2 = "2.x"
    V3 = "3.x"


class OperatorSubscription(BaseModel):
    """Class representing an operator installed through an OLM Subscription.

    Args:
        display_name: Human friendly name of the operator, for the logs.
        name: The name of the Subscription object.
        package_name: The name of the operator package in the catalog, if it differs
                      from the Subscription name.
        namespace: The namespace of the Subscription.
        channel: The update channel to subscribe to.
        source: The CatalogSource providing the package.
        source_namespace: The namespace of the CatalogSource.
        install_plan_approval: Automatic or Manual.
        starting_csv: The ClusterServiceVersion to start from, if pinned.
        csv_match: Substring identifying the operator's ClusterServiceVersions.
        operator_group: The OperatorGroup dedicated to this operator, if it has one.

    Raises:
        ValidationError: From pydantic if the validation failed.
    """

    model_config = ConfigDict(frozen=True)

    display_name: str
    name: str
    package_name: Optional[str] = None
    namespace: str = OPERATORS_NAMESPACE
    channel: str = "stable"
    source: str = "redhat-operators"
    source_namespace: str = MARKETPLACE_NAMESPACE
    install_plan_approval: str = "Automatic"
    starting_csv: Optional[str] = None
    csv_match: str
    operator_group: Optional[str] = None

    @property
    def package(self) -> str:
        """The name of the operator package in the catalog."""
        return self.package_name or self.name


class CleanupPlan(BaseModel):
    """Class representing everything that makes up an RHOAI installation of a version.

    Args:
        version: The RHOAI major version.
        rhoai_operator: The Subscription of the RHOAI operator itself.
        operators: The prerequisite operators, in the order they should be removed.
        namespaces: The namespaces to delete.
        crds: The CustomResourceDefinitions to delete.
        delete_all_dscs: Also delete DataScienceClusters other than the default one.

    Raises:
        ValidationError: From pydantic if the validation failed.
    """

    model_config = ConfigDict(frozen=True)

    version: RhoaiVersion
    rhoai_operator: OperatorSubscription
    operators: List[OperatorSubscription]
    namespaces: List[str]
    crds: List[str]
    delete_all_dscs: bool = False

    def __str__(self) -> str:
        """Print the plan in human friendly way."""
        repr = f"RHOAI {self.version}:\n"
        repr += f"- operator: {self.rhoai_operator.display_name}\n"
        for op in self.operators:
            repr += f"- prerequisite: {op.display_name}\n"
        repr += f"- namespaces: {len(self.namespaces)}, CRDs: {len(self.crds)}\n"
        return repr

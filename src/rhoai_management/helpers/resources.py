"""The kinds of K8s objects the lifecycle commands work with."""

from lightkube.generic_resource import create_global_resource, create_namespaced_resource
from lightkube.resources.apiextensions_v1 import CustomResourceDefinition
from lightkube.resources.apps_v1 import Deployment, ReplicaSet, StatefulSet
from lightkube.resources.core_v1 import ConfigMap, Namespace, Pod

__all__ = [
    "AcceleratorProfile",
    "CatalogSource",
    "ClusterServiceVersion",
    "ClusterVersion",
    "ConfigMap",
    "CustomResourceDefinition",
    "DSCInitialization",
    "DataScienceCluster",
    "Deployment",
    "HardwareProfile",
    "InferenceService",
    "InstallPlan",
    "Namespace",
    "Notebook",
    "OperatorGroup",
    "Pod",
    "ReplicaSet",
    "ServingRuntime",
    "StatefulSet",
    "Subscription",
    "User",
]

# OpenShift
ClusterVersion = create_global_resource(
    group="config.openshift.io", version="v1", kind="ClusterVersion", plural="clusterversions"
)
User = create_global_resource(group="user.openshift.io", version="v1", kind="User", plural="users")

# Operator Lifecycle Manager
CatalogSource = create_namespaced_resource(
    group="operators.coreos.com", version="v1alpha1", kind="CatalogSource", plural="catalogsources"
)
Subscription = create_namespaced_resource(
    group="operators.coreos.com", version="v1alpha1", kind="Subscription", plural="subscriptions"
)
InstallPlan = create_namespaced_resource(
    group="operators.coreos.com", version="v1alpha1", kind="InstallPlan", plural="installplans"
)
ClusterServiceVersion = create_namespaced_resource(
    group="operators.coreos.com",
    version="v1alpha1",
    kind="ClusterServiceVersion",
    plural="clusterserviceversions",
)
OperatorGroup = create_namespaced_resource(
    group="operators.coreos.com", version="v1", kind="OperatorGroup", plural="operatorgroups"
)

# RHOAI platform
DSCInitialization = create_global_resource(
    group="dscinitialization.opendatahub.io",
    version="v1",
    kind="DSCInitialization",
    plural="dscinitializations",
)
DataScienceCluster = create_global_resource(
    group="datasciencecluster.opendatahub.io",
    version="v1",
    kind="DataScienceCluster",
    plural="datascienceclusters",
)

# RHOAI workloads
InferenceService = create_namespaced_resource(
    group="serving.kserve.io",
    version="v1beta1",
    kind="InferenceService",
    plural="inferenceservices",
)
ServingRuntime = create_namespaced_resource(
    group="serving.kserve.io", version="v1alpha1", kind="ServingRuntime", plural="servingruntimes"
)
Notebook = create_namespaced_resource(
    group="kubeflow.org", version="v1", kind="Notebook", plural="notebooks"
)
HardwareProfile = create_namespaced_resource(
    group="infrastructure.opendatahub.io",
    version="v1alpha1",
    kind="HardwareProfile",
    plural="hardwareprofiles",
)
AcceleratorProfile = create_namespaced_resource(
    group="dashboard.opendatahub.io",
    version="v1",
    kind="AcceleratorProfile",
    plural="acceleratorprofiles",
)

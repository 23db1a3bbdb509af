"""The operators and cluster-wide objects making up RHOAI 2.x and 3.x installations."""

from rhoai_management.catalog.classes import CleanupPlan, OperatorSubscription, RhoaiVersion
from rhoai_management.config import (
    APPLICATIONS_NAMESPACE,
    CATALOG_SOURCE_NAME,
    MONITORING_NAMESPACE,
    RHODS_OPERATOR,
    RHODS_OPERATOR_NAMESPACE,
    SERVERLESS_NAMESPACE,
)

RHODS_2_25 = OperatorSubscription(
    display_name="Red Hat OpenShift AI",
    name=RHODS_OPERATOR,
    namespace=RHODS_OPERATOR_NAMESPACE,
    channel="stable-2.25",
    source=CATALOG_SOURCE_NAME,
    csv_match="rhods",
    operator_group=RHODS_OPERATOR_NAMESPACE,
)
RHODS_UPGRADE_CHANNEL = "stable-3.3"
RHODS_3_3 = RHODS_2_25.model_copy(update={"channel": RHODS_UPGRADE_CHANNEL})

# Prerequisites of RHOAI 2.x
AUTHORINO = OperatorSubscription(
    display_name="Red Hat Authorino Operator",
    name="authorino-operator",
    csv_match="authorino",
)
SERVERLESS = OperatorSubscription(
    display_name="Red Hat OpenShift Serverless",
    name="serverless-operator",
    namespace=SERVERLESS_NAMESPACE,
    csv_match="serverless",
    operator_group=SERVERLESS_NAMESPACE,
)
SERVICE_MESH_2 = OperatorSubscription(
    display_name="Red Hat OpenShift Service Mesh",
    name="servicemeshoperator",
    csv_match="servicemesh",
)

# Prerequisites of RHOAI 3.x
CONNECTIVITY_LINK = OperatorSubscription(
    display_name="Red Hat Connectivity Link",
    name="rhcl-operator",
    starting_csv="rhcl-operator.v1.2.1",
    csv_match="rhcl",
)
# Installed as dependencies of Connectivity Link, so OLM names their Subscriptions
AUTHORINO_RHCL = OperatorSubscription(
    display_name="Authorino Operator",
    name="authorino-operator-stable-redhat-operators-openshift-marketplace",
    package_name="authorino-operator",
    csv_match="authorino",
)
DNS = OperatorSubscription(
    display_name="DNS Operator",
    name="dns-operator-stable-redhat-operators-openshift-marketplace",
    package_name="dns-operator",
    csv_match="dns",
)
LIMITADOR = OperatorSubscription(
    display_name="Limitador Operator",
    name="limitador-operator-stable-redhat-operators-openshift-marketplace",
    package_name="limitador-operator",
    csv_match="limitador",
)
SERVICE_MESH_3 = OperatorSubscription(
    display_name="Red Hat OpenShift Service Mesh 3",
    name="servicemeshoperator3",
    csv_match="servicemeshoperator3",
)

RHOAI_NAMESPACES = [
    RHODS_OPERATOR_NAMESPACE,
    SERVERLESS_NAMESPACE,
    APPLICATIONS_NAMESPACE,
    MONITORING_NAMESPACE,
    "opendatahub",
    "rhods-notebooks",
    "redhat-ods-applications-auth-provider",
]

RHOAI_2_CRDS = [
    "acceleratorprofiles.dashboard.opendatahub.io",
    "auths.services.platform.opendatahub.io",
    "codeflares.components.platform.opendatahub.io",
    "dashboards.components.platform.opendatahub.io",
    "datascienceclusters.datasciencecluster.opendatahub.io",
    "datasciencepipelines.components.platform.opendatahub.io",
    "dscinitializations.dscinitialization.opendatahub.io",
    "feastoperators.components.platform.opendatahub.io",
    "featuretrackers.features.opendatahub.io",
    "hardwareprofiles.dashboard.opendatahub.io",
    "hardwareprofiles.infrastructure.opendatahub.io",
    "kserves.components.platform.opendatahub.io",
    "kueues.components.platform.opendatahub.io",
    "llamastackoperators.components.platform.opendatahub.io",
    "modelcontrollers.components.platform.opendatahub.io",
    "modelmeshservings.components.platform.opendatahub.io",
    "modelregistries.components.platform.opendatahub.io",
    "monitorings.services.platform.opendatahub.io",
    "rays.components.platform.opendatahub.io",
    "servicemeshes.services.platform.opendatahub.io",
    "trainingoperators.components.platform.opendatahub.io",
    "trustyais.components.platform.opendatahub.io",
    "workbenches.components.platform.opendatahub.io",
]

RHOAI_3_CRDS = sorted(
    RHOAI_2_CRDS
    + [
        "gatewayconfigs.services.platform.opendatahub.io",
        "mlflowoperators.components.platform.opendatahub.io",
        "modelsasservices.components.platform.opendatahub.io",
        "trainers.components.platform.opendatahub.io",
    ]
)

CLEANUP_PLANS = {
    RhoaiVersion.V2: CleanupPlan(
        version=RhoaiVersion.V2,
        rhoai_operator=RHODS_2_25,
        operators=[SERVICE_MESH_2, SERVERLESS, AUTHORINO],
        namespaces=RHOAI_NAMESPACES,
        crds=RHOAI_2_CRDS,
    ),
    RhoaiVersion.V3: CleanupPlan(
        version=RhoaiVersion.V3,
        rhoai_operator=RHODS_3_3,
        operators=[CONNECTIVITY_LINK, AUTHORINO_RHCL, DNS, LIMITADOR, SERVICE_MESH_3],
        namespaces=RHOAI_NAMESPACES,
        crds=RHOAI_3_CRDS,
        delete_all_dscs=True,
    ),
}

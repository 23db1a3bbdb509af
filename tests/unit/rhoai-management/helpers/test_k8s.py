import pytest
from lightkube.core.exceptions import ApiError
from lightkube.generic_resource import GenericNamespacedResource
from lightkube.models.meta_v1 import ObjectMeta
from lightkube.types import PatchType

from rhoai_management.helpers.k8s import (
    ALL_NAMESPACES,
    RESTARTED_AT_ANNOTATION,
    DeleteResult,
    delete_all,
    delete_if_exists,
    ensure_namespace,
    get_annotations,
    get_condition,
    get_field,
    get_name,
    resource_exists,
    restart_deployment,
)
from rhoai_management.helpers.resources import (
    DataScienceCluster,
    Deployment,
    InferenceService,
    Namespace,
)


@pytest.mark.parametrize(
    "resource,expected_annotations",
    [
        (
            GenericNamespacedResource(
                metadata=ObjectMeta(name="test", annotations={"test": "value"})
            ),
            {"test": "value"},
        ),
        (GenericNamespacedResource(metadata=ObjectMeta(name="test")), {}),
        (GenericNamespacedResource(), {}),
    ],
)
def test_annotations(resource, expected_annotations):
    assert get_annotations(resource) == expected_annotations


@pytest.mark.parametrize(
    "resource",
    [
        GenericNamespacedResource(),
        GenericNamespacedResource(metadata=ObjectMeta()),
        GenericNamespacedResource(metadata=ObjectMeta(namespace="a")),
    ],
)
def test_get_name_without_name(resource):
    with pytest.raises(ValueError):
        get_name(resource)


@pytest.mark.parametrize(
    "path,expected",
    [
        (("status", "phase"), "Ready"),
        (("status", "conditions", 0, "type"), "Available"),
        (("status", "conditions", 1, "type"), "default"),
        (("status", "missing"), "default"),
        (("status", "phase", "nested"), "default"),
        (("status", "nothing"), "default"),
    ],
)
def test_get_field(path, expected):
    obj = DataScienceCluster.from_dict(
        {
            "metadata": {"name": "default-dsc"},
            "status": {"phase": "Ready", "conditions": [{"type": "Available"}], "nothing": None},
        }
    )

    assert get_field(obj, *path, default="default") == expected


def test_get_field_of_typed_resource():
    obj = Deployment.from_dict(
        {"metadata": {"name": "test"}, "status": {"availableReplicas": 1}}
    )

    assert get_field(obj, "status", "availableReplicas") == 1
    assert get_field(obj, "status", "readyReplicas", default=0) == 0


def test_get_field_of_none():
    assert get_field(None, "status") is None


def test_get_condition():
    obj = DataScienceCluster.from_dict(
        {
            "metadata": {"name": "default-dsc"},
            "status": {"conditions": [{"type": "A", "status": "False"}, {"type": "B"}]},
        }
    )

    assert get_condition(obj, "A") == {"type": "A", "status": "False"}
    assert get_condition(obj, "C") is None
    assert get_condition(DataScienceCluster.from_dict({}), "A") is None


def test_resource_exists_propagates_other_errors(mocked_client, api_error):
    mocked_client.get.side_effect = api_error(403)

    with pytest.raises(ApiError):
        resource_exists(mocked_client, Namespace, "test")


def test_ensure_namespace(fake_client):
    assert ensure_namespace(fake_client, "test")
    assert fake_client.has(Namespace, "test")

    assert not ensure_namespace(fake_client, "test")
    assert fake_client.created == [("Namespace", "test")]


def test_delete_if_exists(fake_client):
    fake_client.add(Namespace, {"metadata": {"name": "test"}})

    assert delete_if_exists(fake_client, Namespace, "test") == DeleteResult.DELETED
    assert delete_if_exists(fake_client, Namespace, "test") == DeleteResult.ABSENT


@pytest.mark.parametrize("status", [403, 409, 500])
def test_delete_if_exists_failure(fake_client, status):
    fake_client.add(Namespace, {"metadata": {"name": "test"}})
    fake_client.errors[("delete", "Namespace", "test")] = status

    assert delete_if_exists(fake_client, Namespace, "test") == DeleteResult.FAILED
    assert fake_client.has(Namespace, "test")


def test_delete_all_across_namespaces(fake_client):
    for namespace in ("a", "b"):
        fake_client.add(InferenceService, {"metadata": {"name": "isvc", "namespace": namespace}})

    results = delete_all(fake_client, InferenceService, namespace=ALL_NAMESPACES)

    assert results == [DeleteResult.DELETED, DeleteResult.DELETED]
    assert list(fake_client.list(InferenceService, namespace=ALL_NAMESPACES)) == []


def test_delete_all_in_one_namespace(fake_client):
    for namespace in ("a", "b"):
        fake_client.add(InferenceService, {"metadata": {"name": "isvc", "namespace": namespace}})

    assert delete_all(fake_client, InferenceService, namespace="a") == [DeleteResult.DELETED]
    assert fake_client.has(InferenceService, "isvc", "b")


def test_delete_all_with_nothing_to_delete(fake_client):
    assert delete_all(fake_client, InferenceService, namespace=ALL_NAMESPACES) == []


@pytest.mark.parametrize(
    "status,expected",
    [(404, []), (403, [DeleteResult.FAILED])],
)
def test_delete_all_list_errors(mocked_client, api_error, status, expected):
    mocked_client.list.side_effect = api_error(status)

    assert delete_all(mocked_client, InferenceService, namespace=ALL_NAMESPACES) == expected


def test_restart_deployment(mocked_client):
    restart_deployment(mocked_client, "kserve-controller-manager", "ns")

    res, name, patch = mocked_client.patch.call_args.args
    assert res == Deployment
    assert name == "kserve-controller-manager"
    assert mocked_client.patch.call_args.kwargs == {
        "namespace": "ns",
        "patch_type": PatchType.MERGE,
    }
    annotations = patch["spec"]["template"]["metadata"]["annotations"]
    assert RESTARTED_AT_ANNOTATION in annotations

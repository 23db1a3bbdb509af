"""Fixtures for all unit tests."""

import copy
from typing import Dict, Iterator, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest
from lightkube import Client
from lightkube.core.exceptions import ApiError
from lightkube.core.resource import NamespacedResource
from lightkube.types import PatchType

from rhoai_management.config import Timeouts
from rhoai_management.helpers.k8s import ALL_NAMESPACES, ResourceType

# Every wait checks once and gives up immediately
NO_WAIT = Timeouts(
    catalog_source=0,
    install_plan=0,
    operator_deployment=0,
    dsci_ready=0,
    dsc_ready=0,
    component_ready=0,
    upgrade_pending=0,
    upgrade_installed=0,
    subscription_ready=0,
    rollout=0,
    resource_delete=0,
    settle=0,
    poll_interval=0,
)


class _FakeResponse:
    """Used to fake an httpx response during testing only."""

    def __init__(self, code: int):
        self.code = code

    def json(self):
        return {"apiVersion": "v1", "code": self.code, "message": "broken", "reason": ""}


def make_api_error(code: int) -> ApiError:
    """Return the ApiError lightkube raises for an HTTP status code."""
    return ApiError(response=_FakeResponse(code))


def merge_patch(target, patch):
    """Apply a JSON merge-patch (RFC 7386) to a document, like the API server does."""
    if not isinstance(patch, dict):
        return copy.deepcopy(patch)

    result = copy.deepcopy(target) if isinstance(target, dict) else {}
    for key, value in patch.items():
        if value is None:
            result.pop(key, None)
        else:
            result[key] = merge_patch(result.get(key), value)
    return result


def _is_namespaced(res: ResourceType) -> bool:
    return issubclass(res, NamespacedResource)


def _matches(obj: Dict, labels: Optional[Dict]) -> bool:
    if not labels:
        return True

    obj_labels = (obj.get("metadata") or {}).get("labels") or {}
    for key, value in labels.items():
        if key not in obj_labels:
            return False
        # Anything but a plain value is an exists() selector
        if isinstance(value, str) and obj_labels[key] != value:
            return False
    return True


class FakeClient:
    """In-memory stand-in for lightkube.Client.

    Objects are stored in the camelCase shape the API server returns them, and handed
    out as lightkube resources. Calls that modify objects are recorded in `patches`,
    `created` and `deleted`, and `errors` maps (verb, kind, name) to the HTTP status of
    an ApiError to raise.
    """

    def __init__(self):
        self.objects: Dict[Tuple[str, Optional[str], str], Dict] = {}
        self.patches: List[Tuple[str, str, Dict]] = []
        self.created: List[Tuple[str, str]] = []
        self.deleted: List[Tuple[str, str]] = []
        self.errors: Dict[Tuple[str, str, str], int] = {}

    def _key(self, res: ResourceType, name: str, namespace: Optional[str]):
        return (res.__name__, namespace if _is_namespaced(res) else None, name)

    def add(self, res: ResourceType, obj: Dict) -> Dict:
        """Store an object as if it already existed in the cluster."""
        metadata = obj.setdefault("metadata", {})
        self.objects[self._key(res, metadata["name"], metadata.get("namespace"))] = (
            copy.deepcopy(obj)
        )
        return obj

    def stored(self, res: ResourceType, name: str, namespace: Optional[str] = None) -> Dict:
        """Return the stored object, for assertions."""
        return self.objects[self._key(res, name, namespace)]

    def has(self, res: ResourceType, name: str, namespace: Optional[str] = None) -> bool:
        return self._key(res, name, namespace) in self.objects

    def _check(self, verb: str, res: ResourceType, name: str):
        code = self.errors.get((verb, res.__name__, name))
        if code is not None:
            raise make_api_error(code)

    def _existing(self, res: ResourceType, name: str, namespace: Optional[str]):
        key = self._key(res, name, namespace)
        if key not in self.objects:
            raise make_api_error(404)
        return key

    def get(self, res: ResourceType, name: str, *, namespace: Optional[str] = None):
        self._check("get", res, name)
        return res.from_dict(copy.deepcopy(self.objects[self._existing(res, name, namespace)]))

    def list(
        self,
        res: ResourceType,
        *,
        namespace: Optional[str] = None,
        labels: Optional[Dict] = None,
    ) -> Iterator:
        self._check("list", res, ALL_NAMESPACES)
        objs = [
            res.from_dict(copy.deepcopy(obj))
            for (kind, obj_namespace, _), obj in self.objects.items()
            if kind == res.__name__
            and namespace in (None, ALL_NAMESPACES, obj_namespace)
            and _matches(obj, labels)
        ]
        return iter(objs)

    def create(self, obj, *, namespace: Optional[str] = None):
        res = type(obj)
        body = obj.to_dict()
        metadata = body.setdefault("metadata", {})
        if namespace is not None:
            metadata.setdefault("namespace", namespace)
        name = metadata["name"]
        self._check("create", res, name)
        if self.has(res, name, metadata.get("namespace")):
            raise make_api_error(409)

        self.created.append((res.__name__, name))
        self.add(res, body)
        return res.from_dict(copy.deepcopy(body))

    def patch(
        self,
        res: ResourceType,
        name: str,
        obj: Dict,
        *,
        namespace: Optional[str] = None,
        patch_type: PatchType = PatchType.STRATEGIC,
    ):
        if patch_type != PatchType.MERGE:
            raise NotImplementedError("FakeClient only implements merge patches")

        self._check("patch", res, name)
        key = self._existing(res, name, namespace)
        self.objects[key] = merge_patch(self.objects[key], obj)
        self.patches.append((res.__name__, name, copy.deepcopy(obj)))
        return res.from_dict(copy.deepcopy(self.objects[key]))

    def delete(self, res: ResourceType, name: str, *, namespace: Optional[str] = None):
        self._check("delete", res, name)
        del self.objects[self._existing(res, name, namespace)]
        self.deleted.append((res.__name__, name))

    def apply(self, obj, *, field_manager: Optional[str] = None, force: bool = False):
        try:
            return self.create(obj)
        except ApiError as e:
            if e.status.code != 409:
                raise

        body = obj.to_dict()
        return self.patch(
            type(obj),
            body["metadata"]["name"],
            body,
            namespace=body["metadata"].get("namespace"),
            patch_type=PatchType.MERGE,
        )

    def patches_of(self, kind: str) -> List[Dict]:
        """Return the patches applied to objects of a kind."""
        return [patch for patch_kind, _, patch in self.patches if patch_kind == kind]


@pytest.fixture
def fake_client() -> FakeClient:
    """An empty in-memory cluster."""
    return FakeClient()


@pytest.fixture
def mocked_client() -> MagicMock:
    """A MagicMock with the interface of lightkube.Client."""
    return MagicMock(spec=Client)


@pytest.fixture
def api_error():
    """Factory of the ApiError lightkube raises for an HTTP status code."""
    return make_api_error


@pytest.fixture
def no_wait() -> Timeouts:
    return NO_WAIT

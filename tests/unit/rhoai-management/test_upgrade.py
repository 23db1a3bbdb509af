from unittest.mock import patch

import pytest
from lightkube.types import PatchType

from rhoai_management.config import RunConfig
from rhoai_management.errors import PatchRejectedError, ResourceFetchError
from rhoai_management.helpers.resources import InstallPlan, Subscription
from rhoai_management.upgrade import approve_upgrade

RHODS = "redhat-ods-operator"


@pytest.fixture()
def pending_upgrade(fake_client):
    """A cluster where the RHOAI 3.3 InstallPlan waits for approval."""
    fake_client.add(
        Subscription,
        {
            "metadata": {"name": "rhods-operator", "namespace": RHODS},
            "status": {"state": "UpgradePending", "installplan": {"name": "install-xyz"}},
        },
    )
    fake_client.add(
        InstallPlan,
        {
            "metadata": {"name": "install-xyz", "namespace": RHODS},
            "spec": {"approved": False, "clusterServiceVersionNames": ["rhods-operator.3.3.0"]},
        },
    )
    return fake_client


def test_approve_upgrade(pending_upgrade, no_wait):
    assert approve_upgrade(pending_upgrade, RunConfig(assume_yes=True, timeouts=no_wait))

    approval = {"spec": {"approved": True}}
    assert pending_upgrade.patches == [("InstallPlan", "install-xyz", approval)]


def test_already_approved(pending_upgrade, no_wait):
    pending_upgrade.patch(
        InstallPlan,
        "install-xyz",
        {"spec": {"approved": True}},
        namespace=RHODS,
        patch_type=PatchType.MERGE,
    )
    pending_upgrade.patches.clear()

    assert approve_upgrade(pending_upgrade, RunConfig(assume_yes=True, timeouts=no_wait))
    assert pending_upgrade.patches == []


def test_approval_declined(pending_upgrade, no_wait):
    with patch("rhoai_management.upgrade.confirm", return_value=False):
        assert not approve_upgrade(pending_upgrade, RunConfig(timeouts=no_wait))

    assert pending_upgrade.patches == []


def test_no_installplan(pending_upgrade, no_wait):
    pending_upgrade.patch(
        Subscription,
        "rhods-operator",
        {"status": None},
        namespace=RHODS,
        patch_type=PatchType.MERGE,
    )

    with pytest.raises(ResourceFetchError):
        approve_upgrade(pending_upgrade, RunConfig(assume_yes=True, timeouts=no_wait))


def test_no_subscription(fake_client, no_wait):
    with pytest.raises(ResourceFetchError):
        approve_upgrade(fake_client, RunConfig(assume_yes=True, timeouts=no_wait))


def test_approval_rejected(pending_upgrade, no_wait):
    pending_upgrade.errors[("patch", "InstallPlan", "install-xyz")] = 403

    with pytest.raises(PatchRejectedError):
        approve_upgrade(pending_upgrade, RunConfig(assume_yes=True, timeouts=no_wait))

from unittest.mock import MagicMock

import pytest
from lightkube.core.exceptions import ApiError

from rhoai_management.errors import WaitTimeoutError
from rhoai_management.helpers.resources import DataScienceCluster, Deployment, Subscription
from rhoai_management.helpers.wait import (
    WaitState,
    check_all_deleted,
    check_condition,
    check_deleted,
    check_field,
    check_rollout,
    require_ready,
    wait_for,
    warn_unless_ready,
)


@pytest.mark.parametrize("final_state", [WaitState.READY, WaitState.FAILED])
def test_wait_for_returns_as_soon_as_check_settles(final_state):
    check = MagicMock(side_effect=[WaitState.PENDING, WaitState.PENDING, final_state])

    assert wait_for(check, "test", timeout=10, interval=0) == final_state
    assert check.call_count == 3


def test_wait_for_times_out():
    check = MagicMock(return_value=WaitState.PENDING)

    assert wait_for(check, "test", timeout=0.05, interval=0.01) == WaitState.TIMED_OUT
    assert check.call_count >= 1


def test_wait_for_propagates_unexpected_errors(api_error):
    check = MagicMock(side_effect=api_error(500))

    with pytest.raises(ApiError):
        wait_for(check, "test", timeout=1, interval=0)


def test_require_ready():
    require_ready(WaitState.READY, "test")

    for state in (WaitState.FAILED, WaitState.TIMED_OUT, WaitState.PENDING):
        with pytest.raises(WaitTimeoutError):
            require_ready(state, "test")


def test_warn_unless_ready():
    assert warn_unless_ready(WaitState.READY, "test")
    assert not warn_unless_ready(WaitState.TIMED_OUT, "test")


@pytest.mark.parametrize(
    "status,expected",
    [
        (None, WaitState.PENDING),
        ({}, WaitState.PENDING),
        ({"phase": "Progressing"}, WaitState.PENDING),
        ({"phase": "Error"}, WaitState.FAILED),
        ({"phase": "Ready"}, WaitState.READY),
    ],
)
def test_check_field(fake_client, status, expected):
    dsc = {"metadata": {"name": "default-dsc"}}
    if status is not None:
        dsc["status"] = status
    fake_client.add(DataScienceCluster, dsc)

    check = check_field(
        fake_client,
        DataScienceCluster,
        "default-dsc",
        ("status", "phase"),
        "Ready",
        failed_values=("Error",),
    )

    assert check() == expected


def test_check_field_missing_object_is_pending(fake_client):
    check = check_field(fake_client, DataScienceCluster, "default-dsc", ("status",), "x")

    assert check() == WaitState.PENDING


@pytest.mark.parametrize(
    "conditions,expected",
    [
        ([], WaitState.PENDING),
        ([{"type": "InstallPlanPending", "status": "False"}], WaitState.PENDING),
        ([{"type": "Other", "status": "True"}], WaitState.PENDING),
        ([{"type": "InstallPlanPending", "status": "True"}], WaitState.READY),
    ],
)
def test_check_condition(fake_client, conditions, expected):
    fake_client.add(
        Subscription,
        {
            "metadata": {"name": "rhods-operator", "namespace": "ns"},
            "status": {"conditions": conditions},
        },
    )

    check = check_condition(
        fake_client, Subscription, "rhods-operator", "InstallPlanPending", namespace="ns"
    )

    assert check() == expected


def test_check_deleted(fake_client):
    check = check_deleted(fake_client, DataScienceCluster, "default-dsc")
    fake_client.add(DataScienceCluster, {"metadata": {"name": "default-dsc"}})

    assert check() == WaitState.PENDING
    fake_client.delete(DataScienceCluster, "default-dsc")
    assert check() == WaitState.READY


def test_check_all_deleted_when_kind_not_served(mocked_client, api_error):
    mocked_client.list.side_effect = api_error(404)

    assert check_all_deleted(mocked_client, DataScienceCluster)() == WaitState.READY


def deployment(generation, observed, replicas=1, updated=1, available=1, conditions=()):
    return {
        "metadata": {
            "name": "kserve-controller-manager",
            "namespace": "ns",
            "generation": generation,
        },
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": {"app": "kserve"}},
            "template": {"metadata": {"labels": {"app": "kserve"}}},
        },
        "status": {
            "observedGeneration": observed,
            "replicas": replicas,
            "updatedReplicas": updated,
            "availableReplicas": available,
            "conditions": list(conditions),
        },
    }


@pytest.mark.parametrize(
    "obj,expected",
    [
        (deployment(2, 2), WaitState.READY),
        # controller hasn't seen the restart yet
        (deployment(3, 2), WaitState.PENDING),
        # old replica still running
        (deployment(2, 2, replicas=2), WaitState.PENDING),
        (deployment(2, 2, available=0), WaitState.PENDING),
        (
            deployment(
                2,
                2,
                available=0,
                conditions=[
                    {
                        "type": "Progressing",
                        "status": "False",
                        "reason": "ProgressDeadlineExceeded",
                    }
                ],
            ),
            WaitState.FAILED,
        ),
    ],
)
def test_check_rollout(fake_client, obj, expected):
    fake_client.add(Deployment, obj)

    assert check_rollout(fake_client, "kserve-controller-manager", "ns")() == expected

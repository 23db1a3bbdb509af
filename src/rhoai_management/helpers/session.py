"""Precondition check for an authenticated session against the cluster."""

import logging
from typing import Optional

import httpx
from lightkube import Client
from lightkube.config.kubeconfig import KubeConfig, SingleConfig
from lightkube.core.exceptions import ApiError, ConfigError
from pydantic import BaseModel, ConfigDict

from rhoai_management.errors import SessionError
from rhoai_management.helpers.k8s import get_name
from rhoai_management.helpers.resources import User

log = logging.getLogger(__name__)

FIELD_MANAGER = "rhoai-management"


class ClusterSession(BaseModel):
    """An authenticated session, created once and passed to every operation.

    Args:
        username: The identity the API server authenticated us as.
        server: The URL of the API server.
        client: The lightkube client bound to this session.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    username: str
    server: str
    client: Client


def load_config(context: Optional[str] = None) -> SingleConfig:
    """Return the in-cluster service account configuration, or a kubeconfig context.

    Args:
        context: The kubeconfig context to use, instead of the current one.

    Raises:
        SessionError: If no configuration could be loaded.
    """
    try:
        return KubeConfig.from_env().get(context_name=context)
    except ConfigError as e:
        raise SessionError(
            "No cluster configuration found. Please run 'oc login' first. (%s)" % e
        ) from e


def whoami(client: Client) -> str:
    """Return the username of the authenticated identity, from OpenShift's `users/~`.

    Raises:
        ApiError: From lightkube, for any error of the identity request.
    """
    return get_name(client.get(User, "~"))


def check_session(context: Optional[str] = None) -> ClusterSession:
    """Verify that the cluster is reachable and that we are authenticated against it.

    Args:
        context: The kubeconfig context to use, instead of the current one.

    Returns:
        The session to pass to the lifecycle operations.

    Raises:
        SessionError: If there is no configuration, the API server is unreachable, or
                      the credentials are rejected.
    """
    config = load_config(context)
    server = config.cluster.server
    client = Client(config=config, field_manager=FIELD_MANAGER)
    try:
        username = whoami(client)
    except ApiError as e:
        if e.status.code in (401, 403):
            raise SessionError(
                "Not logged in to OpenShift cluster. Please run 'oc login' first."
            ) from e
        raise SessionError(
            "Failed to verify the cluster session: %s %s" % (e.status.code, e.status.message)
        ) from e
    except httpx.HTTPError as e:
        raise SessionError("Cluster API server %s is unreachable: %s" % (server, e)) from e

    session = ClusterSession(username=username, server=server, client=client)
    log.info("Logged in as: %s", session.username)
    log.info("Current cluster: %s", session.server)
    return session

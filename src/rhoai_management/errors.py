"""Exceptions that stop a lifecycle command.

Every exception in this module is fatal: the CLI reports the message and exits
with a non-zero code. Advisory conditions are logged as warnings instead.
"""


class LifecycleError(Exception):
    """Base exception for all fatal errors of the lifecycle commands."""

    pass


class SessionError(LifecycleError):
    """Exception for when there is no usable, authenticated cluster session."""

    pass


class NamespaceNotFoundError(LifecycleError):
    """Exception for when a namespace the command operates on doesn't exist."""

    pass


class ResourceFetchError(LifecycleError):
    """Exception for when a required resource can't be read from the cluster."""

    pass


class MalformedPayloadError(LifecycleError):
    """Exception for when a resource holds an embedded document that can't be parsed."""

    pass


class PatchRejectedError(LifecycleError):
    """Exception for when the API server rejects a create or patch request."""

    pass


class WaitTimeoutError(LifecycleError):
    """Exception for when a required resource didn't reach its expected state in time."""

    pass


class VersionDetectionError(LifecycleError):
    """Exception for when the OpenShift version of the cluster can't be detected."""

    pass


class InvalidArgumentError(LifecycleError):
    """Exception for when a command is given an argument it can't operate with."""

    pass

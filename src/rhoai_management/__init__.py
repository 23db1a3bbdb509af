"""A package for driving an OpenShift cluster through the RHOAI lifecycle.

This package exposes high level functions for installing Red Hat OpenShift AI,
preparing it for an upgrade, approving the upgrade, cleaning it up and capturing
the state of the cluster before and after, as well as the reconciler that keeps
the KServe inferenceservice-config ignoring hardware profile annotations.
"""

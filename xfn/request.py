"""Utilities for working with RunFunctionRequests."""

from typing import Any

from crossplane.function.proto.v1 import run_function_pb2 as fnv1

from xfn import resource


class CredentialsNotFoundError(LookupError):
    """The request does not carry the named credentials."""

    def __init__(self, name: str):
        """Create a new CredentialsNotFoundError."""
        super().__init__(f"credentials {name!r} not found")
        self.name = name


def get_desired_composite_resource(req: fnv1.RunFunctionRequest) -> fnv1.Resource | None:
    """Get the desired composite resource, if any."""
    if req.HasField("desired") and req.desired.HasField("composite"):
        return req.desired.composite
    return None


def get_observed_composite_resource(req: fnv1.RunFunctionRequest) -> fnv1.Resource | None:
    """Get the observed composite resource, if any."""
    if req.HasField("observed") and req.observed.HasField("composite"):
        return req.observed.composite
    return None


def get_desired_composed_resources(req: fnv1.RunFunctionRequest) -> dict[str, fnv1.Resource]:
    """Get the desired composed resources, keyed by name.

    An empty dict is returned when previous functions desired nothing.
    """
    return dict(req.desired.resources)


def get_observed_composed_resources(req: fnv1.RunFunctionRequest) -> dict[str, fnv1.Resource]:
    """Get the observed composed resources, keyed by name."""
    return dict(req.observed.resources)


def get_input(req: fnv1.RunFunctionRequest) -> dict | None:
    """Get the function input, or None if the function was called without one."""
    if not req.HasField("input"):
        return None
    return resource.struct_to_dict(req.input)


def get_context_key(req: fnv1.RunFunctionRequest, key: str) -> tuple[Any, bool]:
    """Look up a key of the pipeline context.

    Returns a (value, found) tuple. A key explicitly set to null is returned
    as (None, True), while a missing key is returned as (None, False).
    """
    if not req.HasField("context") or key not in req.context.fields:
        return None, False
    return resource.to_python(req.context.fields[key]), True


def get_required_resources(req: fnv1.RunFunctionRequest) -> dict[str, fnv1.Resources]:
    """Get the resources Crossplane fetched for this function, keyed by requirement name."""
    return dict(req.required_resources)


def get_required_resource(req: fnv1.RunFunctionRequest, name: str) -> list[fnv1.Resource]:
    """Get the resources fetched for a single requirement."""
    if name not in req.required_resources:
        return []
    return list(req.required_resources[name].items)


def get_credentials(req: fnv1.RunFunctionRequest, name: str) -> fnv1.Credentials:
    """Get the named credentials supplied to the function.

    Raises CredentialsNotFoundError if the request does not carry them.
    """
    if name not in req.credentials:
        raise CredentialsNotFoundError(name)
    return req.credentials[name]


def get_credential_data(req: fnv1.RunFunctionRequest, name: str) -> dict[str, bytes]:
    """Get the data of the named credentials."""
    return dict(get_credentials(req, name).credential_data.data)

"""Utilities for working with RunFunctionResponses."""

import datetime
from typing import Any

from crossplane.function.proto.v1 import run_function_pb2 as fnv1
from deepmerge import always_merger
from google.protobuf import duration_pb2 as durationpb

from xfn import resource

"""The default TTL for which a RunFunctionResponse may be cached."""
DEFAULT_TTL = datetime.timedelta(seconds=60)

update = resource.merge


def to(
    req: fnv1.RunFunctionRequest,
    ttl: datetime.timedelta = DEFAULT_TTL,
) -> fnv1.RunFunctionResponse:
    """Create a response to the supplied request.

    The request's tag, desired state and context are copied to the response.
    Using to() is a good pattern to ensure a response is properly initialized:
    it always carries a desired state, even if the request had none.
    """
    dttl = durationpb.Duration()
    dttl.FromTimedelta(ttl)
    rsp = fnv1.RunFunctionResponse(
        meta=fnv1.ResponseMeta(tag=req.meta.tag, ttl=dttl),
        desired=req.desired,
    )
    # Mark desired as present even when the request carried none.
    rsp.desired.SetInParent()
    if req.HasField("context"):
        rsp.context.CopyFrom(req.context)
    return rsp


def _add_result(
    rsp: fnv1.RunFunctionResponse | None,
    severity: fnv1.Severity,
    message: str,
    reason: str | None,
) -> None:
    if rsp is None:
        return
    result = fnv1.Result(severity=severity, message=message)
    if reason:
        result.reason = reason
    rsp.results.append(result)


def normal(rsp: fnv1.RunFunctionResponse, message: str, reason: str | None = None) -> None:
    """Add a normal result to the response."""
    _add_result(rsp, fnv1.Severity.SEVERITY_NORMAL, message, reason)


def warning(rsp: fnv1.RunFunctionResponse, message: str, reason: str | None = None) -> None:
    """Add a warning result to the response.

    Warnings are surfaced to the user but do not stop the pipeline.
    """
    _add_result(rsp, fnv1.Severity.SEVERITY_WARNING, message, reason)


def fatal(rsp: fnv1.RunFunctionResponse, message: str, reason: str | None = None) -> None:
    """Add a fatal result to the response.

    A fatal result tells Crossplane the function pipeline failed.
    """
    _add_result(rsp, fnv1.Severity.SEVERITY_FATAL, message, reason)


def update_desired_composed_resources(
    resources: dict[str, fnv1.Resource],
    name: str,
    res: fnv1.Resource | dict,
) -> dict[str, fnv1.Resource]:
    """Add a named resource to a dict of desired composed resources."""
    resources[name] = resource.as_resource(res)
    return resources


def set_desired_composed_resources(
    rsp: fnv1.RunFunctionResponse,
    resources: dict[str, fnv1.Resource | dict],
) -> fnv1.RunFunctionResponse:
    """Merge the supplied resources into the response's desired composed resources.

    Resources set by previous functions are kept unless a resource of the
    same name is supplied, in which case the two are merged with the supplied
    one taking precedence.
    """
    desired = rsp.desired.resources
    for name, res in resources.items():
        new = resource.as_resource(res)
        if name in desired:
            new = update(new, desired[name])
        desired[name].CopyFrom(new)
    return rsp


def set_desired_resources(
    rsp: fnv1.RunFunctionResponse,
    manifests: dict[str, dict],
) -> fnv1.RunFunctionResponse:
    """Merge the supplied Kubernetes manifests into the desired composed resources."""
    return set_desired_composed_resources(
        rsp, {name: resource.from_object(m) for name, m in manifests.items()}
    )


def set_desired_composite_status(
    rsp: fnv1.RunFunctionResponse,
    status: dict,
) -> fnv1.RunFunctionResponse:
    """Merge the supplied status into the desired composite resource's status.

    The desired composite is created if it does not exist yet.
    """
    xr = rsp.desired.composite.resource
    merged = always_merger.merge(resource.struct_to_dict(xr), {"status": status})
    xr.Clear()
    xr.update(merged)
    return rsp


def set_desired_composite_resource(
    rsp: fnv1.RunFunctionResponse,
    res: fnv1.Resource | dict,
    ready: fnv1.Ready = fnv1.Ready.READY_UNSPECIFIED,
) -> fnv1.RunFunctionResponse:
    """Replace the desired composite resource."""
    res = resource.as_resource(res)
    rsp.desired.composite.CopyFrom(
        fnv1.Resource(
            resource=res.resource,
            connection_details=dict(res.connection_details),
            ready=ready,
        )
    )
    return rsp


def set_context_key(rsp: fnv1.RunFunctionResponse, key: str, value: Any) -> None:
    """Set a key of the context passed to the next function in the pipeline."""
    rsp.context[key] = value


def set_output(rsp: fnv1.RunFunctionResponse, output: dict) -> None:
    """Set keys of the output returned by an operation function.

    The output is created even when no keys are supplied.
    """
    rsp.output.SetInParent()
    for key, value in output.items():
        rsp.output[key] = value

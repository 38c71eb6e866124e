"""Helpers for working with Crossplane resources.

Resources travel as protobuf messages. The manifest itself is a
``google.protobuf.Struct``; these helpers convert it to and from plain
dictionaries and merge resources structurally.
"""

from typing import Any

from crossplane.function.proto.v1 import run_function_pb2 as fnv1
from crossplane.function.resource import dict_to_struct, struct_to_dict
from deepmerge import always_merger
from google.protobuf import json_format
from google.protobuf import struct_pb2 as structpb

__all__ = [
    "as_resource",
    "dict_to_struct",
    "from_object",
    "merge",
    "new_desired_composed",
    "struct_to_dict",
    "to_object",
    "to_python",
]


def to_python(value: structpb.Value) -> Any:
    """Convert a Value to the equivalent Python value.

    A null Value becomes None, a struct becomes a dict and a list becomes a list.
    """
    return json_format.MessageToDict(value, preserving_proto_field_name=True)


def from_object(
    obj: dict,
    connection_details: dict[str, bytes] | None = None,
    ready: fnv1.Ready = fnv1.Ready.READY_UNSPECIFIED,
) -> fnv1.Resource:
    """Create a Resource from a Kubernetes manifest."""
    return fnv1.Resource(
        resource=dict_to_struct(obj),
        connection_details=connection_details or {},
        ready=ready,
    )


def to_object(res: fnv1.Resource) -> dict:
    """Get the Kubernetes manifest of a Resource.

    A Struct stores every number as a double, so integers come back as floats
    (3 becomes 3.0) and integers beyond 2**53 lose precision. The round trip
    through from_object is exact only for values a double can represent.
    """
    if not res.HasField("resource"):
        return {}
    return struct_to_dict(res.resource)


def new_desired_composed() -> fnv1.Resource:
    """Create an empty desired composed resource."""
    return fnv1.Resource(resource=structpb.Struct(), ready=fnv1.Ready.READY_UNSPECIFIED)


def as_resource(res: fnv1.Resource | dict) -> fnv1.Resource:
    """Accept either a Resource or a bare manifest."""
    if isinstance(res, fnv1.Resource):
        return res
    return from_object(res)


def _resource_to_dict(res: fnv1.Resource) -> dict:
    # Unspecified readiness is the proto default, so MessageToDict omits it and
    # it never overwrites an explicit readiness on the other side of a merge.
    return json_format.MessageToDict(res, preserving_proto_field_name=True)


def merge(src: fnv1.Resource | dict, tgt: fnv1.Resource | dict) -> fnv1.Resource:
    """Merge src into tgt and return the result as a new Resource.

    Values in src take precedence. Nested objects are merged key by key, lists
    are concatenated (tgt items first) and scalars are overwritten. Neither
    argument is modified.
    """
    merged = always_merger.merge(
        _resource_to_dict(as_resource(tgt)),
        _resource_to_dict(as_resource(src)),
    )
    return json_format.ParseDict(merged, fnv1.Resource())

"""An example composition function.

It composes a Deployment and a Pod for every composite resource, keeping
whatever previous functions in the pipeline already desired.
"""

import structlog
from crossplane.function.proto.v1 import run_function_pb2 as fnv1

from xfn import request, resource, response

APP_LABELS = {"app": "my-app"}


def _deployment() -> dict:
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": "my-deployment", "namespace": "foo"},
        "spec": {
            "replicas": 3,
            "selector": {"matchLabels": APP_LABELS},
            "template": {
                "metadata": {"labels": APP_LABELS},
                "spec": {
                    "containers": [
                        {
                            "name": "my-container",
                            "image": "my-image:latest",
                            "ports": [{"containerPort": 80}],
                        }
                    ],
                },
            },
        },
    }


def _pod() -> dict:
    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": "pod", "namespace": "default"},
        "spec": {"containers": []},
    }


class ExampleFunction:
    """ExampleFunction composes a Deployment and a Pod."""

    async def run_function(
        self, req: fnv1.RunFunctionRequest, log: structlog.stdlib.BoundLogger
    ) -> fnv1.RunFunctionResponse:
        """Run the function."""
        rsp = response.to(req)

        oxr = request.get_observed_composite_resource(req)
        if oxr is not None:
            log.debug("Observed composite resource", xr=resource.to_object(oxr))
        dxr = request.get_desired_composite_resource(req)
        if dxr is not None:
            log.debug("Desired composite resource", xr=resource.to_object(dxr))

        # Only pass our own resources. Those desired by previous functions are
        # already in rsp, and merging them with themselves would repeat lists.
        dcds = {}
        response.update_desired_composed_resources(dcds, "deployment", _deployment())
        response.update_desired_composed_resources(dcds, "pod", _pod())
        response.set_desired_composed_resources(rsp, dcds)

        log.info(
            "Composed resources",
            previous=len(request.get_desired_composed_resources(req)),
            added=len(dcds),
        )
        response.normal(rsp, "processing complete")
        return rsp

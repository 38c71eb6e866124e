"""The contract between a composition function and the gRPC service running it.

A function author implements FunctionHandler. FunctionRunner wraps the
handler and serves it as a FunctionRunnerService, turning any error the
handler raises into a fatal result instead of a failed RPC.
"""

import inspect
import time
from typing import Protocol

import grpc
import structlog
from crossplane.function import logging
from crossplane.function.proto.v1 import run_function_pb2 as fnv1
from crossplane.function.proto.v1 import run_function_pb2_grpc as grpcv1

from xfn import response


class FunctionHandler(Protocol):
    """FunctionHandler is the interface a composition function implements."""

    async def run_function(
        self,
        req: fnv1.RunFunctionRequest,
        log: structlog.stdlib.BoundLogger,
    ) -> fnv1.RunFunctionResponse:
        """Run the function.

        Called once per invocation with the observed state, the desired state
        accumulated by previous functions, the function input and the pipeline
        context. Returns the desired state after applying this function.
        """
        ...


class FunctionRunner(grpcv1.FunctionRunnerService):
    """A FunctionRunner handles gRPC RunFunctionRequests."""

    def __init__(
        self,
        handler: FunctionHandler,
        log: structlog.stdlib.BoundLogger | None = None,
    ):
        """Create a new FunctionRunner."""
        self.handler = handler
        self.log = log or logging.get_logger()

    async def RunFunction(  # noqa: N802
        self,
        req: fnv1.RunFunctionRequest,
        _context: grpc.aio.ServicerContext | None = None,
    ) -> fnv1.RunFunctionResponse:
        """Run the function, reporting any error as a fatal result."""
        log = self.log.bind(tag=req.meta.tag)
        start = time.monotonic()
        try:
            rsp = self.handler.run_function(req, log)
            if inspect.isawaitable(rsp):
                rsp = await rsp
        except Exception as exc:
            log.error(
                "Function invocation failed",
                error=str(exc),
                duration=f"{(time.monotonic() - start) * 1000:.0f}ms",
            )
            rsp = response.to(req)
            response.fatal(rsp, str(exc))
            return rsp
        log.debug("Function invocation succeeded")
        return rsp

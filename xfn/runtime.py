"""Utilities to create a gRPC server serving a composition function."""

import asyncio
import dataclasses
import json
import pathlib
import signal
from typing import Any

import grpc
from crossplane.function import logging
from crossplane.function.proto.v1 import run_function_pb2_grpc as grpcv1

from xfn.function import FunctionRunner

"""The default address at which to listen for gRPC connections."""
DEFAULT_ADDRESS = "0.0.0.0:9443"

"""The directory in which the Crossplane package manager mounts TLS certificates."""
DEFAULT_TLS_CERTS_DIR = "/tls/server"

TLS_KEY_FILE = "tls.key"
TLS_CERT_FILE = "tls.crt"
CA_CERT_FILE = "ca.crt"

"""Seconds in-flight RPCs are given to finish when the server shuts down."""
SHUTDOWN_GRACE_PERIOD = 5


class StartupError(Exception):
    """The function cannot start serving."""


@dataclasses.dataclass
class ServerOptions:
    """Options for a function's gRPC server."""

    address: str = DEFAULT_ADDRESS
    debug: bool = False
    # Serve without TLS. When set tls_certs_dir is ignored.
    insecure: bool = False
    tls_certs_dir: str | None = None
    grpc_options: list[tuple[str, Any]] = dataclasses.field(default_factory=list)
    grace_period: float = SHUTDOWN_GRACE_PERIOD


def load_credentials(opts: ServerOptions) -> grpc.ServerCredentials | None:
    """Load TLS server credentials from opts.tls_certs_dir.

    Returns None, meaning the server should listen without TLS, if the options
    ask for an insecure server or don't name a certificate directory. Client
    certificates are verified when presented but are not required.
    """
    if opts.insecure or not opts.tls_certs_dir:
        return None

    certs_dir = pathlib.Path(opts.tls_certs_dir)
    try:
        private_key = (certs_dir / TLS_KEY_FILE).read_bytes()
        certificate_chain = (certs_dir / TLS_CERT_FILE).read_bytes()
        root_certificates = (certs_dir / CA_CERT_FILE).read_bytes()
    except OSError as exc:
        msg = f"cannot load TLS credentials from {certs_dir}: {exc}"
        raise StartupError(msg) from exc

    return grpc.ssl_server_credentials(
        private_key_certificate_chain_pairs=[(private_key, certificate_chain)],
        root_certificates=root_certificates,
        require_client_auth=False,
    )


def parse_grpc_options(raw: str | None) -> list[tuple[str, Any]]:
    """Parse additional gRPC server options from a JSON object."""
    if not raw:
        return []
    try:
        options = json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"cannot parse gRPC options {raw!r}: {exc}"
        raise StartupError(msg) from exc
    if not isinstance(options, dict):
        msg = f"gRPC options must be a JSON object, got {raw!r}"
        raise StartupError(msg)
    return list(options.items())


def new_server(
    runner: FunctionRunner,
    opts: ServerOptions,
    creds: grpc.ServerCredentials | None = None,
) -> grpc.aio.Server:
    """Create a gRPC server with the runner registered, bound to opts.address."""
    log = logging.get_logger()
    server = grpc.aio.server(options=opts.grpc_options)
    grpcv1.add_FunctionRunnerServiceServicer_to_server(runner, server)

    if creds is None:
        server.add_insecure_port(opts.address)
        log.debug("Listening without TLS", address=opts.address)
    else:
        server.add_secure_port(opts.address, creds)
        log.debug("Listening with TLS", address=opts.address)
    return server


async def serve(
    runner: FunctionRunner,
    opts: ServerOptions,
    creds: grpc.ServerCredentials | None = None,
) -> None:
    """Serve the runner until the process receives SIGINT or SIGTERM.

    The server listens without TLS unless creds are supplied.
    """
    log = logging.get_logger()
    server = new_server(runner, opts, creds=creds)
    await server.start()
    log.info("Server started", address=opts.address)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    try:
        await stop.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
    log.info("Shutting down gracefully", grace_period=opts.grace_period)
    await server.stop(opts.grace_period)
    log.info("Server shut down")

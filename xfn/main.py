"""The composition function's main CLI."""

import asyncio
import importlib
import sys

import click
from crossplane.function import logging

from xfn import runtime
from xfn.function import FunctionHandler, FunctionRunner

DEFAULT_FUNCTION = "xfn.example:ExampleFunction"


def load_handler(path: str) -> FunctionHandler:
    """Instantiate the handler class named by a 'module:attribute' path."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        msg = f"invalid function {path!r}, expected 'module:attribute'"
        raise runtime.StartupError(msg)
    try:
        module = importlib.import_module(module_name)
        handler_cls = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        msg = f"cannot load function {path!r}: {exc}"
        raise runtime.StartupError(msg) from exc
    return handler_cls()


@click.command()
@click.option(
    "--debug",
    "-d",
    is_flag=True,
    help="Emit debug logs.",
)
@click.option(
    "--address",
    default=runtime.DEFAULT_ADDRESS,
    show_default=True,
    help="Address at which to listen for gRPC connections",
)
@click.option(
    "--tls-certs-dir",
    default=runtime.DEFAULT_TLS_CERTS_DIR,
    show_default=True,
    help="Serve using mTLS certificates in this directory (tls.key, tls.crt and ca.crt).",
    envvar="TLS_SERVER_CERTS_DIR",
)
@click.option(
    "--insecure",
    is_flag=True,
    help="Run without mTLS credentials. If you supply this flag --tls-certs-dir will be ignored.",
)
@click.option(
    "--grpc-options",
    help=(
        "Additional gRPC server options, specified as a JSON object. "
        "For example: '{\"grpc.max_send_message_length\": 4194304}'"
    ),
    envvar="GRPC_OPTIONS",
)
@click.option(
    "--function",
    "function_path",
    default=DEFAULT_FUNCTION,
    show_default=True,
    help="The function to serve, as a 'module:attribute' import path of a handler class.",
)
# We only expect callers via the CLI.
def cli(  # noqa:PLR0913
    debug: bool,  # noqa:FBT001
    address: str,
    tls_certs_dir: str,
    insecure: bool,  # noqa:FBT001
    grpc_options: str | None,
    function_path: str,
) -> None:
    """Serve a Crossplane composition function."""
    try:
        level = logging.Level.INFO
        if debug:
            level = logging.Level.DEBUG
        logging.configure(level=level)
        opts = runtime.ServerOptions(
            address=address,
            debug=debug,
            insecure=insecure,
            tls_certs_dir=tls_certs_dir,
            grpc_options=runtime.parse_grpc_options(grpc_options),
        )
        asyncio.run(
            runtime.serve(
                FunctionRunner(load_handler(function_path)),
                opts,
                creds=runtime.load_credentials(opts),
            )
        )
    except Exception as e:
        click.echo(f"Cannot run function: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()

import unittest
from unittest import mock

import grpc
from crossplane.function import logging
from crossplane.function.proto.v1 import run_function_pb2 as fnv1
from google.protobuf import json_format

from xfn import request, resource, response
from xfn.function import FunctionRunner


class EchoFunction:
    async def run_function(self, req, _log):
        rsp = response.to(req)
        response.normal(rsp, "echo")
        return rsp


class SyncFailingFunction:
    def run_function(self, _req, _log):
        msg = "boom"
        raise Exception(msg)


class AsyncFailingFunction:
    async def run_function(self, _req, _log):
        msg = "async boom"
        raise RuntimeError(msg)


class CredentialsFunction:
    async def run_function(self, req, _log):
        rsp = response.to(req)
        request.get_credentials(req, "aws")
        return rsp


class TestFunctionRunner(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.maxDiff = None
        logging.configure(level=logging.Level.DISABLED)
        self.req = fnv1.RunFunctionRequest(
            meta=fnv1.RequestMeta(tag="hello"),
            desired=fnv1.State(resources={"a": resource.from_object({"kind": "Bucket"})}),
        )

    async def test_run_function(self) -> None:
        runner = FunctionRunner(EchoFunction())
        got = await runner.RunFunction(self.req, None)
        want = response.to(self.req)
        response.normal(want, "echo")
        self.assertEqual(json_format.MessageToDict(want), json_format.MessageToDict(got))

    async def test_sync_error_becomes_fatal_result(self) -> None:
        runner = FunctionRunner(SyncFailingFunction())
        got = await runner.RunFunction(self.req, None)
        self.assertEqual(
            [fnv1.Result(severity=fnv1.Severity.SEVERITY_FATAL, message="boom")],
            list(got.results),
        )
        self.assertEqual("hello", got.meta.tag)
        self.assertEqual(["a"], list(got.desired.resources))

    async def test_async_error_becomes_fatal_result(self) -> None:
        runner = FunctionRunner(AsyncFailingFunction())
        got = await runner.RunFunction(self.req, None)
        self.assertEqual(
            [fnv1.Result(severity=fnv1.Severity.SEVERITY_FATAL, message="async boom")],
            list(got.results),
        )

    async def test_missing_credentials_become_fatal_result(self) -> None:
        runner = FunctionRunner(CredentialsFunction())
        got = await runner.RunFunction(self.req, None)
        self.assertEqual(1, len(got.results))
        self.assertEqual(fnv1.Severity.SEVERITY_FATAL, got.results[0].severity)
        self.assertIn("aws", got.results[0].message)

    async def test_does_not_abort_rpc(self) -> None:
        mock_context = mock.AsyncMock(spec=grpc.aio.ServicerContext)
        runner = FunctionRunner(SyncFailingFunction())
        await runner.RunFunction(self.req, mock_context)
        mock_context.abort.assert_not_called()

    async def test_logs_failure(self) -> None:
        log = mock.MagicMock()
        runner = FunctionRunner(SyncFailingFunction(), log=log)
        await runner.RunFunction(self.req, None)
        log.bind.assert_called_once_with(tag="hello")
        log.bind.return_value.error.assert_called_once()
        _, kwargs = log.bind.return_value.error.call_args
        self.assertEqual("boom", kwargs["error"])


if __name__ == "__main__":
    unittest.main()

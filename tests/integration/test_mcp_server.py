"""
Integration tests for MCP Server.

These tests verify the MCP protocol implementation and tool calling functionality.
They test:
- MCP protocol handling (initialize, tools/list, tools/call)
- Resources and prompts
- Parameter validation
- Error handling
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from core.cache import SearchCache
from core.gemini_executor import GeminiExecutor, ProcessOutput
from core.history import SearchHistory
from core.search_manager import GeminiSearchManager, SearchState
from mcp_server import MCPServer


class StubExecutor(GeminiExecutor):
    """Executor whose child process is simulated."""

    def __init__(self) -> None:
        super().__init__()
        self.output = ProcessOutput(exit_code=0, stdout="result-X", stderr="")
        self.error: Optional[Exception] = None
        self.delay = 0.0

    async def _run(self, args: List[str]) -> ProcessOutput:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.output


class TestMCPServerIntegration:
    """Integration test suite for MCPServer."""

    @pytest.fixture
    def executor(self) -> StubExecutor:
        return StubExecutor()

    @pytest.fixture
    async def server(self, executor: StubExecutor) -> MCPServer:
        """Create and initialize MCP server."""
        manager = GeminiSearchManager(
            state=SearchState(cache=SearchCache(), history=SearchHistory()),
            executor=executor,
        )
        server = MCPServer(manager)
        await server.start()
        yield server
        await server.stop()

    @pytest.fixture
    def responses(self, server: MCPServer) -> List[Dict[str, Any]]:
        """Capture responses instead of writing them to stdout."""
        captured: List[Dict[str, Any]] = []

        def capture_response(request_id: Any, result: Any = None, error: Any = None) -> None:
            captured.append({"id": request_id, "result": result, "error": error})

        server.send_response = capture_response  # type: ignore
        return captured

    def _create_request(
        self, method: str, params: Dict[str, Any] = None, request_id: int = 1
    ) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
        }
        if params:
            message["params"] = params
        return message

    async def _call_tool(
        self,
        server: MCPServer,
        responses: List[Dict[str, Any]],
        name: str,
        arguments: Dict[str, Any],
    ) -> Dict[str, Any]:
        await server.handle_request(
            self._create_request("tools/call", {"name": name, "arguments": arguments})
        )
        return responses[-1]

    @pytest.mark.asyncio
    async def test_initialize(self, server: MCPServer, responses: List[Dict[str, Any]]) -> None:
        await server.handle_request(self._create_request("initialize", {"protocolVersion": "2024-11-05"}))

        response = responses[0]
        assert response["id"] == 1
        assert response["error"] is None
        assert response["result"]["protocolVersion"] == "2024-11-05"
        assert response["result"]["serverInfo"]["name"] == "gemini-cli-search"
        assert "tools" in response["result"]["capabilities"]
        assert "resources" in response["result"]["capabilities"]

    @pytest.mark.asyncio
    async def test_list_tools(self, server: MCPServer, responses: List[Dict[str, Any]]) -> None:
        await server.handle_request(self._create_request("tools/list"))

        tools = {tool["name"]: tool for tool in responses[0]["result"]["tools"]}
        assert set(tools) == {"gemini_search", "clear_search_cache", "get_search_history"}

        schema = tools["gemini_search"]["inputSchema"]
        assert schema["required"] == ["query"]
        assert schema["properties"]["useCache"]["default"] is True
        assert schema["properties"]["query"]["maxLength"] == 500

    @pytest.mark.asyncio
    async def test_search_success_then_cached(
        self, server: MCPServer, responses: List[Dict[str, Any]], executor: StubExecutor
    ) -> None:
        response = await self._call_tool(server, responses, "gemini_search", {"query": "TypeScript 2024"})

        assert response["error"] is None
        assert response["result"]["content"] == [{"type": "text", "text": "result-X"}]
        assert "isError" not in response["result"]

        response = await self._call_tool(server, responses, "gemini_search", {"query": "TypeScript 2024"})
        assert response["result"]["content"][0]["text"] == "result-X"
        assert executor.invocation_count == 1

    @pytest.mark.asyncio
    async def test_search_use_cache_false(
        self, server: MCPServer, responses: List[Dict[str, Any]], executor: StubExecutor
    ) -> None:
        for _ in range(2):
            await self._call_tool(server, responses, "gemini_search", {"query": "q", "useCache": False})

        assert executor.invocation_count == 2

    @pytest.mark.asyncio
    async def test_search_not_found(
        self, server: MCPServer, responses: List[Dict[str, Any]], executor: StubExecutor
    ) -> None:
        executor.error = FileNotFoundError("gemini")

        response = await self._call_tool(server, responses, "gemini_search", {"query": "q"})

        result = response["result"]
        assert result["isError"] is True
        text = result["content"][0]["text"]
        assert text.startswith("Error: GeminiNotFound: ")
        assert "PATH" in text

    @pytest.mark.asyncio
    async def test_search_execution_error(
        self, server: MCPServer, responses: List[Dict[str, Any]], executor: StubExecutor
    ) -> None:
        executor.output = ProcessOutput(exit_code=1, stdout="", stderr="quota exceeded")

        response = await self._call_tool(server, responses, "gemini_search", {"query": "q"})

        assert response["result"]["isError"] is True
        assert "GeminiExecutionError: quota exceeded" in response["result"]["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_search_invalid_query(
        self, server: MCPServer, responses: List[Dict[str, Any]], executor: StubExecutor
    ) -> None:
        response = await self._call_tool(server, responses, "gemini_search", {"query": "   "})

        assert response["result"]["isError"] is True
        assert "InvalidQuery" in response["result"]["content"][0]["text"]
        assert executor.invocation_count == 0
        assert server.manager is not None
        assert len(server.manager.history) == 0

    @pytest.mark.asyncio
    async def test_search_missing_query(self, server: MCPServer, responses: List[Dict[str, Any]]) -> None:
        response = await self._call_tool(server, responses, "gemini_search", {})

        assert response["error"]["code"] == -32602
        assert "query" in response["error"]["message"]

    @pytest.mark.asyncio
    async def test_search_bad_use_cache(self, server: MCPServer, responses: List[Dict[str, Any]]) -> None:
        response = await self._call_tool(server, responses, "gemini_search", {"query": "q", "useCache": "yes"})

        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_clear_cache(self, server: MCPServer, responses: List[Dict[str, Any]]) -> None:
        await self._call_tool(server, responses, "gemini_search", {"query": "a"})
        await self._call_tool(server, responses, "gemini_search", {"query": "b"})

        response = await self._call_tool(server, responses, "clear_search_cache", {"query": "a"})
        assert response["result"]["content"][0]["text"] == 'Cache cleared for query: "a"'

        response = await self._call_tool(server, responses, "clear_search_cache", {"query": "missing-key"})
        assert response["result"]["content"][0]["text"] == 'No cache entry for query: "missing-key"'

        response = await self._call_tool(server, responses, "clear_search_cache", {})
        assert response["result"]["content"][0]["text"] == "Entire cache cleared (1 entries)"
        assert server.manager is not None
        assert server.manager.cache.size == 0

    @pytest.mark.asyncio
    async def test_get_search_history(
        self, server: MCPServer, responses: List[Dict[str, Any]], executor: StubExecutor
    ) -> None:
        await self._call_tool(server, responses, "gemini_search", {"query": "good"})
        executor.error = FileNotFoundError("gemini")
        await self._call_tool(server, responses, "gemini_search", {"query": "bad"})

        response = await self._call_tool(server, responses, "get_search_history", {})
        payload = json.loads(response["result"]["content"][0]["text"])
        assert payload["total"] == 2
        assert [r["query"] for r in payload["history"]] == ["bad", "good"]
        assert payload["history"][0]["error"].startswith("GeminiNotFound")

        response = await self._call_tool(
            server, responses, "get_search_history", {"limit": 5, "includeErrors": False}
        )
        payload = json.loads(response["result"]["content"][0]["text"])
        assert [r["query"] for r in payload["history"]] == ["good"]

    @pytest.mark.asyncio
    async def test_get_search_history_bad_limit(self, server: MCPServer, responses: List[Dict[str, Any]]) -> None:
        response = await self._call_tool(server, responses, "get_search_history", {"limit": 0})

        assert response["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_unknown_tool(self, server: MCPServer, responses: List[Dict[str, Any]]) -> None:
        response = await self._call_tool(server, responses, "nonexistent", {})

        assert response["error"]["code"] == -32601

    @pytest.mark.asyncio
    async def test_resources(self, server: MCPServer, responses: List[Dict[str, Any]]) -> None:
        await self._call_tool(server, responses, "gemini_search", {"query": "TypeScript 2024"})

        await server.handle_request(self._create_request("resources/list"))
        uris = [r["uri"] for r in responses[-1]["result"]["resources"]]
        assert uris == ["cache://status", "history://recent"]

        await server.handle_request(self._create_request("resources/read", {"uri": "cache://status"}))
        content = responses[-1]["result"]["contents"][0]
        assert content["mimeType"] == "application/json"
        status = json.loads(content["text"])
        assert status["totalEntries"] == 1
        assert status["ttlMinutes"] == 60
        assert status["entries"][0]["query"] == "TypeScript 2024"

        await server.handle_request(self._create_request("resources/read", {"uri": "history://recent"}))
        history = json.loads(responses[-1]["result"]["contents"][0]["text"])
        assert history[0]["query"] == "TypeScript 2024"

    @pytest.mark.asyncio
    async def test_unknown_resource(self, server: MCPServer, responses: List[Dict[str, Any]]) -> None:
        await server.handle_request(self._create_request("resources/read", {"uri": "cache://nope"}))

        assert responses[-1]["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_prompts(self, server: MCPServer, responses: List[Dict[str, Any]]) -> None:
        await server.handle_request(self._create_request("prompts/list"))
        assert responses[-1]["result"]["prompts"][0]["name"] == "web_search"

        await server.handle_request(
            self._create_request("prompts/get", {"name": "web_search", "arguments": {"topic": "Rust 2024"}})
        )
        message = responses[-1]["result"]["messages"][0]
        assert message["role"] == "user"
        assert "Rust 2024" in message["content"]["text"]
        assert "gemini_search" in message["content"]["text"]

        await server.handle_request(self._create_request("prompts/get", {"name": "web_search"}))
        assert responses[-1]["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_non_object_arguments_rejected(
        self, server: MCPServer, responses: List[Dict[str, Any]], executor: StubExecutor
    ) -> None:
        await server.dispatch(
            self._create_request("tools/call", {"name": "gemini_search", "arguments": ["q"]})
        )
        assert responses[-1]["error"]["code"] == -32602
        assert "arguments must be an object" in responses[-1]["error"]["message"]
        assert executor.invocation_count == 0

        await server.dispatch(
            self._create_request("prompts/get", {"name": "web_search", "arguments": "Rust"}, request_id=2)
        )
        assert responses[-1]["id"] == 2
        assert responses[-1]["error"]["code"] == -32602

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [["x"], "cache://status", 42])
    async def test_non_object_params_rejected(
        self, server: MCPServer, responses: List[Dict[str, Any]], params: Any
    ) -> None:
        await server.dispatch({"jsonrpc": "2.0", "id": 7, "method": "resources/read", "params": params})

        assert responses[-1]["id"] == 7
        assert responses[-1]["error"]["code"] == -32602
        assert "params must be an object" in responses[-1]["error"]["message"]

    @pytest.mark.asyncio
    async def test_notifications_and_unknown_methods(
        self, server: MCPServer, responses: List[Dict[str, Any]]
    ) -> None:
        await server.handle_request({"jsonrpc": "2.0", "method": "notifications/initialized"})
        await server.handle_request({"jsonrpc": "2.0", "method": "tools/list"})
        assert responses == []

        await server.handle_request(self._create_request("does/not/exist"))
        assert responses[-1]["error"]["code"] == -32601

    @pytest.mark.asyncio
    async def test_dispatch_interleaves_requests(
        self, server: MCPServer, responses: List[Dict[str, Any]], executor: StubExecutor
    ) -> None:
        """A pending search does not block unrelated requests."""
        executor.delay = 0.1

        slow = server.dispatch(
            self._create_request("tools/call", {"name": "gemini_search", "arguments": {"query": "q"}}, 1)
        )
        fast = server.dispatch(self._create_request("tools/list", request_id=2))
        await asyncio.gather(slow, fast)

        assert [r["id"] for r in responses] == [2, 1]

    @pytest.mark.asyncio
    async def test_dispatch_reports_internal_errors(
        self, server: MCPServer, responses: List[Dict[str, Any]]
    ) -> None:
        async def broken(request_id: Any, params: Dict[str, Any]) -> None:
            raise RuntimeError("boom")

        server.handle_list_tools = broken  # type: ignore

        await server.dispatch(self._create_request("tools/list"))

        assert responses[-1]["error"]["code"] == -32603
        assert "boom" in responses[-1]["error"]["message"]


def test_send_response_writes_json_line(capsys: pytest.CaptureFixture) -> None:
    server = MCPServer(GeminiSearchManager(executor=StubExecutor()))

    server.send_response(7, {"ok": True})
    server.send_response(8, None, {"code": -32601, "message": "nope"})

    lines = capsys.readouterr().out.strip().splitlines()
    assert json.loads(lines[0]) == {"jsonrpc": "2.0", "id": 7, "result": {"ok": True}}
    assert json.loads(lines[1]) == {"jsonrpc": "2.0", "id": 8, "error": {"code": -32601, "message": "nope"}}

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Gemini CLI Search MCP Server.

This module implements a standard MCP (Model Context Protocol) server
that exposes web search through the gemini CLI, with result caching and
a search history.
"""

import asyncio
import json
import sys
from typing import Any, Dict, List, Optional, Set

from core.config_loader import get_log_level, load_search_config
from core.exceptions import SearchError
from core.initializer import create_search_manager
from core.logger import get_logger, setup_logger
from core.search_manager import GeminiSearchManager

SERVER_NAME = "gemini-cli-search"
SERVER_VERSION = "1.2.0"
PROTOCOL_VERSION = "2024-11-05"

CACHE_STATUS_URI = "cache://status"
HISTORY_URI = "history://recent"


class MCPServer:
    """
    Standard MCP server implementation.

    This server implements JSON-RPC 2.0 protocol and routes tool,
    resource and prompt requests to a GeminiSearchManager.
    """

    def __init__(self, manager: Optional[GeminiSearchManager] = None) -> None:
        """
        Initialize MCP server.

        Args:
            manager: Search manager to use (created on start() if None)
        """
        self.manager = manager
        self.logger = get_logger("gemini_search.mcp_server")
        self._pending: Set["asyncio.Task[None]"] = set()

    async def start(self) -> None:
        """Create the search manager if one was not supplied."""
        if self.manager is None:
            self.manager = create_search_manager(logger=self.logger)
        self.logger.info("Gemini CLI MCP Server started")
        self.logger.info(f"Cache TTL: {self.manager.cache.ttl / 60:g} minutes")

    async def stop(self) -> None:
        """Wait for in-flight requests and stop the server."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self.logger.info("MCP Server stopped")

    def send_response(self, request_id: Any, result: Any = None, error: Any = None) -> None:
        """
        Send JSON-RPC 2.0 response.

        Args:
            request_id: Request ID from the original request
            result: Response result (if successful)
            error: Error object (if failed)
        """
        response: Dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}

        if error:
            response["error"] = error
        else:
            response["result"] = result

        print(json.dumps(response, ensure_ascii=False))
        sys.stdout.flush()

    def _send_invalid_params(self, request_id: Any, message: str) -> None:
        self.send_response(request_id, None, {"code": -32602, "message": message})

    @staticmethod
    def _text_content(text: str, is_error: bool = False) -> Dict[str, Any]:
        result: Dict[str, Any] = {"content": [{"type": "text", "text": text}]}
        if is_error:
            result["isError"] = True
        return result

    async def handle_initialize(self, request_id: Any, params: Dict[str, Any]) -> None:
        """Handle initialize request."""
        result = {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {
                "tools": {"listChanged": False},
                "resources": {"subscribe": False, "listChanged": False},
                "prompts": {"listChanged": False},
            },
            "serverInfo": {
                "name": SERVER_NAME,
                "version": SERVER_VERSION,
            },
        }
        self.send_response(request_id, result)

    async def handle_list_tools(self, request_id: Any, params: Dict[str, Any]) -> None:
        """
        Handle tools/list request.

        Args:
            request_id: Request ID
            params: Request parameters
        """
        max_length = self.manager.max_query_length if self.manager else 500

        tools = [
            {
                "name": "gemini_search",
                "description": "Search the web using Gemini CLI with caching support",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "The search query to send to Gemini",
                            "minLength": 1,
                            "maxLength": max_length,
                        },
                        "useCache": {
                            "type": "boolean",
                            "description": "Whether to use cached results (default: true)",
                            "default": True,
                        },
                    },
                    "required": ["query"],
                },
            },
            {
                "name": "clear_search_cache",
                "description": "Clear the search cache",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "query": {
                            "type": "string",
                            "description": "Specific query to clear from cache, or empty to clear all",
                        },
                    },
                },
            },
            {
                "name": "get_search_history",
                "description": "Get recent searches, most recent first",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "limit": {
                            "type": "integer",
                            "description": "Maximum number of records to return",
                            "default": 10,
                            "minimum": 1,
                        },
                        "includeErrors": {
                            "type": "boolean",
                            "description": "Whether to include failed searches (default: true)",
                            "default": True,
                        },
                    },
                },
            },
        ]

        self.send_response(request_id, {"tools": tools})

    async def handle_call_tool(self, request_id: Any, params: Dict[str, Any]) -> None:
        """
        Handle tools/call request.

        Args:
            request_id: Request ID
            params: Tool call parameters containing 'name' and 'arguments'
        """
        if not self.manager:
            self.logger.error("Manager not initialized")
            self.send_response(
                request_id,
                None,
                {"code": -32603, "message": "Server not initialized"},
            )
            return

        tool_name = params.get("name")
        arguments = params.get("arguments") or {}

        if not isinstance(arguments, dict):
            self._send_invalid_params(request_id, "arguments must be an object")
            return

        self.logger.info(f"Tool call: {tool_name}, arguments: {json.dumps(arguments, ensure_ascii=False)}")

        if tool_name == "gemini_search":
            await self._handle_gemini_search(request_id, arguments)
        elif tool_name == "clear_search_cache":
            await self._handle_clear_search_cache(request_id, arguments)
        elif tool_name == "get_search_history":
            await self._handle_get_search_history(request_id, arguments)
        else:
            self.send_response(
                request_id,
                None,
                {"code": -32601, "message": f"Unknown tool: {tool_name}"},
            )

    async def _handle_gemini_search(self, request_id: Any, arguments: Dict[str, Any]) -> None:
        """
        Handle gemini_search tool call.

        Search failures are returned as tool results with isError set,
        carrying the rendered error and a remediation hint.
        """
        assert self.manager is not None
        query = arguments.get("query")
        use_cache = arguments.get("useCache", True)

        if not isinstance(query, str):
            self._send_invalid_params(request_id, "Missing required parameter: query")
            return
        if not isinstance(use_cache, bool):
            self._send_invalid_params(request_id, "useCache must be a boolean")
            return

        try:
            result = await self.manager.execute(query, use_cache=use_cache)
        except SearchError as e:
            self.logger.error(f"Error in tool execution: {e}")
            text = f"Error: {e.render()}\n\nHint: {e.hint}"
            self.send_response(request_id, self._text_content(text, is_error=True))
            return

        self.send_response(request_id, self._text_content(result))

    async def _handle_clear_search_cache(self, request_id: Any, arguments: Dict[str, Any]) -> None:
        """Handle clear_search_cache tool call."""
        assert self.manager is not None
        query = arguments.get("query")

        if query is not None and not isinstance(query, str):
            self._send_invalid_params(request_id, "query must be a string")
            return

        if query:
            if self.manager.clear_one(query):
                text = f'Cache cleared for query: "{query}"'
            else:
                text = f'No cache entry for query: "{query}"'
        else:
            count = self.manager.clear_all()
            text = f"Entire cache cleared ({count} entries)"

        self.send_response(request_id, self._text_content(text))

    async def _handle_get_search_history(self, request_id: Any, arguments: Dict[str, Any]) -> None:
        """Handle get_search_history tool call."""
        assert self.manager is not None
        limit = arguments.get("limit", 10)
        include_errors = arguments.get("includeErrors", True)

        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            self._send_invalid_params(request_id, "limit must be a positive integer")
            return
        if not isinstance(include_errors, bool):
            self._send_invalid_params(request_id, "includeErrors must be a boolean")
            return

        records = self.manager.recent_history(limit, include_errors)
        text = json.dumps({"total": len(records), "history": records}, ensure_ascii=False, indent=2)
        self.send_response(request_id, self._text_content(text))

    async def handle_list_resources(self, request_id: Any, params: Dict[str, Any]) -> None:
        """Handle resources/list request."""
        resources = [
            {
                "uri": CACHE_STATUS_URI,
                "name": "Cache Status",
                "description": "Current cache status and statistics",
                "mimeType": "application/json",
            },
            {
                "uri": HISTORY_URI,
                "name": "Search History",
                "description": "Recent searches, most recent first",
                "mimeType": "application/json",
            },
        ]
        self.send_response(request_id, {"resources": resources})

    async def handle_read_resource(self, request_id: Any, params: Dict[str, Any]) -> None:
        """
        Handle resources/read request.

        Args:
            request_id: Request ID
            params: Request parameters containing 'uri'
        """
        assert self.manager is not None
        uri = params.get("uri")

        payload: Any
        if uri == CACHE_STATUS_URI:
            payload = self.manager.cache_status()
        elif uri == HISTORY_URI:
            payload = self.manager.recent_history(self.manager.history.max_records, True)
        else:
            self._send_invalid_params(request_id, f"Unknown resource: {uri}")
            return

        self.send_response(
            request_id,
            {
                "contents": [
                    {
                        "uri": uri,
                        "mimeType": "application/json",
                        "text": json.dumps(payload, ensure_ascii=False, indent=2),
                    }
                ]
            },
        )

    def _prompts(self) -> List[Dict[str, Any]]:
        return [
            {
                "name": "web_search",
                "description": "Research a topic on the web with Gemini",
                "arguments": [
                    {
                        "name": "topic",
                        "description": "Topic to research",
                        "required": True,
                    }
                ],
            }
        ]

    async def handle_list_prompts(self, request_id: Any, params: Dict[str, Any]) -> None:
        """Handle prompts/list request."""
        self.send_response(request_id, {"prompts": self._prompts()})

    async def handle_get_prompt(self, request_id: Any, params: Dict[str, Any]) -> None:
        """Handle prompts/get request."""
        name = params.get("name")
        arguments = params.get("arguments") or {}

        if not isinstance(arguments, dict):
            self._send_invalid_params(request_id, "arguments must be an object")
            return

        if name != "web_search":
            self._send_invalid_params(request_id, f"Unknown prompt: {name}")
            return

        topic = arguments.get("topic")
        if not topic:
            self._send_invalid_params(request_id, "Missing required argument: topic")
            return

        self.send_response(
            request_id,
            {
                "description": "Research a topic on the web with Gemini",
                "messages": [
                    {
                        "role": "user",
                        "content": {
                            "type": "text",
                            "text": (
                                f"Use the gemini_search tool to research: {topic}\n"
                                f"Summarize the findings and list the sources."
                            ),
                        },
                    }
                ],
            },
        )

    async def handle_request(self, message: Dict[str, Any]) -> None:
        """
        Handle incoming JSON-RPC request.

        Routes requests to appropriate handlers based on method name.

        Args:
            message: JSON-RPC message dictionary
        """
        method = message.get("method")
        request_id = message.get("id")
        params = message.get("params") or {}

        # Notifications need no response
        if method and method.startswith("notifications/"):
            return

        if request_id is None:
            return

        if not isinstance(params, dict):
            self._send_invalid_params(request_id, "params must be an object")
            return

        if method == "initialize":
            await self.handle_initialize(request_id, params)
        elif method == "ping":
            self.send_response(request_id, {})
        elif method == "tools/list":
            await self.handle_list_tools(request_id, params)
        elif method == "tools/call":
            await self.handle_call_tool(request_id, params)
        elif method == "resources/list":
            await self.handle_list_resources(request_id, params)
        elif method == "resources/read":
            await self.handle_read_resource(request_id, params)
        elif method == "prompts/list":
            await self.handle_list_prompts(request_id, params)
        elif method == "prompts/get":
            await self.handle_get_prompt(request_id, params)
        else:
            self.send_response(
                request_id,
                None,
                {"code": -32601, "message": f"Unknown method: {method}"},
            )

    def dispatch(self, message: Dict[str, Any]) -> "asyncio.Task[None]":
        """
        Handle a request in its own task.

        A pending gemini call only blocks its own request; other requests
        are handled meanwhile.
        """
        task = asyncio.create_task(self._handle_safely(message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _handle_safely(self, message: Dict[str, Any]) -> None:
        try:
            await self.handle_request(message)
        except Exception as e:
            self.logger.error(f"Request handling error: {e}", exc_info=True)
            request_id = message.get("id")
            if request_id is not None:
                self.send_response(
                    request_id,
                    None,
                    {"code": -32603, "message": f"Internal error: {e}"},
                )


async def main() -> None:
    """Main entry point for MCP server."""
    config = load_search_config()
    setup_logger(log_level=get_log_level(config), force_reconfigure=True)
    logger = get_logger("gemini_search.mcp_server")

    server = MCPServer(create_search_manager(config, logger))

    try:
        await server.start()
        loop = asyncio.get_running_loop()

        while True:
            line = await loop.run_in_executor(None, sys.stdin.readline)

            if not line:
                break

            line = line.strip()
            if not line:
                continue

            try:
                message = json.loads(line)
            except json.JSONDecodeError as e:
                logger.error(f"JSON parse error: {e}")
                continue

            if not isinstance(message, dict):
                logger.error(f"Ignoring non-object message: {line}")
                continue

            server.dispatch(message)

    except KeyboardInterrupt:
        logger.info("Server interrupted by user")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
    finally:
        await server.stop()


def run() -> None:
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()

"""
Core modules for the Gemini search MCP server.

This package contains the core components:
- validate_query: Query validation
- SearchCache: Result cache with lazy TTL expiration
- SearchHistory: Bounded search history
- GeminiExecutor: gemini CLI subprocess runner
- GeminiSearchManager: Search orchestrator
"""

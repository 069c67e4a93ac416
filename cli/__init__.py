"""Command-line interface for Gemini search."""

"""Core (UI-agnostic) console logic.

This package contains:
- wire record canonicalization (backend JSON -> frozen dataclasses)
- outbound sale payload building
- period selection, site scoping and assignment resolution
- the dashboard aggregation engine and its JSON-serializable payloads
- the HTTP client and repositories for the backend REST API
"""

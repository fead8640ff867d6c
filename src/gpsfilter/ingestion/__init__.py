"""Ingestion layer.

Adapters that turn loosely structured Signal K payloads into typed
position candidates, or reject them as malformed, before the engine sees
them.
"""

__all__: list[str] = []

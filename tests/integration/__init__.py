"""
Integration tests for marketlens components.

Integration tests exercise the service, caches and CLI together with the real
analysis engine; only the network layer is replaced.
"""

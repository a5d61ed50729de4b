"""
crudguard Integrations Module.

Provides integrations with web frameworks.
"""

# Lazy imports to avoid requiring optional dependencies

__all__ = [
    "get_fastapi_integration",
]


def get_fastapi_integration():
    """Get FastAPI integration utilities."""
    from crudguard.integrations import fastapi
    return fastapi

"""Service layer for visibility analytics projections."""

__all__ = [
    "visibility_service",
    "utils",
]

"""Small helpers shared across layers."""

__all__ = ["locks", "time"]

"""Discord runtime for the mod verification bot."""

__all__ = ["config", "verification"]

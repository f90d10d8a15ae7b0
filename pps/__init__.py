"""PPS spec pipeline: envelope/result documents, OMS merge engine and adapters."""

__all__ = [
    "cli",
    "engine",
    "main",
]

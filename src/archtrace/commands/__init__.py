"""
archtrace.commands - CLI command implementations
"""

__all__ = [
    "generate",
    "hooks",
    "query",
    "sync_cmd",
]

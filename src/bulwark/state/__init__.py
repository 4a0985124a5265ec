"""In-process state registries for Bulwark."""

from bulwark.state.registry import (
    ErrorRegistry,
    LoadingEntry,
    LoadingKeys,
    LoadingRegistry,
)

__all__ = [
    "ErrorRegistry",
    "LoadingEntry",
    "LoadingKeys",
    "LoadingRegistry",
]

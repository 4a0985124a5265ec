"""Utility modules for Bulwark."""

from bulwark.utils.time import utc_now

__all__ = ["utc_now"]

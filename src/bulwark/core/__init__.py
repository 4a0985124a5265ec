"""Core models for Bulwark: errors, configuration and logging."""

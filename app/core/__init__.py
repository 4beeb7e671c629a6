"""Core primitives shared across services."""

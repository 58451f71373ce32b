"""Pipehub - GitHub sign-in and tenant provisioning."""

__version__ = "0.3.0"

"""Federated identity abstraction layer."""

from .client import IdentityClient, IdentityError, OpenIdToken

__all__ = [
    "IdentityClient",
    "IdentityError",
    "OpenIdToken",
]

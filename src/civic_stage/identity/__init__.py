"""Identity provider contract and the local email/password provider."""

from .base import Identity, IdentityError, IdentityProvider

__all__ = ["Identity", "IdentityError", "IdentityProvider"]

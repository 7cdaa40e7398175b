"""Authentication package."""

from cryb.auth.service import AuthService

__all__ = ["AuthService"]

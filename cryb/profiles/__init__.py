"""Profile resolution package."""

from cryb.profiles.resolver import ProfileError, ProfileResolver

__all__ = ["ProfileError", "ProfileResolver"]

from .profiles import UserProfileRepository, user_profiles

__all__ = ["UserProfileRepository", "user_profiles"]

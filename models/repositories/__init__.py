from models.repositories.refresh_tokens import RefreshTokenStore
from models.repositories.users import SQLUserRepository, UserRepository

__all__ = ["RefreshTokenStore", "SQLUserRepository", "UserRepository"]

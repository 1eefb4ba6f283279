"""
CRUD over user records for the /users endpoints.
"""
from __future__ import annotations

import logging

from services.errors import UserNotFound

logger = logging.getLogger(__name__)


class UsersService:
    def __init__(self, users, hasher, storage):
        self.users = users
        self.hasher = hasher
        self.storage = storage

    def create(self, email: str, password: str, name: str, role: str | None = None):
        fields = {"email": email, "password_hash": self.hasher.hash(password), "name": name}
        if role:
            fields["role"] = role
        with self.storage.transaction():
            user = self.users.create(**fields)
        logger.info("created user %s", user.id)
        return user

    def find_all(self, page: int = 1, limit: int = 10):
        return self.users.find_all(page, limit)

    def find_by_id(self, user_id: str):
        user = self.users.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    def update(self, user_id: str, **fields):
        password = fields.pop("password", None)
        if password:
            fields["password_hash"] = self.hasher.hash(password)
        with self.storage.transaction():
            user = self.users.update(user_id, **fields)
            if user is None:
                raise UserNotFound()
        logger.info("updated user %s", user_id)
        return user

    def delete(self, user_id: str) -> None:
        with self.storage.transaction():
            if self.users.find_by_id(user_id) is None:
                raise UserNotFound()
            self.users.delete(user_id)
        logger.info("deleted user %s", user_id)

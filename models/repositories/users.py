"""
Account directory: user records by id or email.

UserRepository is the interface the services depend on; SQLUserRepository is
the SQLAlchemy implementation. Repositories flush but never commit, the
calling service owns the transaction.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from models.user import User
from services.errors import EmailAlreadyRegistered


class UserRepository(ABC):
    @abstractmethod
    def find_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    def find_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    def find_all(self, page: int, limit: int) -> Tuple[List[User], int]:
        ...

    @abstractmethod
    def create(self, **fields) -> User:
        """Insert a user. Raises EmailAlreadyRegistered on a duplicate email."""

    @abstractmethod
    def update(self, user_id: str, **fields) -> Optional[User]:
        ...

    @abstractmethod
    def delete(self, user_id: str) -> None:
        ...


class SQLUserRepository(UserRepository):
    UPDATABLE = ("name", "email", "password_hash", "role", "is_active")

    def __init__(self, storage):
        self.storage = storage

    @property
    def session(self):
        return self.storage.get_session()

    def find_by_email(self, email: str) -> Optional[User]:
        return self.session.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.session.get(User, user_id)

    def find_all(self, page: int, limit: int) -> Tuple[List[User], int]:
        query = self.session.query(User)
        total = query.count()
        rows = (
            query.order_by(User.created_at.desc(), User.id)
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    def create(self, **fields) -> User:
        user = User(**fields)
        self.session.add(user)
        self._flush()
        return user

    def update(self, user_id: str, **fields) -> Optional[User]:
        user = self.find_by_id(user_id)
        if user is None:
            return None
        for key, value in fields.items():
            if key not in self.UPDATABLE:
                raise ValueError(f"Field {key!r} cannot be updated")
            setattr(user, key, value)
        self._flush()
        return user

    def delete(self, user_id: str) -> None:
        user = self.find_by_id(user_id)
        if user is not None:
            self.session.delete(user)
            self.session.flush()

    def _flush(self):
        try:
            self.session.flush()
        except IntegrityError as exc:
            # users.email is the only unique column a caller can collide on
            raise EmailAlreadyRegistered() from exc

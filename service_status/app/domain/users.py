"""
User directory operations and their status-code contracts.
"""

import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from shared.errors import NotFoundError, ValidationError
from shared.logging import get_logger

from ..adapters.user_directory import User, UserDirectory


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USER_ID_PATTERN = re.compile(r"[0-9]+")


class UserPayload(BaseModel):
    """Body accepted by the create and update endpoints."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class UserService:
    """Maps directory outcomes onto NotFoundError / ValidationError."""

    def __init__(self, directory: UserDirectory):
        self.directory = directory
        self.logger = get_logger("status.users")

    def list_users(self) -> List[User]:
        return self.directory.list()

    def get_user(self, raw_id: str) -> User:
        user_id = self._parse_id(raw_id)
        user = self.directory.find(user_id) if user_id is not None else None
        if user is None:
            raise self._not_found(raw_id)
        return user

    def create_user(self, payload: Optional[UserPayload]) -> User:
        payload = payload or UserPayload()

        missing: Dict[str, Any] = {}
        if not payload.name:
            missing["name"] = "Name is required"
        if not payload.email:
            missing["email"] = "Email is required"
        if missing:
            raise ValidationError("Name and email are required fields", details=missing)

        if not EMAIL_PATTERN.fullmatch(payload.email):
            raise ValidationError("Invalid email format", details={"email": "Invalid email format"})

        user = self.directory.insert(payload.name, payload.email, payload.role or "user")
        self.logger.info("User created", created_user_id=user.id, role=user.role)
        return user

    def update_user(self, raw_id: str, payload: Optional[UserPayload]) -> User:
        payload = payload or UserPayload()
        user_id = self._parse_id(raw_id)

        # Empty strings do not overwrite
        user = None
        if user_id is not None:
            user = self.directory.update(
                user_id,
                name=payload.name or None,
                email=payload.email or None,
                role=payload.role or None,
            )
        if user is None:
            raise self._not_found(raw_id)

        self.logger.info("User updated", updated_user_id=user.id)
        return user

    def delete_user(self, raw_id: str) -> None:
        user_id = self._parse_id(raw_id)
        if user_id is None or not self.directory.delete(user_id):
            raise self._not_found(raw_id)
        self.logger.info("User deleted", deleted_user_id=user_id)

    @staticmethod
    def _parse_id(raw_id: str) -> Optional[int]:
        # Plain ASCII digits only; int() would also take "+1", "1_0" and " 1"
        if raw_id is None or not USER_ID_PATTERN.fullmatch(raw_id):
            return None
        return int(raw_id)

    @staticmethod
    def _not_found(raw_id: str) -> NotFoundError:
        return NotFoundError(
            message=f"No user exists with id {raw_id}",
            error="User not found",
        )

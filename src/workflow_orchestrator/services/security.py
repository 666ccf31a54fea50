"""Permission, audit and encryption capability used by workflow handlers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPPORT = "support"
    ENTERPRISE = "enterprise"


class EncryptedMessage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    encrypted_data: str
    iv: str
    auth_tag: str


class SecurityService(ABC):
    """Abstract base class for the security capability."""

    @abstractmethod
    def has_permission(self, role: UserRole, action: str, resource: str) -> bool:
        pass

    @abstractmethod
    async def encrypt_message(self, message: str, key: str) -> EncryptedMessage:
        pass

    @abstractmethod
    async def decrypt_message(self, encrypted: EncryptedMessage, key: str) -> str:
        pass

    @abstractmethod
    def log_audit(self, user_id: str, action: str, resource: str, success: bool) -> None:
        pass

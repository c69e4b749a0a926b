"""Actor identity and customer contact details."""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from workjunction.utils import normalize_phone

# Validation thresholds
MIN_NAME_LENGTH = 2
MIN_PHONE_DIGITS = 7
MAX_PHONE_DIGITS = 15
MIN_ADDRESS_LENGTH = 5
_PINCODE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 -]{2,9}$")
_EMAIL = re.compile(r"^\S+@\S+\.\S+$")


class CamelModel(BaseModel):
    """Base for API payloads: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActorRole(str, Enum):
    CUSTOMER = "CUSTOMER"
    WORKER = "WORKER"
    SERVICE_AGENT = "SERVICE_AGENT"
    ADMIN = "ADMIN"


class Actor(BaseModel):
    """The authenticated caller behind a mutating request."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN


class CustomerDetails(CamelModel):
    """Contact details captured with each booking."""

    name: str
    phone: str
    address: str
    pincode: str
    email: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < MIN_NAME_LENGTH:
            raise ValueError(f"name must be at least {MIN_NAME_LENGTH} characters")
        return value.title()

    @field_validator("phone")
    @classmethod
    def _validate_phone(cls, value: str) -> str:
        digits = re.sub(r"[^\d]", "", value)
        if not MIN_PHONE_DIGITS <= len(digits) <= MAX_PHONE_DIGITS:
            raise ValueError(f"phone number '{value}' doesn't look right")
        return normalize_phone(value)

    @field_validator("address")
    @classmethod
    def _validate_address(cls, value: str) -> str:
        value = value.strip()
        if len(value) < MIN_ADDRESS_LENGTH:
            raise ValueError(f"address must be at least {MIN_ADDRESS_LENGTH} characters")
        return value

    @field_validator("pincode")
    @classmethod
    def _validate_pincode(cls, value: str) -> str:
        value = value.strip()
        if not _PINCODE.match(value):
            raise ValueError(f"pincode '{value}' doesn't look right")
        return value

    @field_validator("email")
    @classmethod
    def _validate_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None or not value.strip():
            return None
        value = value.strip().lower()
        if not _EMAIL.match(value):
            raise ValueError(f"email '{value}' doesn't look right")
        return value

"""Principals, roles and the responder roster source."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class Role(Enum):
    """Closed set of roles a principal may hold."""
    OFFICIAL = "official"
    SECURITY_TEAM = "security_team"
    SECURITY_ADMIN = "security_admin"


def is_security_role(role: Role) -> bool:
    """Whether the role belongs to the responder side.
    
    Every role is listed so that adding one forces a decision here.
    """
    if role is Role.SECURITY_ADMIN:
        return True
    if role is Role.SECURITY_TEAM:
        return True
    if role is Role.OFFICIAL:
        return False
    raise ValueError(f"Unhandled role: {role!r}")


def can_act_on_any_alert(role: Role) -> bool:
    """Whether the role may resolve or cancel alerts it does not own."""
    if role is Role.SECURITY_ADMIN:
        return True
    if role is Role.SECURITY_TEAM:
        return True
    if role is Role.OFFICIAL:
        return False
    raise ValueError(f"Unhandled role: {role!r}")


@dataclass(frozen=True)
class Principal:
    """The only identity information the core consumes."""
    user_id: str
    role: Role

    @property
    def is_security(self) -> bool:
        return is_security_role(self.role)


@dataclass(frozen=True)
class Profile:
    """User profile; security profiles form the responder roster."""
    id: str
    role: Role
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Profile":
        return cls(
            id=row["id"],
            role=Role(row["role"]),
            full_name=row.get("full_name"),
            email=row.get("email"),
            phone=row.get("phone"),
            is_active=bool(row.get("is_active", True)),
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "full_name": self.full_name,
            "email": self.email,
            "phone": self.phone,
            "is_active": self.is_active,
        }

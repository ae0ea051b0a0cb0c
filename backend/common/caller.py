"""The verified identity every core operation is invoked with."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Caller:
    """
    `{user_id, role}` taken from an already-verified token.

    Token verification belongs to the authentication layer; services only
    ever see this pair.
    """
    user_id: int
    role: str

    @classmethod
    def from_user(cls, user) -> "Caller":
        return cls(user_id=user.id, role=getattr(user, "role", ""))

    @classmethod
    def from_request(cls, request) -> "Caller":
        return cls.from_user(request.user)

    @property
    def is_customer(self) -> bool:
        return self.role == "customer"

    @property
    def is_technician(self) -> bool:
        return self.role == "technician"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

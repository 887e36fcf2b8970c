"""Cart owner identity: a guest session or an authenticated account."""

from dataclasses import dataclass
from enum import Enum


class IdentityKind(str, Enum):
    """Kind of cart owner."""

    GUEST = "guest"
    USER = "user"


@dataclass(frozen=True)
class Identity:
    """
    Owner of a cart and of the orders created from it.

    Example:
        >>> Identity.user("42").actor_ref
        'user:42'
    """

    kind: IdentityKind
    value: str

    def __post_init__(self) -> None:
        if not self.value or not self.value.strip():
            raise ValueError(f"{self.kind.value} identity requires a non-empty id")

    @classmethod
    def guest(cls, session_id: str) -> "Identity":
        return cls(IdentityKind.GUEST, session_id)

    @classmethod
    def user(cls, user_id: str) -> "Identity":
        return cls(IdentityKind.USER, str(user_id))

    @property
    def is_guest(self) -> bool:
        return self.kind is IdentityKind.GUEST

    @property
    def is_user(self) -> bool:
        return self.kind is IdentityKind.USER

    @property
    def actor_ref(self) -> str:
        """Actor reference recorded in ledger and history entries."""
        return f"{self.kind.value}:{self.value}"

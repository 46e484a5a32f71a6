"""
Conversation parties.

Every order conversation has exactly two sides: the customer who owns the
order and store staff. Read-state transitions always act on the *other*
side's messages, so the rule lives here as `Party.counterpart`.
"""
import enum
from dataclasses import dataclass
from typing import Any, Dict

from app.core.exceptions import NotAuthenticated


class Party(str, enum.Enum):
    CUSTOMER = "customer"
    STAFF = "staff"

    @property
    def counterpart(self) -> "Party":
        return Party.CUSTOMER if self is Party.STAFF else Party.STAFF

    @property
    def is_staff(self) -> bool:
        return self is Party.STAFF

    @classmethod
    def from_admin_flag(cls, is_admin: bool) -> "Party":
        return cls.STAFF if is_admin else cls.CUSTOMER


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of an HTTP request or socket event."""

    user_id: int
    party: Party
    email: str = ""

    @property
    def is_admin(self) -> bool:
        return self.party.is_staff

    @classmethod
    def from_session(cls, session: Dict[str, Any]) -> "Actor":
        if not session or session.get("user_id") is None:
            raise NotAuthenticated()
        return cls(
            user_id=int(session["user_id"]),
            party=Party.from_admin_flag(bool(session.get("is_admin", False))),
            email=session.get("email") or "",
        )

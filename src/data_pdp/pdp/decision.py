"""Decision enum for permission evaluation outcomes."""

from __future__ import annotations

__all__ = ["Decision"]

from enum import Enum


class Decision(str, Enum):
    """Permission decision outcome.

    Inherits from str for easy serialization and comparison.

    Attributes:
        ALLOW: Operation is permitted on the entity.
        DENY: Operation is refused (explicit deny, default deny or error).
    """

    ALLOW = "allow"
    DENY = "deny"

    @classmethod
    def from_allowed(cls, is_allowed: bool) -> "Decision":
        return cls.ALLOW if is_allowed else cls.DENY

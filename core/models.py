"""
Profile data model.

A profile entry is stored without any identity field; the identity it
belongs to is recovered at read time from link provenance or from the
entry's write metadata.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from .errors import StoreError

PROFILE_TYPE = "profile"


@dataclass(frozen=True)
class Profile:
    """Self-describing profile: a nickname plus free-form string fields."""
    nickname: str
    fields: Dict[str, str] = field(default_factory=dict)

    def to_value(self) -> Dict[str, Any]:
        """Store representation."""
        return {
            "type": PROFILE_TYPE,
            "nickname": self.nickname,
            "fields": dict(self.fields),
        }

    @classmethod
    def from_value(cls, value: Any) -> "Profile":
        """Rebuild a profile from its store representation."""
        if not isinstance(value, dict) or value.get("type") != PROFILE_TYPE:
            raise StoreError(f"Entry is not a profile: {value!r}")
        return cls(nickname=value["nickname"], fields=dict(value.get("fields") or {}))


@dataclass(frozen=True)
class AnnotatedProfile:
    """A profile paired with the identity that published it."""
    identity: str
    profile: Profile


def agent_value(identity: str) -> Dict[str, Any]:
    """Anchor value whose address stands for an identity in the link graph."""
    return {"type": "agent", "key": identity}

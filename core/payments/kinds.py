"""
Resource kinds and payment decisions shared by the payment core.
"""

from enum import Enum


class ResourceKind(str, Enum):
    LESSON = "lesson"
    HANDLEDAR = "handledar"
    PACKAGE = "package"

    @property
    def session_type(self) -> str:
        """Value of the ``sessionType`` claim in emailed action links."""
        return _SESSION_TYPES[self]

    @classmethod
    def parse(cls, value) -> "ResourceKind":
        """
        Accept the canonical names as well as the aliases used by the
        booking frontend (``regular``, ``booking``, ``order``).

        Raises:
            ValueError: for unknown values
        """
        if isinstance(value, cls):
            return value
        try:
            return _ALIASES[str(value).strip().lower()]
        except KeyError:
            raise ValueError(f"Unknown resource kind: {value!r}") from None


_SESSION_TYPES = {
    ResourceKind.LESSON: "regular",
    ResourceKind.HANDLEDAR: "handledar",
    ResourceKind.PACKAGE: "order",
}

_ALIASES = {
    "lesson": ResourceKind.LESSON,
    "regular": ResourceKind.LESSON,
    "booking": ResourceKind.LESSON,
    "handledar": ResourceKind.HANDLEDAR,
    "package": ResourceKind.PACKAGE,
    "order": ResourceKind.PACKAGE,
}


class Decision(str, Enum):
    CONFIRM = "confirm"
    DENY = "deny"
    REMIND = "remind"

    @classmethod
    def parse(cls, value) -> "Decision":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown decision: {value!r}") from None

"""
Action Token Codec

Signed capability tokens for emailed payment links ("confirm this Swish
payment", "deny", "remind"). The wire format is an HS256 JWT compatible with
links that are already in customers' inboxes:

    {
        "type": "swish_action",
        "bookingId": "<id of the resource>",
        "sessionType": "regular" | "handledar" | "order",
        "decision": "confirm" | "deny" | "remind",   # optional
        "exp": 1735689600                            # optional
    }

`bookingId` holds the id of whichever resource `sessionType` names.

Every decoding problem raises the same InvalidToken, so callers cannot tell
a tampered token from an expired or foreign one. Tokens are reusable unless
a replay guard is configured (PAYMENT_ACTION_SINGLE_USE).

Author: Trafikskola Development Team
Version: 1.0.0
"""

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from django.conf import settings
from django.core.cache import cache

from core.payments.exceptions import InvalidToken, SigningKeyMissing
from core.payments.kinds import Decision, ResourceKind

logger = logging.getLogger(__name__)

TOKEN_TYPE = "swish_action"
ALGORITHM = "HS256"


def _fingerprint(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ActionToken:
    resource_kind: ResourceKind
    resource_id: str
    suggested_decision: Optional[Decision] = None
    expires_at: Optional[datetime] = None
    kind: str = "payment_action"


class CacheReplayGuard:
    """
    Single-use tracking for action tokens in the Django cache.

    `claim` succeeds exactly once per token (cache.add is atomic on Redis
    and locmem). Entries live until the token expires, or for `timeout`
    seconds when the token has no expiry (None keeps them forever).
    """

    key_prefix = "payment_action_used"

    def __init__(self, timeout: Optional[int] = None):
        self.timeout = timeout

    def _key(self, token: str) -> str:
        return f"{self.key_prefix}:{_fingerprint(token)}"

    def claim(self, token: str, expires_at: Optional[datetime] = None) -> bool:
        timeout = self.timeout
        if expires_at is not None:
            remaining = int((expires_at - datetime.now(tz=timezone.utc)).total_seconds()) + 1
            timeout = max(remaining, 1)
        return cache.add(self._key(token), True, timeout)

    def release(self, token: str) -> None:
        cache.delete(self._key(token))


class ActionTokenCodec:
    """
    Encodes and decodes payment action tokens.

    Args:
        secret: HS256 signing key; empty is a configuration error
        max_age: lifetime of newly encoded tokens in seconds (None = no expiry)
        replay_guard: optional object with ``claim(token, expires_at) -> bool``
            and ``release(token)``
    """

    def __init__(self, secret: str, max_age: Optional[int] = None, replay_guard=None):
        if not secret:
            raise SigningKeyMissing()
        self._secret = secret
        self.max_age = max_age
        self.replay_guard = replay_guard

    def encode(
        self,
        resource_kind,
        resource_id,
        suggested_decision=None,
        max_age: Optional[int] = None,
    ) -> str:
        kind = ResourceKind.parse(resource_kind)
        payload = {
            "type": TOKEN_TYPE,
            "bookingId": str(resource_id),
            "sessionType": kind.session_type,
        }
        if suggested_decision is not None:
            payload["decision"] = Decision.parse(suggested_decision).value

        lifetime = max_age if max_age is not None else self.max_age
        if lifetime:
            payload["exp"] = datetime.now(tz=timezone.utc) + timedelta(seconds=lifetime)

        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def decode(self, token) -> ActionToken:
        if not token or not isinstance(token, str):
            raise InvalidToken()

        try:
            payload = jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except jwt.PyJWTError as e:
            logger.warning(
                f"Rejected action token {_fingerprint(token)[:12]}: {e.__class__.__name__}"
            )
            raise InvalidToken() from e

        if not isinstance(payload, dict) or payload.get("type") != TOKEN_TYPE:
            logger.warning(f"Rejected action token {_fingerprint(token)[:12]}: wrong type")
            raise InvalidToken()

        resource_id = payload.get("bookingId")
        if not resource_id or not isinstance(resource_id, (str, int)):
            raise InvalidToken()

        try:
            kind = ResourceKind.parse(payload.get("sessionType") or "regular")
            decision = payload.get("decision")
            suggested = Decision.parse(decision) if decision else None
        except ValueError as e:
            raise InvalidToken() from e

        expires_at = None
        if payload.get("exp") is not None:
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc)

        return ActionToken(
            resource_kind=kind,
            resource_id=str(resource_id),
            suggested_decision=suggested,
            expires_at=expires_at,
        )

    def consume(self, token) -> ActionToken:
        """Decode and, when a replay guard is configured, claim the token."""
        action = self.decode(token)
        if self.replay_guard is not None and not self.replay_guard.claim(
            token, action.expires_at
        ):
            logger.warning(f"Replayed action token {_fingerprint(token)[:12]}")
            raise InvalidToken()
        return action

    def release(self, token) -> None:
        """Give a consumed token back, e.g. when applying it failed."""
        if self.replay_guard is not None:
            self.replay_guard.release(token)


def get_action_token_codec() -> ActionTokenCodec:
    """Build the codec from settings."""
    guard = None
    if getattr(settings, "PAYMENT_ACTION_SINGLE_USE", False):
        guard = CacheReplayGuard()
    return ActionTokenCodec(
        getattr(settings, "PAYMENT_ACTION_SECRET", ""),
        max_age=getattr(settings, "PAYMENT_ACTION_TOKEN_MAX_AGE", 0) or None,
        replay_guard=guard,
    )

import datetime

import jwt
from django.core.cache import cache
from django.test import SimpleTestCase, TestCase, override_settings

from core.payments.exceptions import InvalidToken, SigningKeyMissing
from core.payments.kinds import Decision, ResourceKind
from core.payments.tests.helpers import SECRET
from core.payments.tokens import (
    ActionTokenCodec,
    CacheReplayGuard,
    get_action_token_codec,
)

"""
    Tests für die signierten Zahlungslinks (Action Token Codec).
"""


class ActionTokenCodecTests(SimpleTestCase):
    def setUp(self):
        self.codec = ActionTokenCodec(SECRET)

    def test_round_trip_for_every_kind_and_decision(self):
        for kind in ResourceKind:
            for decision in (None, *Decision):
                token = self.codec.encode(kind, "abc-123", decision)
                action = self.codec.decode(token)
                self.assertEqual(action.resource_kind, kind)
                self.assertEqual(action.resource_id, "abc-123")
                self.assertEqual(action.suggested_decision, decision)
                self.assertEqual(action.kind, "payment_action")

    def test_wire_claims_match_emailed_links(self):
        token = self.codec.encode(ResourceKind.PACKAGE, "p-1", Decision.DENY)
        claims = jwt.decode(token, SECRET, algorithms=["HS256"])
        self.assertEqual(
            claims, {"type": "swish_action", "bookingId": "p-1", "sessionType": "order", "decision": "deny"}
        )

    def test_decodes_token_without_session_type_as_lesson(self):
        token = jwt.encode({"type": "swish_action", "bookingId": "b-1"}, SECRET, algorithm="HS256")
        action = self.codec.decode(token)
        self.assertEqual(action.resource_kind, ResourceKind.LESSON)
        self.assertIsNone(action.suggested_decision)

    def test_wrong_key_is_rejected(self):
        token = ActionTokenCodec("another-secret").encode(ResourceKind.LESSON, "b-1")
        with self.assertRaises(InvalidToken):
            self.codec.decode(token)

    def test_mutated_payload_is_rejected(self):
        token = self.codec.encode(ResourceKind.LESSON, "b-1", Decision.CONFIRM)
        header, payload, signature = token.split(".")
        forged = jwt.encode(
            {"type": "swish_action", "bookingId": "b-2", "sessionType": "regular"},
            "whatever",
            algorithm="HS256",
        ).split(".")[1]
        with self.assertRaises(InvalidToken):
            self.codec.decode(f"{header}.{forged}.{signature}")

    def test_foreign_token_type_looks_like_tampering(self):
        token = jwt.encode({"type": "password_reset", "bookingId": "b-1"}, SECRET, algorithm="HS256")
        with self.assertRaises(InvalidToken) as foreign:
            self.codec.decode(token)
        with self.assertRaises(InvalidToken) as garbage:
            self.codec.decode("not-a-token")
        self.assertEqual(foreign.exception.message, garbage.exception.message)
        self.assertEqual(foreign.exception.message, "Ogiltig token")

    def test_unknown_session_type_or_decision_is_rejected(self):
        for claims in (
            {"type": "swish_action", "bookingId": "b-1", "sessionType": "voucher"},
            {"type": "swish_action", "bookingId": "b-1", "decision": "refund"},
            {"type": "swish_action"},
        ):
            token = jwt.encode(claims, SECRET, algorithm="HS256")
            with self.assertRaises(InvalidToken):
                self.codec.decode(token)

    def test_empty_token_is_rejected(self):
        for token in (None, ""):
            with self.assertRaises(InvalidToken):
                self.codec.decode(token)

    def test_expired_token_is_rejected(self):
        token = jwt.encode(
            {
                "type": "swish_action",
                "bookingId": "b-1",
                "exp": datetime.datetime.now(tz=datetime.timezone.utc) - datetime.timedelta(minutes=1),
            },
            SECRET,
            algorithm="HS256",
        )
        with self.assertRaises(InvalidToken):
            self.codec.decode(token)

    def test_max_age_adds_expiry(self):
        codec = ActionTokenCodec(SECRET, max_age=1800)
        action = codec.decode(codec.encode(ResourceKind.HANDLEDAR, "h-1"))
        self.assertIsNotNone(action.expires_at)

    def test_tokens_never_expire_by_default(self):
        token = self.codec.encode(ResourceKind.LESSON, "b-1")
        self.assertNotIn("exp", jwt.decode(token, SECRET, algorithms=["HS256"]))

    def test_missing_secret_is_a_configuration_error(self):
        with self.assertRaises(SigningKeyMissing):
            ActionTokenCodec("")

    def test_consume_without_guard_allows_reuse(self):
        token = self.codec.encode(ResourceKind.LESSON, "b-1")
        self.codec.consume(token)
        self.codec.consume(token)


class ReplayGuardTests(TestCase):
    def setUp(self):
        cache.clear()

    def test_guard_allows_a_token_once(self):
        codec = ActionTokenCodec(SECRET, replay_guard=CacheReplayGuard())
        token = codec.encode(ResourceKind.LESSON, "b-1", Decision.CONFIRM)
        codec.consume(token)
        with self.assertRaises(InvalidToken):
            codec.consume(token)

    def test_decode_does_not_claim(self):
        codec = ActionTokenCodec(SECRET, replay_guard=CacheReplayGuard())
        token = codec.encode(ResourceKind.LESSON, "b-1")
        codec.decode(token)
        codec.consume(token)

    @override_settings(PAYMENT_ACTION_SECRET=SECRET, PAYMENT_ACTION_SINGLE_USE=True, PAYMENT_ACTION_TOKEN_MAX_AGE=600)
    def test_codec_from_settings(self):
        codec = get_action_token_codec()
        self.assertIsInstance(codec.replay_guard, CacheReplayGuard)
        self.assertEqual(codec.max_age, 600)

    @override_settings(PAYMENT_ACTION_SECRET="")
    def test_codec_from_settings_without_secret(self):
        with self.assertRaises(SigningKeyMissing):
            get_action_token_codec()

"""
Credit targets.

A credit is always bound to exactly one target: a lesson type, a specific
handledar session, or handledar sessions in general. The target decides
which CreditRecord row a ledger operation touches.
"""

from dataclasses import dataclass
from typing import Optional, Union

from django.db import models


class CreditType(models.TextChoices):
    LESSON = "lesson", "Lektion"
    HANDLEDAR = "handledar", "Handledar"


@dataclass(frozen=True)
class LessonCredit:
    lesson_type_id: int

    credit_type = CreditType.LESSON

    def lookup(self) -> dict:
        return {"credit_type": self.credit_type, "lesson_type_id": self.lesson_type_id}

    def create_kwargs(self) -> dict:
        return {
            "credit_type": self.credit_type,
            "lesson_type_id": self.lesson_type_id,
            "handledar_session_id": None,
        }


@dataclass(frozen=True)
class HandledarCredit:
    """Handledar credit; ``handledar_session_id=None`` is the generic variant."""

    handledar_session_id: Optional[int] = None

    credit_type = CreditType.HANDLEDAR

    @property
    def is_generic(self) -> bool:
        return self.handledar_session_id is None

    def lookup(self) -> dict:
        if self.is_generic:
            return {"credit_type": self.credit_type, "handledar_session__isnull": True}
        return {
            "credit_type": self.credit_type,
            "handledar_session_id": self.handledar_session_id,
        }

    def create_kwargs(self) -> dict:
        return {
            "credit_type": self.credit_type,
            "lesson_type_id": None,
            "handledar_session_id": self.handledar_session_id,
        }


CreditTarget = Union[LessonCredit, HandledarCredit]


def build_target(credit_type=None, lesson_type_id=None, handledar_session_id=None) -> CreditTarget:
    """
    Build a target from loosely typed request fields.

    A lesson type id always means a lesson credit. Without one the credit is
    a handledar credit, specific when a session id is given.

    Raises:
        ValueError: if the fields do not describe a valid target
    """
    if credit_type not in (None, "", CreditType.LESSON, CreditType.HANDLEDAR):
        raise ValueError(f"Okänd kredittyp: {credit_type}")

    if lesson_type_id and credit_type != CreditType.HANDLEDAR:
        if handledar_session_id:
            raise ValueError("En kredit kan inte gälla både en lektionstyp och en handledarsession")
        return LessonCredit(int(lesson_type_id))

    if credit_type == CreditType.HANDLEDAR or handledar_session_id:
        if lesson_type_id:
            raise ValueError("En handledarkredit kan inte gälla en lektionstyp")
        return HandledarCredit(int(handledar_session_id) if handledar_session_id else None)

    raise ValueError("lessonTypeId eller creditType=handledar krävs")


def target_of(record) -> CreditTarget:
    """Return the target of a stored CreditRecord."""
    if record.credit_type == CreditType.LESSON:
        return LessonCredit(record.lesson_type_id)
    return HandledarCredit(record.handledar_session_id)

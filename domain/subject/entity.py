"""
Subject references - the owner of a booking, result or certificate purchase.

A SAP ID may belong to a self-registered user or to an organization-scoped
special user. The kind is resolved once, when the subject is looked up, and
travels with the reference afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SubjectKind(str, Enum):
    USER = "user"
    SPECIAL_USER = "special_user"


@dataclass(frozen=True)
class SubjectRef:
    kind: SubjectKind
    sap_id: str

    @classmethod
    def user(cls, sap_id: str) -> "SubjectRef":
        return cls(SubjectKind.USER, sap_id)

    @classmethod
    def special_user(cls, sap_id: str) -> "SubjectRef":
        return cls(SubjectKind.SPECIAL_USER, sap_id)

    @property
    def is_special_user(self) -> bool:
        return self.kind is SubjectKind.SPECIAL_USER

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.sap_id}"


@dataclass(frozen=True)
class Subject:
    """A resolved subject with the contact data payments and emails need."""

    ref: SubjectRef
    name: str
    email: str
    phone: Optional[str] = None
    organization_sap_id: Optional[str] = None

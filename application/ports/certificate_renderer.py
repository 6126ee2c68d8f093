"""
Certificate renderer port. Rendering is opaque to the application: it gets a url back.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from domain.assessment.entity import Test, TestResult
from domain.subject.entity import Subject


@runtime_checkable
class CertificateRenderer(Protocol):

    async def render(self, *, purchase_id: int, subject: Subject, test: Test, result: TestResult) -> str:
        """Produce the certificate and return its public url."""
        ...

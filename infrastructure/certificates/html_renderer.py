"""
Renders certificates as standalone HTML files on local disk.

The returned url is relative to ``public_base_path``; serving the directory
is left to the web server in front of the app.
"""
from __future__ import annotations

import asyncio
import html
from datetime import datetime, timezone
from pathlib import Path

from core.logging_config import get_logger
from domain.assessment.entity import Test, TestResult
from domain.subject.entity import Subject


logger = get_logger(__name__)


_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Certificate of Achievement</title>
<style>
body {{ font-family: Georgia, serif; text-align: center; margin: 60px; }}
.frame {{ border: 8px double #3399cc; padding: 48px; }}
h1 {{ letter-spacing: 2px; }}
.name {{ font-size: 32px; font-weight: bold; margin: 24px 0; }}
.meta {{ color: #555; margin-top: 32px; }}
</style>
</head>
<body>
<div class="frame">
<h1>Certificate of Achievement</h1>
<p>This is to certify that</p>
<div class="name">{name}</div>
<p>has completed <strong>{test}</strong> with a score of <strong>{score}%</strong> ({rating}).</p>
<p class="meta">Certificate no. {number} &middot; Issued {issued}</p>
</div>
</body>
</html>
"""


class HtmlCertificateRenderer:

    def __init__(self, output_dir: str, public_base_path: str = "/certificates") -> None:
        self.output_dir = Path(output_dir)
        self.public_base_path = public_base_path.rstrip("/")

    @staticmethod
    def certificate_number(purchase_id: int, issued: datetime) -> str:
        return f"CERT-{issued:%Y%m%d}-{purchase_id:06d}"

    def _write(self, filename: str, content: str) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        (self.output_dir / filename).write_text(content, encoding="utf-8")

    async def render(self, *, purchase_id: int, subject: Subject, test: Test, result: TestResult) -> str:
        issued = datetime.now(timezone.utc)
        number = self.certificate_number(purchase_id, issued)
        content = _TEMPLATE.format(
            name=html.escape(subject.name),
            test=html.escape(test.title),
            score=f"{result.score_percentage:.2f}",
            rating=html.escape(result.rating),
            number=number,
            issued=issued.strftime("%d %B %Y"),
        )
        filename = f"{number}.html"
        await asyncio.to_thread(self._write, filename, content)
        logger.info("certificate_rendered", purchase_id=purchase_id, file=filename)
        return f"{self.public_base_path}/{filename}"

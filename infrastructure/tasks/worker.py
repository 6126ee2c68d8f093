"""Run a worker for both queues with the reconciliation beat embedded.

Production normally runs ``celery -A infrastructure.tasks worker`` and a
separate ``celery beat``; this is the single-process variant for local use.
"""
from __future__ import annotations

from core.logging_config import get_logger

from .config.celery import celery_app

logger = get_logger(__name__)

QUEUES = ("default", "payments")


def worker_argv(*, beat: bool = True, concurrency: int = 2) -> list[str]:
    argv = [
        "worker",
        "--hostname=assessment-payments@%h",
        f"--queues={','.join(QUEUES)}",
        f"--concurrency={concurrency}",
        "--loglevel=INFO",
    ]
    if beat:
        argv.append("--beat")
    return argv


def main() -> None:
    argv = worker_argv()
    logger.info("celery_worker_starting", argv=argv)
    celery_app.worker_main(argv=argv)


if __name__ == "__main__":
    main()

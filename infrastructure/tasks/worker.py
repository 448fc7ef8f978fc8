"""Convenience entry point for running a Celery worker with beat embedded.

Deployments normally invoke the Celery CLI; this keeps a single-process
runner for local use and Procfile-style setups.
"""
from __future__ import annotations

from .config.celery import celery_app


def main() -> None:
    celery_app.worker_main(
        argv=["worker", "--beat", "--loglevel=INFO", "--hostname=worker@%h", "-Q", "high,default,low"]
    )


if __name__ == "__main__":
    main()

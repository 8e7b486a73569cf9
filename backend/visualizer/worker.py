"""Temporal worker hosting the visualization activities.

    python -m visualizer.worker      (or the ``visualizer-worker`` script)

Only activities run here. The workflow that schedules them lives in the
calling application and reaches this worker through ``TEMPORAL_TASK_QUEUE``.
"""

from __future__ import annotations

import asyncio
import sys
from datetime import timedelta
from typing import Any

import structlog
from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter
from temporalio.worker import Worker

from visualizer.activities.visualize import (
    analyze_visualization_photo,
    generate_visualization,
    get_capabilities,
)
from visualizer.config import settings
from visualizer.logging import configure_logging

logger = structlog.get_logger()

ACTIVITIES = [analyze_visualization_photo, generate_visualization]


async def create_temporal_client() -> Client:
    """Client with the pydantic converter; TLS and API key when ``TEMPORAL_API_KEY`` is set."""
    options: dict[str, Any] = {
        "namespace": settings.temporal_namespace,
        "data_converter": pydantic_data_converter,
    }
    if settings.temporal_api_key:
        options.update(tls=True, api_key=settings.temporal_api_key)
    return await Client.connect(settings.temporal_address, **options)


def build_worker(client: Client) -> Worker:
    # Each generate_visualization fans out into several image-model calls, so
    # the activity slot count is the real bound on provider concurrency.
    return Worker(
        client,
        task_queue=settings.temporal_task_queue,
        activities=ACTIVITIES,
        max_concurrent_activities=settings.worker_max_concurrent_activities,
        graceful_shutdown_timeout=timedelta(seconds=settings.worker_shutdown_grace_seconds),
    )


async def run_worker() -> None:
    """Connect, build the provider capabilities, and poll until interrupted."""
    try:
        client = await create_temporal_client()
    except Exception:
        logger.exception(
            "worker_connection_failed",
            address=settings.temporal_address,
            namespace=settings.temporal_namespace,
        )
        raise

    # Provider clients are built before polling so a bad config fails at startup
    get_capabilities()
    worker = build_worker(client)

    logger.info(
        "worker_started",
        address=settings.temporal_address,
        task_queue=settings.temporal_task_queue,
        max_concurrent_activities=settings.worker_max_concurrent_activities,
    )
    await worker.run()
    logger.info("worker_stopped")


def main() -> None:
    configure_logging()
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        pass
    except Exception:
        logger.exception("worker_fatal_error")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""
Temporal worker that hosts the notification workflow and its activities.
"""

import asyncio
import logging
import os

from temporalio.client import Client
from temporalio.contrib.pydantic import pydantic_data_converter
from temporalio.service import RPCError
from temporalio.worker import Worker

from pharmacy.repos.temporal.activities import TemporalNotificationSender
from pharmacy.repos.temporal.notifier import DEFAULT_TASK_QUEUE
from pharmacy.workflow import NotificationDispatchWorkflow

logger = logging.getLogger(__name__)

DEFAULT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging() -> None:
    """Configure logging based on environment variables"""
    log_level = os.environ.get("LOG_LEVEL", "INFO").upper()
    log_format = os.environ.get("LOG_FORMAT", DEFAULT_LOG_FORMAT)

    numeric_level = getattr(logging, log_level, None)
    if not isinstance(numeric_level, int):
        print(f"Invalid log level: {log_level}, defaulting to INFO")
        numeric_level = logging.INFO

    logging.basicConfig(level=numeric_level, format=log_format, force=True)

    logger.info(
        "Logging configured",
        extra={"log_level": log_level, "numeric_level": numeric_level},
    )


async def get_temporal_client_with_retries(
    endpoint: str, attempts: int = 10, delay: int = 5
) -> Client:
    """Attempt to connect to Temporal with retries."""
    for attempt in range(attempts):
        try:
            client = await Client.connect(
                endpoint,
                data_converter=pydantic_data_converter,
                namespace="default",
            )
            logger.info(
                "Successfully connected to Temporal",
                extra={"endpoint": endpoint, "attempt": attempt + 1},
            )
            return client
        except RPCError as e:
            logger.warning(
                "Failed to connect to Temporal",
                extra={
                    "endpoint": endpoint,
                    "attempt": attempt + 1,
                    "max_attempts": attempts,
                    "error": str(e),
                    "retry_in_seconds": delay,
                },
            )
            if attempt + 1 == attempts:
                logger.error(
                    "All connection attempts to Temporal failed",
                    extra={"endpoint": endpoint, "total_attempts": attempts},
                )
                raise
            await asyncio.sleep(delay)

    raise RuntimeError("Failed to connect to Temporal after all attempts")


async def run_worker() -> None:
    """Run the notification worker until interrupted"""
    setup_logging()

    temporal_endpoint = os.environ.get("TEMPORAL_ENDPOINT", "temporal:7233")
    task_queue = os.environ.get("NOTIFICATION_TASK_QUEUE", DEFAULT_TASK_QUEUE)
    logger.info(
        "Starting notification worker",
        extra={"temporal_endpoint": temporal_endpoint, "task_queue": task_queue},
    )

    client = await get_temporal_client_with_retries(temporal_endpoint)

    sender = TemporalNotificationSender()
    activities = [sender.send_email, sender.send_sms]

    worker = Worker(
        client,
        task_queue=task_queue,
        workflows=[NotificationDispatchWorkflow],
        activities=activities,  # type: ignore[arg-type]
    )
    logger.info(
        "Worker created",
        extra={"task_queue": task_queue, "activity_count": len(activities)},
    )
    await worker.run()


if __name__ == "__main__":
    asyncio.run(run_worker())

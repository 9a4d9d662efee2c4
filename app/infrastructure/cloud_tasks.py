"""Cloud Tasks client wrapper for scheduling forwarding attempts."""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any

from google.cloud import tasks_v2
from google.protobuf import duration_pb2, timestamp_pb2

from app.settings import settings


class CloudTasksClient:
    """Creates HTTP tasks on the forwarding queue."""

    def __init__(self) -> None:
        self.client = tasks_v2.CloudTasksClient()
        self.queue_path = self.client.queue_path(
            settings.gcp_project_id,
            settings.cloud_tasks_location,
            settings.cloud_tasks_queue_name,
        )

    def create_task(
        self,
        payload: dict[str, Any],
        url: str,
        delay_seconds: float = 0,
    ) -> str:
        """Create an HTTP POST task.

        Args:
            payload: Task payload (will be JSON serialized)
            url: Worker URL the task is delivered to
            delay_seconds: Delay before the task becomes due

        Returns:
            Task name/path
        """
        task: dict[str, Any] = {
            "http_request": {
                "http_method": tasks_v2.HttpMethod.POST,
                "url": url,
                "headers": {"Content-Type": "application/json"},
                "body": json.dumps(payload).encode(),
            },
            # Worker must finish the outbound POST well within this
            "dispatch_deadline": duration_pb2.Duration(
                seconds=int(settings.forwarding_timeout_seconds) + 30
            ),
        }

        if delay_seconds > 0:
            schedule_time = datetime.now(timezone.utc) + timedelta(seconds=delay_seconds)
            timestamp = timestamp_pb2.Timestamp()
            timestamp.FromDatetime(schedule_time)
            task["schedule_time"] = timestamp

        response = self.client.create_task(
            request={
                "parent": self.queue_path,
                "task": task,
            }
        )
        return response.name

    async def create_task_async(
        self,
        payload: dict[str, Any],
        url: str,
        delay_seconds: float = 0,
    ) -> str:
        """Create a task without blocking the event loop (sync client in an executor)."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            self.create_task,
            payload,
            url,
            delay_seconds,
        )

# campus/email/worker.py
"""
Consumer side of the email queue.

The worker drains ``email_queue_high`` before ``email_queue``. A popped job is
moved atomically onto ``email_processing`` while it is delivered and removed
from there once it is sent or rescheduled. Failed jobs are wrapped as
``{"job": ..., "scheduledAt": ...}`` on ``email_retry`` with exponential
backoff and go back to their lane once due. Every outcome is recorded on
the capped ``email_logs`` list.
"""

import asyncio
import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import redis.asyncio as redis
from pydantic import ValidationError

from campus.core.config import settings
from campus.email.schemas import EmailJob, parse_timestamp

logger = logging.getLogger(__name__)


class EmailWorker:
    def __init__(
        self,
        redis_client: redis.Redis,
        sender,
        max_retries: Optional[int] = None,
        retry_delay: Optional[int] = None,
        poll_timeout: Optional[int] = None,
        retry_interval: Optional[int] = None,
    ):
        self.redis_client = redis_client
        self.sender = sender
        self.max_retries = settings.EMAIL_WORKER_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = settings.EMAIL_WORKER_RETRY_DELAY if retry_delay is None else retry_delay
        self.poll_timeout = poll_timeout or settings.EMAIL_WORKER_POLL_TIMEOUT
        self.retry_interval = retry_interval or settings.EMAIL_WORKER_RETRY_INTERVAL
        self.high_priority_check = settings.EMAIL_WORKER_HIGH_PRIORITY_CHECK

        self.queue_name = settings.EMAIL_QUEUE_NAME
        self.high_priority_queue_name = settings.EMAIL_QUEUE_HIGH_NAME
        self.processing_queue_name = settings.EMAIL_PROCESSING_NAME
        self.retry_queue_name = settings.EMAIL_RETRY_NAME
        self.log_name = settings.EMAIL_LOG_NAME
        self.log_limit = settings.EMAIL_LOG_LIMIT

        self.is_running = False

    def lane_for(self, job: EmailJob) -> str:
        return self.high_priority_queue_name if job.is_high_priority else self.queue_name

    async def run(self) -> None:
        """Consume until ``stop()`` is called."""
        loop = asyncio.get_running_loop()
        self.is_running = True
        next_retry_sweep = loop.time() + self.retry_interval
        logger.info("Email worker is running and listening for jobs")

        while self.is_running:
            try:
                await self.process_next()

                if loop.time() >= next_retry_sweep:
                    await self.process_retries()
                    next_retry_sweep = loop.time() + self.retry_interval
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error processing email queue: {e}")
                await asyncio.sleep(self.poll_timeout)

        logger.info("Email worker stopped")

    def stop(self) -> None:
        logger.info("Stopping email worker...")
        self.is_running = False

    async def process_next(self, timeout: Optional[int] = None) -> bool:
        """
        Take one job (high lane first) and deliver it.

        Returns False when both lanes stayed empty for ``timeout`` seconds.
        """
        raw = await self._take_next(self.poll_timeout if timeout is None else timeout)
        if raw is None:
            return False

        try:
            job = EmailJob.from_wire(raw)
        except ValidationError as e:
            logger.error(f"Dropping malformed email job: {e}")
            await self.redis_client.lrem(self.processing_queue_name, 1, raw)
            await self.log_result(None, "failed", {"error": str(e), "payload": raw})
            return True

        await self.deliver(job, raw)
        return True

    async def _take_next(self, timeout: float) -> Optional[str]:
        # Block on the normal lane in short slices so the high lane is
        # re-checked at least every high_priority_check seconds.
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            raw = await self.redis_client.lmove(
                self.high_priority_queue_name, self.processing_queue_name, "RIGHT", "LEFT"
            )
            if raw is not None:
                return raw

            remaining = deadline - loop.time()
            if remaining <= 0:
                # BLMOVE with a zero timeout would block forever
                return await self.redis_client.lmove(
                    self.queue_name, self.processing_queue_name, "RIGHT", "LEFT"
                )

            wait = min(self.high_priority_check, remaining)
            raw = await self.redis_client.blmove(
                self.queue_name, self.processing_queue_name, wait, "RIGHT", "LEFT"
            )
            if raw is not None or wait >= remaining:
                return raw

    async def deliver(self, job: EmailJob, raw: str) -> bool:
        logger.info(f"Processing email job: {job.id} to {', '.join(job.recipients)}")
        try:
            # smtplib blocks, keep it off the event loop
            message_id = await asyncio.to_thread(self.sender.send, job)
        except Exception as exc:
            logger.error(f"Failed to send email {job.id}: {type(exc).__name__}: {exc}")
            await self.handle_failure(job, raw, exc)
            return False

        await self.redis_client.lrem(self.processing_queue_name, 1, raw)
        await self.log_result(job.id, "success", {"messageId": message_id})
        logger.info(f"Email sent successfully: {job.id}")
        return True

    async def handle_failure(self, job: EmailJob, raw: str, exc: Exception) -> None:
        try:
            retry_count = int(job.metadata.get("retryCount", 0)) + 1
            now = datetime.now(timezone.utc)
            job.metadata = {
                **job.metadata,
                "retryCount": retry_count,
                "lastError": str(exc),
                "lastAttempt": now.isoformat(),
            }

            if retry_count <= self.max_retries:
                delay = self.retry_delay * (2 ** (retry_count - 1))
                envelope = {
                    "job": json.loads(job.to_wire()),
                    "scheduledAt": (now + timedelta(seconds=delay)).isoformat(),
                }
                await self.redis_client.lpush(self.retry_queue_name, json.dumps(envelope))
                logger.warning(
                    f"Retrying email job {job.id} in {delay} seconds "
                    f"(attempt {retry_count}/{self.max_retries})"
                )
            else:
                logger.critical(
                    f"Email job {job.id} failed permanently after {self.max_retries} retries"
                )
                await self.log_result(
                    job.id, "failed", {"error": str(exc), "retryCount": retry_count}
                )

            await self.redis_client.lrem(self.processing_queue_name, 1, raw)
        except Exception as e:
            logger.error(f"Error handling failure of email job {job.id}: {e}")

    async def process_retries(self) -> int:
        """Requeue due retries onto their lane; returns how many were moved."""
        entries = await self.redis_client.lrange(self.retry_queue_name, 0, -1)
        now = datetime.now(timezone.utc)
        moved = 0

        for entry in entries:
            try:
                envelope = json.loads(entry)
                due = parse_timestamp(envelope["scheduledAt"])
                if due.tzinfo is None:
                    due = due.replace(tzinfo=timezone.utc)
                job = EmailJob.model_validate(envelope["job"])
            except (ValueError, KeyError, TypeError) as e:
                # pydantic's ValidationError is a ValueError
                logger.error(f"Dropping malformed retry entry: {e}")
                await self.redis_client.lrem(self.retry_queue_name, 1, entry)
                continue

            if due > now:
                continue

            # only the worker that removed the entry requeues it
            if await self.redis_client.lrem(self.retry_queue_name, 1, entry):
                await self.redis_client.rpush(self.lane_for(job), job.to_wire())
                moved += 1

        if moved:
            logger.info(f"Requeued {moved} email job(s) for retry")
        return moved

    async def log_result(self, job_id: Optional[str], status: str, details: Dict[str, Any]) -> None:
        entry = {
            "jobId": job_id,
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": details,
        }
        try:
            await self.redis_client.lpush(self.log_name, json.dumps(entry, default=str))
            await self.redis_client.ltrim(self.log_name, 0, self.log_limit - 1)
        except Exception as e:
            logger.error(f"Error logging email result for {job_id}: {e}")

# campus/email/queue.py
"""
Redis-backed email queue.

Jobs are JSON documents pushed to the head of one of two lists, the "lanes":
``email_queue`` for low/normal priority and ``email_queue_high`` for high
priority. Consumers pop from the tail, so each lane is FIFO. Lanes are never
merged here; a consumer that wants strict priority drains the high lane
first (see ``campus.email.worker``).
"""

import hashlib
import logging
import re
from datetime import datetime, timezone
from typing import Optional, Union

import redis.asyncio as redis

from campus.core.config import settings
from campus.email import templates
from campus.email.schemas import EmailJob, QueueStats, generate_job_id, parse_timestamp

logger = logging.getLogger(__name__)


class EmailQueueError(Exception):
    """Base exception for email queue operations"""
    pass


class QueueNotConnectedError(EmailQueueError):
    def __init__(self):
        super().__init__("Email queue is not connected, call connect() first")


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _slug(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


class EmailQueueService:
    """
    Producer side of the email queue.

    One instance owns one Redis connection; create it at process start,
    ``connect()`` it, share it, and ``disconnect()`` on shutdown.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        queue_name: Optional[str] = None,
        high_priority_queue_name: Optional[str] = None,
    ):
        self.redis_url = redis_url or settings.REDIS_URL
        self.queue_name = queue_name or settings.EMAIL_QUEUE_NAME
        self.high_priority_queue_name = high_priority_queue_name or settings.EMAIL_QUEUE_HIGH_NAME
        self.redis_client: Optional[redis.Redis] = None

    @property
    def is_connected(self) -> bool:
        return self.redis_client is not None

    async def connect(self) -> None:
        if self.redis_client is not None:
            return

        client = redis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_keepalive=True,
            health_check_interval=settings.REDIS_HEALTH_CHECK_INTERVAL,
        )
        try:
            await client.ping()
        except Exception as e:
            logger.error(f"Failed to connect to Redis (email queue): {e}")
            await client.aclose()
            raise

        self.redis_client = client
        logger.info("Email queue service connected to Redis")

    async def disconnect(self) -> None:
        if self.redis_client is None:
            return
        client, self.redis_client = self.redis_client, None
        await client.aclose()
        logger.info("Email queue service disconnected from Redis")

    def _require_client(self) -> redis.Redis:
        if self.redis_client is None:
            raise QueueNotConnectedError()
        return self.redis_client

    def lane_for(self, job: EmailJob) -> str:
        return self.high_priority_queue_name if job.is_high_priority else self.queue_name

    async def enqueue(self, job: EmailJob) -> str:
        """
        Push a job onto its priority lane and return the job id.

        Missing ids are generated and ``metadata.createdAt`` is stamped;
        other metadata keys are kept. Any Redis error is raised to the caller.
        """
        try:
            client = self._require_client()

            if not job.id:
                job.id = generate_job_id()
            job.metadata = {**job.metadata, "createdAt": _utcnow_iso()}

            lane = self.lane_for(job)
            await client.lpush(lane, job.to_wire())
        except Exception as e:
            logger.error(f"Failed to add email job to queue: {e}")
            raise

        logger.info(f"Email job added to {lane}: {job.id} - {job.subject}")
        return job.id

    async def queue_depth(self) -> int:
        """Jobs waiting in both lanes; 0 when Redis cannot be read."""
        try:
            client = self._require_client()
            normal = await client.llen(self.queue_name)
            high = await client.llen(self.high_priority_queue_name)
            return normal + high
        except Exception as e:
            logger.error(f"Failed to get queue length: {e}")
            return 0

    async def queue_stats(self) -> Optional[QueueStats]:
        try:
            client = self._require_client()
            normal = await client.llen(self.queue_name)
            high = await client.llen(self.high_priority_queue_name)
            processing = await client.llen(settings.EMAIL_PROCESSING_NAME)
            retry = await client.llen(settings.EMAIL_RETRY_NAME)
        except Exception as e:
            logger.error(f"Failed to get queue stats: {e}")
            return None

        return QueueStats(
            depth=normal + high,
            normal=normal,
            high=high,
            processing=processing,
            retry=retry,
            timestamp=datetime.now(timezone.utc),
        )

    # Helper methods for common email types

    async def send_welcome_email(self, user_email: str, user_name: str) -> str:
        rendered = templates.render_welcome(user_name)
        job = EmailJob(
            id=f"welcome_{int(datetime.now(timezone.utc).timestamp() * 1000)}",
            to=user_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            priority="normal",
            metadata={"type": "welcome", "userName": user_name},
        )
        return await self.enqueue(job)

    async def send_application_status_email(
        self,
        user_email: str,
        user_name: str,
        status: str,
        application_id: str,
    ) -> str:
        rendered = templates.render_application_status(user_name, status, application_id)
        job = EmailJob(
            id=f"application_status_{application_id}",
            to=user_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            priority="normal",
            metadata={
                "type": "application_status",
                "applicationId": application_id,
                "status": status,
            },
        )
        return await self.enqueue(job)

    async def send_exam_notification_email(
        self,
        user_email: str,
        user_name: str,
        exam_name: str,
        exam_date: Union[datetime, str],
    ) -> str:
        when = parse_timestamp(exam_date)
        rendered = templates.render_exam_notification(user_name, exam_name, when)
        job = EmailJob(
            # one reminder per exam sitting and recipient
            id=f"exam_notification_{_slug(exam_name)}_{when:%Y%m%d%H%M}_{user_email.lower()}",
            to=user_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            priority="high",
            metadata={
                "type": "exam_notification",
                "examName": exam_name,
                "examDate": when.isoformat(),
            },
        )
        return await self.enqueue(job)

    async def send_password_reset_email(self, user_email: str, reset_token: str) -> str:
        reset_url = f"{settings.FRONTEND_URL.rstrip('/')}/reset-password?token={reset_token}"
        token_hash = hashlib.sha256(reset_token.encode("utf-8")).hexdigest()[:16]
        rendered = templates.render_password_reset(reset_url)
        job = EmailJob(
            id=f"password_reset_{token_hash}",
            to=user_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            priority="high",
            metadata={"type": "password_reset", "tokenHash": token_hash},
        )
        return await self.enqueue(job)

    async def send_application_submitted_email(
        self,
        user_email: str,
        user_name: str,
        application_id: str,
    ) -> str:
        rendered = templates.render_application_submitted(user_name, application_id)
        job = EmailJob(
            id=f"app_submitted_{application_id}",
            to=user_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            priority="normal",
            metadata={
                "type": "application_submitted",
                "applicationId": application_id,
                "userId": user_email,
            },
        )
        return await self.enqueue(job)

    async def send_payment_verification_email(
        self,
        user_email: str,
        user_name: str,
        payment_id: str,
        status: str,
        amount: float,
        currency: str,
        payment_type: str,
        notes: Optional[str] = None,
    ) -> str:
        rendered = templates.render_payment_verification(
            user_name, payment_id, status, amount, currency, notes
        )
        job = EmailJob(
            id=f"payment_{status.lower()}_{payment_id}",
            to=user_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            # verified payments use the high lane
            priority="high" if status == "VERIFIED" else "normal",
            metadata={
                "type": "payment_verification",
                "paymentId": payment_id,
                "status": status,
                "amount": amount,
                "currency": currency,
                "paymentType": payment_type,
                "userId": user_email,
            },
        )
        return await self.enqueue(job)

    async def send_placement_notification_email(
        self,
        user_email: str,
        user_name: str,
        placement_id: str,
        title: str,
        company_name: str,
        position: str,
        description: str = "",
        package_offered: Optional[str] = None,
        location: Optional[str] = None,
        application_deadline: Optional[Union[datetime, str]] = None,
        cgpa_criteria: Optional[float] = None,
        user_cgpa: Optional[float] = None,
    ) -> str:
        deadline = parse_timestamp(application_deadline) if application_deadline else None
        rendered = templates.render_placement_notification(
            user_name,
            title,
            company_name,
            position,
            description=description,
            package_offered=package_offered,
            location=location,
            application_deadline=deadline,
            cgpa_criteria=cgpa_criteria,
            user_cgpa=user_cgpa,
        )
        job = EmailJob(
            id=f"placement_notification_{placement_id}_{user_email.lower()}",
            to=user_email,
            subject=rendered.subject,
            html=rendered.html,
            text=rendered.text,
            priority="normal",
            metadata={
                "type": "placement_notification",
                "placementId": placement_id,
                "userId": user_email,
                "cgpaCriteria": cgpa_criteria,
            },
        )
        return await self.enqueue(job)

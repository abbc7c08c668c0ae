import asyncio
import json
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, patch

from campus.email.queue import EmailQueueService, QueueNotConnectedError
from campus.email.schemas import EmailJob


@pytest.fixture
async def queue(fake_redis):
    """Connected queue service backed by the in-memory Redis"""
    with patch("redis.asyncio.from_url", return_value=fake_redis):
        service = EmailQueueService()
        await service.connect()
    yield service
    await service.disconnect()


def queued(fake_redis, lane):
    return [json.loads(raw) for raw in fake_redis.lists.get(lane, [])]


class TestConnection:

    async def test_connect_failure_is_raised(self):
        broken = AsyncMock()
        broken.ping.side_effect = ConnectionError("redis unreachable")

        with patch("redis.asyncio.from_url", return_value=broken):
            service = EmailQueueService(redis_url="redis://nowhere:6379")
            with pytest.raises(ConnectionError):
                await service.connect()

        assert not service.is_connected
        broken.aclose.assert_awaited_once()

    async def test_connect_uses_configured_url(self, fake_redis):
        with patch("redis.asyncio.from_url", return_value=fake_redis) as from_url:
            service = EmailQueueService(redis_url="redis://queue-host:6380/2")
            await service.connect()
            await service.connect()

        from_url.assert_called_once()
        assert from_url.call_args.args[0] == "redis://queue-host:6380/2"
        assert service.is_connected

    async def test_disconnect_is_idempotent(self, fake_redis):
        service = EmailQueueService()
        await service.disconnect()

        with patch("redis.asyncio.from_url", return_value=fake_redis):
            await service.connect()
        await service.disconnect()
        await service.disconnect()

        assert fake_redis.closed
        assert not service.is_connected


class TestEnqueue:

    async def test_generates_missing_id(self, queue, fake_redis):
        job_id = await queue.enqueue(EmailJob(to="a@b.com", subject="Hi", text="Hello"))

        assert job_id
        assert job_id.startswith("email_")
        [stored] = queued(fake_redis, "email_queue")
        assert stored["id"] == job_id

    async def test_keeps_caller_id(self, queue, fake_redis):
        job_id = await queue.enqueue(EmailJob(id="custom-1", to="a@b.com", subject="Hi", text="Hello"))

        assert job_id == "custom-1"

    @pytest.mark.parametrize("priority, lane", [
        ("high", "email_queue_high"),
        ("normal", "email_queue"),
        ("low", "email_queue"),
        (None, "email_queue"),
    ])
    async def test_lane_follows_priority(self, queue, fake_redis, priority, lane):
        await queue.enqueue(EmailJob(to="a@b.com", subject="Hi", text="Hello", priority=priority))

        assert await fake_redis.llen(lane) == 1
        assert await queue.queue_depth() == 1

    async def test_created_at_merged_into_metadata(self, queue, fake_redis):
        job = EmailJob(to="a@b.com", subject="Hi", text="Hello", metadata={"type": "custom", "userId": "u1"})
        await queue.enqueue(job)

        [stored] = queued(fake_redis, "email_queue")
        assert stored["metadata"]["type"] == "custom"
        assert stored["metadata"]["userId"] == "u1"
        datetime.fromisoformat(stored["metadata"]["createdAt"])

    async def test_wire_format(self, queue, fake_redis):
        await queue.enqueue(EmailJob.model_validate({
            "to": ["a@b.com", "c@d.com"],
            "from": "Registrar <registrar@campus.edu>",
            "subject": "Timetable",
            "html": "<p>See attached</p>",
            "scheduledAt": "2025-01-10T09:00:00+00:00",
            "attachments": [{"filename": "t.txt", "content": "mon: maths", "contentType": "text/plain"}],
        }))

        [stored] = queued(fake_redis, "email_queue")
        assert stored["to"] == ["a@b.com", "c@d.com"]
        assert stored["from"] == "Registrar <registrar@campus.edu>"
        assert stored["scheduledAt"].startswith("2025-01-10T09:00:00")
        assert stored["attachments"][0]["contentType"] == "text/plain"
        assert "text" not in stored
        assert "priority" not in stored

    async def test_development_domains_and_display_names_accepted(self, queue, fake_redis):
        await queue.enqueue(EmailJob(
            to=["student@campus.local", "QA Team <qa@school.test>"],
            subject="Hi",
            text="Hello",
        ))

        [stored] = queued(fake_redis, "email_queue")
        assert stored["to"] == ["student@campus.local", "QA Team <qa@school.test>"]

    async def test_newest_job_pushed_to_head(self, queue, fake_redis):
        await queue.enqueue(EmailJob(id="first", to="a@b.com", subject="1", text="1"))
        await queue.enqueue(EmailJob(id="second", to="a@b.com", subject="2", text="2"))

        assert [job["id"] for job in queued(fake_redis, "email_queue")] == ["second", "first"]

    async def test_store_errors_propagate(self, queue, fake_redis):
        fake_redis.lpush = AsyncMock(side_effect=ConnectionError("connection reset"))

        with pytest.raises(ConnectionError):
            await queue.enqueue(EmailJob(to="a@b.com", subject="Hi", text="Hello"))

    async def test_requires_connection(self):
        with pytest.raises(QueueNotConnectedError):
            await EmailQueueService().enqueue(EmailJob(to="a@b.com", subject="Hi", text="Hello"))

    async def test_concurrent_enqueues_are_all_kept(self, queue):
        before = await queue.queue_depth()

        await asyncio.gather(
            queue.enqueue(EmailJob(id="job-a", to="a@b.com", subject="A", text="A")),
            queue.enqueue(EmailJob(id="job-b", to="b@b.com", subject="B", text="B", priority="high")),
        )

        assert await queue.queue_depth() == before + 2


class TestQueueDepth:

    async def test_sums_both_lanes(self, queue):
        for i in range(3):
            await queue.enqueue(EmailJob(to="a@b.com", subject=f"n{i}", text="n"))
        for i in range(2):
            await queue.enqueue(EmailJob(to="a@b.com", subject=f"h{i}", text="h", priority="high"))

        assert await queue.queue_depth() == 5

    async def test_zero_on_failure(self, queue, fake_redis):
        fake_redis.llen = AsyncMock(side_effect=ConnectionError("connection reset"))

        assert await queue.queue_depth() == 0

    async def test_zero_when_not_connected(self):
        assert await EmailQueueService().queue_depth() == 0

    async def test_stats(self, queue, fake_redis):
        await queue.enqueue(EmailJob(to="a@b.com", subject="n", text="n"))
        await queue.enqueue(EmailJob(to="a@b.com", subject="h", text="h", priority="high"))
        await fake_redis.lpush("email_retry", "{}")

        stats = await queue.queue_stats()

        assert stats.depth == 2
        assert stats.normal == 1
        assert stats.high == 1
        assert stats.processing == 0
        assert stats.retry == 1


class TestBuilders:

    async def test_welcome_email(self, queue, fake_redis):
        job_id = await queue.send_welcome_email("a@b.com", "Jane")

        [stored] = queued(fake_redis, "email_queue")
        assert stored["id"] == job_id
        assert job_id.startswith("welcome_")
        assert stored["priority"] == "normal"
        assert "Welcome" in stored["subject"]
        assert "Jane" in stored["html"] and "Jane" in stored["text"]
        assert stored["metadata"]["type"] == "welcome"
        assert stored["metadata"]["userName"] == "Jane"

    async def test_application_status_email_has_deterministic_id(self, queue, fake_redis):
        first = await queue.send_application_status_email("a@b.com", "Jane", "APPROVED", "app-42")
        second = await queue.send_application_status_email("a@b.com", "Jane", "APPROVED", "app-42")

        assert first == second == "application_status_app-42"
        stored = queued(fake_redis, "email_queue")[0]
        assert stored["subject"] == "Application Status Update - APPROVED"
        assert stored["metadata"] == {
            "type": "application_status",
            "applicationId": "app-42",
            "status": "APPROVED",
            "createdAt": stored["metadata"]["createdAt"],
        }

    async def test_exam_notification_is_high_priority(self, queue, fake_redis):
        job_id = await queue.send_exam_notification_email(
            "a@b.com", "Jane", "Data Structures", "2025-05-12T09:30:00"
        )

        assert job_id == "exam_notification_data-structures_202505120930_a@b.com"
        [stored] = queued(fake_redis, "email_queue_high")
        assert stored["priority"] == "high"
        assert stored["subject"] == "Exam Notification - Data Structures"
        assert "12 May 2025" in stored["text"]
        assert stored["metadata"]["type"] == "exam_notification"
        assert await fake_redis.llen("email_queue") == 0

    async def test_exam_date_with_utc_suffix(self, queue, fake_redis):
        job_id = await queue.send_exam_notification_email(
            "a@b.com", "Jane", "Data Structures", "2025-05-12T09:30:00.000Z"
        )

        assert job_id == "exam_notification_data-structures_202505120930_a@b.com"
        [stored] = queued(fake_redis, "email_queue_high")
        assert stored["metadata"]["examDate"] == "2025-05-12T09:30:00+00:00"

    async def test_password_reset_email(self, queue, fake_redis):
        with patch("campus.email.queue.settings.FRONTEND_URL", "https://portal.campus.edu/"):
            job_id = await queue.send_password_reset_email("a@b.com", "tok-123")

        again = await queue.send_password_reset_email("a@b.com", "tok-123")
        assert job_id == again
        assert job_id.startswith("password_reset_")
        assert "tok-123" not in job_id

        stored = queued(fake_redis, "email_queue_high")[-1]
        assert stored["priority"] == "high"
        assert "https://portal.campus.edu/reset-password?token=tok-123" in stored["text"]
        assert stored["metadata"]["type"] == "password_reset"

    async def test_payment_verification_lane(self, queue, fake_redis):
        await queue.send_payment_verification_email(
            "a@b.com", "Jane", "pay-1", "VERIFIED", 1500.0, "INR", "TUITION"
        )
        await queue.send_payment_verification_email(
            "a@b.com", "Jane", "pay-2", "REJECTED", 1500.0, "INR", "TUITION", notes="Blurry receipt"
        )

        [verified] = queued(fake_redis, "email_queue_high")
        [rejected] = queued(fake_redis, "email_queue")
        assert verified["id"] == "payment_verified_pay-1"
        assert verified["subject"] == "Payment Verified Successfully"
        assert rejected["subject"] == "Payment Verification Update"
        assert "Blurry receipt" in rejected["html"]

    async def test_application_submitted_and_placement(self, queue, fake_redis):
        await queue.send_application_submitted_email("a@b.com", "Jane", "app-7")
        await queue.send_placement_notification_email(
            "a@b.com",
            "Jane",
            "pl-3",
            title="Graduate Engineer",
            company_name="Acme",
            position="SDE-1",
            cgpa_criteria=3.0,
            user_cgpa=3.4,
        )

        placement, submitted = queued(fake_redis, "email_queue")
        assert submitted["metadata"]["type"] == "application_submitted"
        assert placement["subject"] == "New Placement Opportunity: Graduate Engineer at Acme"
        assert "Your CGPA: 3.4" in placement["text"]

"""
Email module for Campus ERP

This module provides email functionality including:
- A Redis-backed job queue with normal and high priority lanes
- Templated builders for the transactional emails
- A worker that delivers queued jobs over SMTP with retries

Usage:
    from campus.email import EmailQueueService

    queue = EmailQueueService()
    await queue.connect()

    # Queue a templated email
    await queue.send_welcome_email("user@example.com", "Jane")

    # Queue an arbitrary job
    await queue.enqueue(EmailJob(to="user@example.com", subject="Hi", text="Hello"))
"""

from .queue import EmailQueueError, EmailQueueService, QueueNotConnectedError
from .schemas import EmailAttachment, EmailJob

__all__ = [
    "EmailAttachment",
    "EmailJob",
    "EmailQueueError",
    "EmailQueueService",
    "QueueNotConnectedError",
]

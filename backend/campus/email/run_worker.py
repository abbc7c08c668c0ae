# campus/email/run_worker.py
"""
Run the email worker.

Usage: campus-email-worker   (or: python -m campus.email.run_worker)
"""

import asyncio
import logging
import signal

import redis.asyncio as redis

from campus.core.config import settings
from campus.email.sender import SmtpEmailSender
from campus.email.worker import EmailWorker

logger = logging.getLogger(__name__)


async def _run() -> None:
    redis_client = redis.from_url(
        settings.REDIS_URL,
        encoding="utf-8",
        decode_responses=True,
        socket_keepalive=True,
        health_check_interval=settings.REDIS_HEALTH_CHECK_INTERVAL,
    )
    try:
        await redis_client.ping()
        logger.info("Email worker connected to Redis")

        worker = EmailWorker(redis_client, SmtpEmailSender())

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, worker.stop)

        await worker.run()
    finally:
        await redis_client.aclose()


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    asyncio.run(_run())


if __name__ == "__main__":
    main()

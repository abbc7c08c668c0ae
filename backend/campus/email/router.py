# campus/email/router.py
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from campus.email.queue import EmailQueueService
from campus.email.schemas import QueueStats

router = APIRouter(tags=["email"])
logger = logging.getLogger(__name__)


def get_email_queue(request: Request) -> EmailQueueService:
    """The queue service created at application startup"""
    return request.app.state.email_queue


@router.get("/queue/depth")
async def read_queue_depth(queue: EmailQueueService = Depends(get_email_queue)):
    return {"depth": await queue.queue_depth()}


@router.get("/queue/stats", response_model=QueueStats)
async def read_queue_stats(queue: EmailQueueService = Depends(get_email_queue)):
    stats = await queue.queue_stats()
    if stats is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Email queue statistics are unavailable"
        )
    return stats

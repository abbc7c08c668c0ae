# campus/core/limiter.py
from fastapi import Request
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address


def client_and_student_key(request: Request) -> str:
    """Rate-limit per client address, and per student when the path names one"""
    address = get_remote_address(request)
    student_id = request.path_params.get("student_id")
    return f"{address}:{student_id}" if student_id else address


# Single limiter instance for the entire app
limiter = Limiter(key_func=client_and_student_key)

__all__ = [
    "limiter",
    "client_and_student_key",
    "_rate_limit_exceeded_handler",
]

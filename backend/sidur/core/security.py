from typing import Optional
from fastapi import Request

# Login and sessions live in front of this service; it only learns who acted
# from the headers the gateway forwards.
ACTOR_HEADER = "X-Username"
UNKNOWN_ACTOR = "Unknown"


def get_current_actor(request: Request) -> str:
    """Name of the dispatcher performing the request (used for activity logs)"""
    actor = request.headers.get(ACTOR_HEADER, "").strip()
    return actor or UNKNOWN_ACTOR


def get_client_ip(request: Request) -> Optional[str]:
    """Client IP, preferring the first X-Forwarded-For hop"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None

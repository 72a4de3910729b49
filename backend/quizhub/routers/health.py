from fastapi import APIRouter, HTTPException

from quizhub.core import redis_client
from quizhub.db import session as db_session

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/health/live")
def live():
    return {"status": "live"}


@router.get("/health/ready")
def ready():
    if not db_session.ping():
        raise HTTPException(status_code=503, detail="db not ready")

    try:
        redis_client.get_redis().ping()
    except Exception as e:
        raise HTTPException(status_code=503, detail="redis not ready") from e

    return {"status": "ready"}

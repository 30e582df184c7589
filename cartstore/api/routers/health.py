# cartstore/api/routers/health.py
from fastapi import APIRouter, HTTPException, Request
from redis.exceptions import RedisError

from cartstore.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health(request: Request):
    try:
        request.app.state.redis.ping()
    except RedisError as e:
        logger.error(f"Health check failed, Redis unreachable: {e}")
        raise HTTPException(status_code=503, detail="Service unhealthy")

    return {"status": "healthy", "service": "cart-service", "redis": "connected"}

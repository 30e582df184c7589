# cartstore/tasks/expire.py
from cartstore.celery_worker import celery_app
from cartstore.data.store import open_redis
from cartstore.repos.cart_repo import CartRepo
from cartstore.services.cart_service import CartService
from cartstore.utils.logging import get_logger

logger = get_logger(__name__)


def run_cleanup(service: CartService) -> int | None:
    """
    One sweep of expired carts.

    Errors are logged and swallowed; returns the number of deleted carts,
    or None when the run failed.
    """
    try:
        deleted = service.cleanup_expired_carts()
    except Exception as e:
        logger.error(f"Expired cart cleanup failed, will retry on next tick: {e}")
        return None

    logger.info(f"Expired cart cleanup finished, {deleted} carts deleted")
    return deleted


@celery_app.task(name="cartstore.tasks.expire.expire_carts_task")
def expire_carts_task():
    logger.info("Expire carts task started")

    try:
        with open_redis() as client:
            return run_cleanup(CartService(CartRepo(client)))
    except Exception as e:
        # redis unreachable when opening the pool
        logger.error(f"Expire carts task could not reach Redis: {e}")
        return None

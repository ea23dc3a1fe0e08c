import logging
from celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def notify_order_placed(self, order_id: int, shop_id: int, user_id: int) -> None:
    """Tell the shop a new order arrived. Delivery channel not wired yet, so log it."""
    logger.info("[notify] order %s placed at shop %s by user %s", order_id, shop_id, user_id)


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def notify_status_changed(self, order_id: int, user_id: int, status: str) -> None:
    """Tell the buyer their order moved to a new status."""
    logger.info("[notify] order %s for user %s is now %s", order_id, user_id, status)

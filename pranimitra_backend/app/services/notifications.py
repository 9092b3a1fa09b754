import logging

import requests

from app.core import config

logger = logging.getLogger(__name__)


def send_subscription_activated(user_id: int, plan_name: str) -> bool:
    """
    Hand a "subscription activated" notice to the notification service.

    Runs after the payment commit as a background task; any failure is
    logged and swallowed so it can never affect the reconciled payment.
    """
    payload = {"userId": user_id, "planName": plan_name}
    if not config.NOTIFICATION_SERVICE_URL:
        logger.info("Notification service not configured, skipping notice for user %s (%s)", user_id, plan_name)
        return False

    try:
        response = requests.post(
            config.NOTIFICATION_SERVICE_URL,
            json=payload,
            timeout=config.NOTIFICATION_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        logger.error("Failed to send activation notice for user %s: %s", user_id, e)
        return False

    logger.info("Activation notice sent for user %s (%s)", user_id, plan_name)
    return True

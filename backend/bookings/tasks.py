"""Celery tasks for job offer expiry."""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task
def expire_job_offer_task(offer_id: int):
    """
    Celery task to expire a job offer after its window closes.

    Scheduled when an offer is sent to a technician. If the technician
    hasn't responded, the offer is expired and the booking is offered
    to the next technician.
    """
    from services.matching import expire_offer_and_dispatch

    forwarded = expire_offer_and_dispatch(offer_id)
    logger.info("Expiry check for job offer %s done (forwarded=%s)", offer_id, forwarded)
    return forwarded


@shared_task
def sweep_expired_offers_task():
    """Periodic safety net for offers whose expiry task never ran."""
    from services.matching import process_offer_timeouts

    expired_count, dispatched_count = process_offer_timeouts()
    return {"expired": expired_count, "dispatched": dispatched_count}

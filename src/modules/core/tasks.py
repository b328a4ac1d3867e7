"""Background tasks owned by the core module."""

import structlog
from celery import shared_task

from modules.core.models import EventStatus, OutboxEvent
from shared.domain.events import event_from_payload
from shared.infrastructure.bus import event_bus

logger = structlog.get_logger(__name__)


@shared_task(name="core.publish_outbox_events")
def publish_outbox_events(batch_size: int = 100) -> dict:
    """Dispatch outbox rows through the in-process event bus.

    A handler error marks only that row as failed; it is retried on the next
    run until ``OutboxEvent.MAX_RETRIES`` is reached.
    """
    published = failed = skipped = 0
    events = OutboxEvent.objects.publishable(OutboxEvent.MAX_RETRIES)[:batch_size]

    for outbox_event in events:
        event = event_from_payload(outbox_event.event_type, outbox_event.payload)
        if event is None:
            outbox_event.mark_as_failed(f"Unknown event type {outbox_event.event_type}")
            skipped += 1
            continue
        try:
            event_bus.publish(event)
        except Exception as exc:  # handler failures are recorded and retried
            outbox_event.mark_as_failed(str(exc))
            failed += 1
            logger.warning(
                "outbox.publish_failed",
                event_id=str(outbox_event.id),
                event_type=outbox_event.event_type,
                error=str(exc),
            )
            continue
        outbox_event.mark_as_published()
        published += 1

    logger.info(
        "outbox.batch_processed",
        published=published,
        failed=failed,
        skipped=skipped,
        remaining=OutboxEvent.objects.filter(status=EventStatus.PENDING).count(),
    )
    return {"published": published, "failed": failed, "skipped": skipped}

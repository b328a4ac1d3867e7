"""Background tasks owned by the marketing module."""

from celery import shared_task

from modules.marketing.repositories.django_repository import CampaignDjangoRepository
from modules.marketing.services import CampaignService


@shared_task(name="marketing.send_campaign")
def send_campaign(campaign_id: str) -> dict:
    return CampaignService(CampaignDjangoRepository()).deliver(campaign_id)


@shared_task(name="marketing.send_scheduled_campaigns")
def send_scheduled_campaigns() -> int:
    """Deliver scheduled campaigns whose send time has passed."""
    return CampaignService(CampaignDjangoRepository()).send_due_campaigns()

"""Campaign provisioning: create → identity → details → content → audience → schedule.

Each step takes the identifier minted by an earlier step, so the order is carried
by the signatures. Nothing is caught here; a failing step stops the run and the
remote campaign stays at the last state reached.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .models import (
    CampaignAudience,
    CampaignDetails,
    CampaignId,
    CampaignIdentity,
    CreateCampaign,
    EmailMessageId,
    MjmlArchive,
)

if TYPE_CHECKING:
    from .client import LoopsClient

logger = logging.getLogger(__name__)


def create_step(client: LoopsClient, template_id: str) -> CampaignId:
    campaign_id = client.create_campaign_and_return_id(template_id)
    logger.info("campaign %s: created", campaign_id)
    return campaign_id


def identity_step(
    client: LoopsClient,
    campaign_id: CampaignId,
    identity: CampaignIdentity,
) -> EmailMessageId:
    email_message_id = client.update_campaign_emoji_and_name(
        campaign_id,
        emoji=identity.emoji,
        name=identity.name,
    )
    logger.info("campaign %s: identity set (email message %s)", campaign_id, email_message_id)
    return email_message_id


def details_step(
    client: LoopsClient,
    email_message_id: EmailMessageId,
    details: CampaignDetails,
) -> None:
    # Independent of each other, but sent one at a time.
    client.set_from_name(email_message_id, details.from_name)
    client.set_from_email_username(email_message_id, details.from_email_username)
    client.set_reply_to_email(email_message_id, details.reply_to_email)
    client.set_subject(email_message_id, details.subject)


def content_step(
    client: LoopsClient,
    email_message_id: EmailMessageId,
    archive: MjmlArchive,
) -> None:
    client.upload_mjml(email_message_id, archive)
    logger.info("email message %s: content set", email_message_id)


def audience_step(
    client: LoopsClient,
    campaign_id: CampaignId,
    audience: CampaignAudience,
) -> None:
    client.update_campaign_audience(
        campaign_id,
        audience_filter=audience.audience_filter,
        audience_segment_id=audience.audience_segment_id,
    )
    logger.info("campaign %s: audience set", campaign_id)


def schedule_step(client: LoopsClient, campaign_id: CampaignId) -> None:
    client.schedule_campaign_now(campaign_id)
    logger.info("campaign %s: scheduled", campaign_id)


def create_campaign(client: LoopsClient, campaign: CreateCampaign) -> CampaignId:
    """Provision a campaign without sending it.

    Not idempotent: every call mints a new campaign.
    """
    campaign_id = create_step(client, campaign.template_id)
    email_message_id = identity_step(client, campaign_id, campaign.identity())
    details_step(client, email_message_id, campaign.details())
    content_step(client, email_message_id, campaign.archive)
    audience_step(client, campaign_id, campaign.audience())
    return campaign_id


def create_and_send_campaign(client: LoopsClient, campaign: CreateCampaign) -> CampaignId:
    campaign_id = create_campaign(client, campaign)
    schedule_step(client, campaign_id)
    return campaign_id

from __future__ import annotations

from pathlib import Path
from typing import Any, NewType

from pydantic import BaseModel, ConfigDict, Field

CampaignId = NewType("CampaignId", str)
EmailMessageId = NewType("EmailMessageId", str)

# Loops' default blank template; identical across accounts and teams.
BLANK_TEMPLATE_ID = "ckxja0s6q0000yjr6vqouwn8a"

MJML_EDITOR = "MJML"
SCHEDULED_STATUS = "Scheduled"


class MjmlArchive(BaseModel):
    """A ZIP holding `index.mjml` plus the images it references.

    The bytes are passed through to blob storage untouched.
    """

    content: bytes
    content_type: str = "application/zip"
    filename: str = "index.zip"

    @classmethod
    def from_path(cls, path: Path, *, content_type: str = "application/zip") -> MjmlArchive:
        return cls(content=path.read_bytes(), content_type=content_type, filename=path.name)


class UploadTicket(BaseModel):
    """Returned by getPresignedMjmlUpload under result.data.json"""

    model_config = ConfigDict(populate_by_name=True)

    filename: str
    presigned_url: str = Field(alias="presignedUrl")


class CampaignIdentity(BaseModel):
    """Maps to PUT /campaigns/{campaign_id}"""

    # Only shown in the dashboard, never to recipients.
    emoji: str
    name: str


class CampaignAudience(BaseModel):
    """Maps to PUT /campaigns/{campaign_id}

    Both keys are always sent; the platform decides precedence when both are set.
    """

    audience_filter: dict[str, Any] | None = None
    audience_segment_id: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "audienceFilter": self.audience_filter,
            "audienceSegmentId": self.audience_segment_id,
        }


class CampaignDetails(BaseModel):
    """Maps to PUT /emailMessages/{email_message_id}/update (one field per call)"""

    from_name: str
    # Local part only; the domain comes from the Loops account.
    from_email_username: str
    # A full address, unlike from_email_username.
    reply_to_email: str
    subject: str


class CreateCampaign(CampaignIdentity, CampaignDetails, CampaignAudience):
    """Input for the full provisioning workflow.

    Orchestrates:
    - POST /campaigns/create
    - PUT /campaigns/{id} (emoji + name)
    - PUT /emailMessages/{id}/update (sender name, username, reply-to, subject)
    - MJML upload (editor type, presigned ticket, storage PUT, confirm)
    - PUT /campaigns/{id} (audience)
    """

    model_config = ConfigDict(extra="forbid")

    archive: MjmlArchive
    template_id: str = BLANK_TEMPLATE_ID

    def identity(self) -> CampaignIdentity:
        return CampaignIdentity(emoji=self.emoji, name=self.name)

    def details(self) -> CampaignDetails:
        return CampaignDetails(
            from_name=self.from_name,
            from_email_username=self.from_email_username,
            reply_to_email=self.reply_to_email,
            subject=self.subject,
        )

    def audience(self) -> CampaignAudience:
        return CampaignAudience(
            audience_filter=self.audience_filter,
            audience_segment_id=self.audience_segment_id,
        )

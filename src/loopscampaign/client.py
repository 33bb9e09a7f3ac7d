from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from . import workflow
from .config import Settings
from .models import (
    BLANK_TEMPLATE_ID,
    MJML_EDITOR,
    SCHEDULED_STATUS,
    CampaignAudience,
    CampaignId,
    EmailMessageId,
    MjmlArchive,
    UploadTicket,
)
from .utils.redact import redact_token, redact_url

if TYPE_CHECKING:
    from .models import CreateCampaign

logger = logging.getLogger(__name__)


class LoopsError(RuntimeError):
    pass


class ApiError(LoopsError):
    """The Loops API answered with a failure status or a `success: false` payload."""

    def __init__(
        self,
        message: str,
        *,
        method: str,
        path: str,
        status_code: int | None = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.method = method
        self.path = path
        self.status_code = status_code
        self.details = details


class AuthError(ApiError):
    pass


class UploadError(LoopsError):
    """The direct PUT to the presigned storage URL failed.

    Storage answers are not JSON, so unlike ApiError there is no payload.
    """

    def __init__(self, message: str, *, url: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class NetworkError(LoopsError):
    def __init__(self, message: str, *, method: str, path: str):
        super().__init__(message)
        self.method = method
        self.path = path


class LoopsClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._client = httpx.Client(
            base_url=self.settings.base_url,
            timeout=httpx.Timeout(self.settings.timeout_seconds),
            headers={
                "Cookie": self.settings.cookie,
                "Accept": "application/json",
            },
        )
        # Presigned uploads go straight to blob storage and must not carry the session cookie.
        self._storage = httpx.Client(timeout=httpx.Timeout(self.settings.timeout_seconds))
        logger.debug(
            "Loops client ready for %s (headers %s)",
            self.settings.base_url,
            self.debug_redacted_headers(),
        )

    def close(self) -> None:
        self._client.close()
        self._storage.close()

    def __enter__(self) -> LoopsClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def debug_redacted_headers(self) -> dict[str, str]:
        return {
            "Cookie": f"{self.settings.cookie_name}={redact_token(self.settings.session_token)}",
        }

    def request_json(
        self,
        method: str,
        path: str,
        *,
        json_body: Any | None = None,
    ) -> dict[str, Any]:
        method = method.upper()
        url = f"{self.settings.base_url}{path}"

        try:
            if json_body is None:
                resp = self._client.request(method, path)
            else:
                resp = self._client.request(
                    method,
                    path,
                    content=json.dumps(json_body),
                    headers={"Content-Type": "application/json"},
                )
        except httpx.TimeoutException as e:
            raise NetworkError(
                f"Network timeout calling Loops ({method} {path})", method=method, path=path
            ) from e
        except httpx.HTTPError as e:
            raise NetworkError(
                f"Network error calling Loops ({method} {path})", method=method, path=path
            ) from e

        request_id = resp.headers.get("x-request-id") or resp.headers.get("x-correlation-id")
        logger.debug("%s %s -> %s (request id %s)", method, url, resp.status_code, request_id)
        self._raise_for_status(resp, method=method, path=path)

        try:
            decoded = resp.json()
        except ValueError as e:
            # Login redirects and proxy pages come back as 200 HTML.
            raise ApiError(
                f"Malformed response: body is not JSON ({method} {path})",
                method=method,
                path=path,
                status_code=resp.status_code,
                details={"text": resp.text},
            ) from e
        data = decoded if isinstance(decoded, dict) else {"data": decoded}
        if data.get("success") is False:
            raise ApiError(
                f"Failed to send request: {data} ({method} {path})",
                method=method,
                path=path,
                status_code=resp.status_code,
                details=data,
            )
        return data

    def _raise_for_status(self, resp: httpx.Response, *, method: str, path: str) -> None:
        if resp.is_success:
            return
        if resp.status_code in (401, 403):
            raise AuthError(
                f"Auth failed ({resp.status_code}) ({method} {path}). "
                "The session token is missing or expired; set LOOPS_SESSION_TOKEN.",
                method=method,
                path=path,
                status_code=resp.status_code,
                details=_safe_json(resp),
            )
        raise ApiError(
            f"Failed to send request: {resp.reason_phrase} ({method} {path})",
            method=method,
            path=path,
            status_code=resp.status_code,
            details=_safe_json(resp),
        )

    # Campaign mutations

    def create_campaign_and_return_id(self, template_id: str = BLANK_TEMPLATE_ID) -> CampaignId:
        """Create a campaign from a template (blank by default) and return its id."""
        path = "/campaigns/create"
        raw = self.request_json("POST", path, json_body={"templateId": template_id})
        campaign_id = raw.get("campaignId")
        if not isinstance(campaign_id, str) or not campaign_id:
            raise ApiError(
                f"Malformed response: no campaignId (POST {path})",
                method="POST",
                path=path,
                details=raw,
            )
        return CampaignId(campaign_id)

    def update_campaign_emoji_and_name(
        self,
        campaign_id: CampaignId,
        *,
        emoji: str,
        name: str,
    ) -> EmailMessageId:
        """Set the dashboard emoji and name.

        The first call on a fresh campaign also creates its email message, and this
        response is the only place the platform discloses that message's id.
        """
        path = f"/campaigns/{campaign_id}"
        raw = self.request_json("PUT", path, json_body={"emoji": emoji, "name": name})
        try:
            email_message_id = raw["campaign"]["emailMessage"]["id"]
        except (KeyError, TypeError):
            email_message_id = None
        if not isinstance(email_message_id, str) or not email_message_id:
            raise ApiError(
                f"Malformed response: no campaign.emailMessage.id (PUT {path})",
                method="PUT",
                path=path,
                details=raw,
            )
        return EmailMessageId(email_message_id)

    def update_campaign_audience(
        self,
        campaign_id: CampaignId,
        *,
        audience_filter: dict[str, Any] | None,
        audience_segment_id: str | None,
    ) -> None:
        audience = CampaignAudience(
            audience_filter=audience_filter,
            audience_segment_id=audience_segment_id,
        )
        self.request_json("PUT", f"/campaigns/{campaign_id}", json_body=audience.to_payload())

    def set_scheduling_now(self, campaign_id: CampaignId) -> None:
        self.request_json(
            "PUT",
            f"/campaigns/{campaign_id}",
            json_body={"scheduling": {"method": "now"}},
        )

    def set_campaign_status(self, campaign_id: CampaignId, status: str) -> None:
        self.request_json("PUT", f"/campaigns/{campaign_id}", json_body={"status": status})

    def schedule_campaign_now(self, campaign_id: CampaignId) -> None:
        """Send the campaign immediately.

        Two separate calls; if the second fails the campaign stays configured for
        immediate sending without being marked Scheduled.
        """
        self.set_scheduling_now(campaign_id)
        self.set_campaign_status(campaign_id, SCHEDULED_STATUS)

    # Email message mutations

    def _update_email_message(self, email_message_id: EmailMessageId, payload: dict[str, Any]) -> None:
        self.request_json("PUT", f"/emailMessages/{email_message_id}/update", json_body=payload)

    def set_from_name(self, email_message_id: EmailMessageId, from_name: str) -> None:
        self._update_email_message(email_message_id, {"fromName": from_name})

    def set_from_email_username(
        self,
        email_message_id: EmailMessageId,
        from_email_username: str,
    ) -> None:
        """Set the local part of the sender address.

        With a Loops domain of `example.com`, `"news"` sends from `news@example.com`.
        """
        self._update_email_message(email_message_id, {"fromEmail": from_email_username})

    def set_reply_to_email(self, email_message_id: EmailMessageId, reply_to_email: str) -> None:
        self._update_email_message(email_message_id, {"replyToEmail": reply_to_email})

    def set_subject(self, email_message_id: EmailMessageId, subject: str) -> None:
        self._update_email_message(email_message_id, {"subject": subject})

    def set_editor_type(self, email_message_id: EmailMessageId, editor_type: str = MJML_EDITOR) -> None:
        self._update_email_message(email_message_id, {"editorType": editor_type})

    # MJML upload

    def get_presigned_mjml_upload(self, email_message_id: EmailMessageId) -> UploadTicket:
        path = "/trpc/emailMessages.getPresignedMjmlUpload"
        raw = self.request_json(
            "POST",
            path,
            json_body={"json": {"emailMessageId": email_message_id}},
        )
        try:
            return UploadTicket.model_validate(raw["result"]["data"]["json"])
        except (KeyError, TypeError, ValidationError) as e:
            raise ApiError(
                f"Malformed upload ticket (POST {path})",
                method="POST",
                path=path,
                details=raw,
            ) from e

    def put_presigned(self, ticket: UploadTicket, archive: MjmlArchive) -> None:
        safe_url = redact_url(ticket.presigned_url)
        try:
            resp = self._storage.put(
                ticket.presigned_url,
                content=archive.content,
                headers={"Content-Type": archive.content_type},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise UploadError(f"Failed to upload MJML to storage: {e} (PUT {safe_url})", url=safe_url) from e

        logger.debug("PUT %s -> %s", safe_url, resp.status_code)
        if not resp.is_success:
            raise UploadError(
                f"Failed to upload MJML to storage: {resp.reason_phrase} (PUT {safe_url})",
                url=safe_url,
                status_code=resp.status_code,
            )

    def confirm_mjml_upload(self, email_message_id: EmailMessageId, filename: str) -> None:
        self.request_json(
            "POST",
            f"/emailMessages/{email_message_id}/upload-mjml-zip",
            json_body={"filename": filename},
        )

    def upload_mjml(self, email_message_id: EmailMessageId, archive: MjmlArchive) -> None:
        """Replace the message content with an MJML zip.

        Switches the editor to MJML, asks for a presigned upload, PUTs the bytes to
        storage and confirms with the ticket's filename. Nothing is rolled back if a
        later phase fails.
        """
        self.set_editor_type(email_message_id, MJML_EDITOR)
        ticket = self.get_presigned_mjml_upload(email_message_id)
        self.put_presigned(ticket, archive)
        self.confirm_mjml_upload(email_message_id, ticket.filename)
        logger.debug("Uploaded %s (%d bytes) as %s", archive.filename, len(archive.content), ticket.filename)

    # Workflows

    def create_campaign(self, campaign: CreateCampaign) -> CampaignId:
        return workflow.create_campaign(self, campaign)

    def create_and_send_campaign(self, campaign: CreateCampaign) -> CampaignId:
        return workflow.create_and_send_campaign(self, campaign)


def _safe_json(resp: httpx.Response) -> dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {"text": resp.text}
    if isinstance(data, dict):
        return data
    return {"data": data}

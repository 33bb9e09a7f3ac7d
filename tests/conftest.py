from __future__ import annotations

import json
from collections.abc import Iterator

import pytest
import respx
from httpx import Request, Response

from loopscampaign.client import LoopsClient
from loopscampaign.config import Settings
from loopscampaign.models import CreateCampaign, MjmlArchive

API = "https://app.example.com/api"
STORAGE_HOST = "storage.example.com"
PRESIGNED_URL = f"https://{STORAGE_HOST}/mjml/upload-1.zip?X-Amz-Signature=abc123"


@pytest.fixture
def settings() -> Settings:
    return Settings(session_token="session-secret-token", base_url=API)


@pytest.fixture
def client(settings: Settings) -> Iterator[LoopsClient]:
    c = LoopsClient(settings)
    yield c
    c.close()


@pytest.fixture
def router() -> Iterator[respx.MockRouter]:
    with respx.mock(assert_all_called=False) as r:
        yield r


@pytest.fixture
def campaign() -> CreateCampaign:
    return CreateCampaign(
        emoji="X",
        name="Test",
        from_name="Hack Club",
        from_email_username="team",
        reply_to_email="team@example.com",
        subject="Hi",
        archive=MjmlArchive(content=b"PK\x03\x04index.mjml"),
        audience_filter=None,
        audience_segment_id=None,
    )


def _campaign_put(request: Request) -> Response:
    body = json.loads(request.content)
    if "emoji" in body:
        campaign_id = request.url.path.rsplit("/", 1)[-1]
        return Response(
            200,
            json={"campaign": {"id": campaign_id, "emailMessage": {"id": "msg_1"}}},
        )
    return Response(200, json={"success": True})


@pytest.fixture
def platform(router: respx.MockRouter) -> dict[str, respx.Route]:
    """Happy-path routes for every call the workflow makes."""
    return {
        "create": router.post(f"{API}/campaigns/create").mock(
            return_value=Response(200, json={"success": True, "campaignId": "camp_1"})
        ),
        "campaign": router.put(url__regex=rf"^{API}/campaigns/[^/]+$").mock(
            side_effect=_campaign_put
        ),
        "message": router.put(f"{API}/emailMessages/msg_1/update").mock(
            return_value=Response(200, json={"success": True})
        ),
        "ticket": router.post(f"{API}/trpc/emailMessages.getPresignedMjmlUpload").mock(
            return_value=Response(
                200,
                json={
                    "result": {
                        "data": {
                            "json": {
                                "filename": "upload-1.zip",
                                "presignedUrl": PRESIGNED_URL,
                            }
                        }
                    }
                },
            )
        ),
        "storage": router.route(method="PUT", host=STORAGE_HOST).mock(
            return_value=Response(200)
        ),
        "confirm": router.post(f"{API}/emailMessages/msg_1/upload-mjml-zip").mock(
            return_value=Response(200, json={"success": True})
        ),
    }


def call_log(router: respx.MockRouter) -> list[tuple[str, str, dict | None]]:
    """(method, path or storage host, decoded JSON body) for every request made."""
    log = []
    for call in router.calls:
        req = call.request
        if req.url.host == STORAGE_HOST:
            log.append((req.method, STORAGE_HOST, None))
        else:
            path = req.url.path.removeprefix("/api")
            log.append((req.method, path, json.loads(req.content) if req.content else None))
    return log

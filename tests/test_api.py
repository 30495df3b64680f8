"""Tests for the submission page and the WePay API endpoints.

Services are composed with in-memory stores and a mocked WePay client via
FastAPI dependency overrides.
"""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import InMemoryAccountStore
from wepay_link.api.dependencies import (
    get_account_link_service,
    get_campaign_repository,
    get_current_user,
    get_payment_decorator,
)
from wepay_link.database import get_db
from wepay_link.integrations.wepay_client import (
    STAGING,
    WePayAccount,
    WePayApiError,
    WePayClient,
    WePayToken,
)
from wepay_link.config import settings
from wepay_link.main import app
from wepay_link.services.account_link import AccountLinkService
from wepay_link.services.checkout_fee import PaymentDecorator
from wepay_link.services.linked_accounts import (
    CampaignRecord,
    LinkedAccount,
    SiteUser,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

USER = SiteUser(
    user_id=uuid.UUID("00000000-0000-0000-0000-000000000001"),
    email="artist@example.com",
    nicename="artist",
)
OWNER = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
GATEWAY_SECRET = "gw-secret"


@pytest.fixture
def gateway_headers(monkeypatch):
    monkeypatch.setattr(settings, "WEPAY_GATEWAY_SECRET", GATEWAY_SECRET)
    return {"X-Gateway-Secret": GATEWAY_SECRET}


def _mock_wepay() -> MagicMock:
    wepay = MagicMock(spec=WePayClient)
    wepay.environment = STAGING
    wepay.get_token = AsyncMock(return_value=WePayToken(access_token="tok_1"))
    wepay.create_account = AsyncMock(
        return_value=WePayAccount(account_id="acc_1", account_uri="https://wepay.test/acc_1")
    )
    wepay.get_authorization_uri.return_value = (
        "https://stage.wepay.com/v2/oauth2/authorize?client_id=1&scope=send_money"
    )
    return wepay


def _override_link_service(store: InMemoryAccountStore, wepay: MagicMock) -> None:
    app.dependency_overrides[get_current_user] = lambda: USER
    app.dependency_overrides[get_account_link_service] = lambda: AccountLinkService(
        wepay=wepay,
        accounts=store,
        submit_page_url="http://test/submit",
        audit=MagicMock(),
    )


def _override_decorator(fee_percent: str) -> None:
    class _Campaigns:
        async def get_campaign(self, campaign_id):
            if campaign_id == 1:
                return CampaignRecord(campaign_id=1, author_id=OWNER, status="publish")
            return None

    class _Payments:
        async def get_payment_downloads(self, payment_id):
            return []

    accounts = InMemoryAccountStore({
        OWNER: LinkedAccount("acc_owner", "tok_owner", "https://wepay.test/acc_owner"),
    })
    app.dependency_overrides[get_payment_decorator] = lambda: PaymentDecorator(
        campaigns=_Campaigns(),
        payments=_Payments(),
        accounts=accounts,
        fee_percent=fee_percent,
        audit=MagicMock(),
    )


# ---------------------------------------------------------------------------
# /submit
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_submit_page_shows_call_to_action_for_unlinked_user(client):
    wepay = _mock_wepay()
    _override_link_service(InMemoryAccountStore(), wepay)

    resp = await client.get("/submit")

    assert resp.status_code == 200
    assert "wepay-oauth-create-account" in resp.text
    assert "client_id=1&amp;scope=send_money" in resp.text
    wepay.get_token.assert_not_awaited()


@pytest.mark.asyncio
async def test_submit_page_completes_handshake(client):
    store = InMemoryAccountStore()
    wepay = _mock_wepay()
    _override_link_service(store, wepay)

    resp = await client.get("/submit", params={"code": "abc123"})

    assert resp.status_code == 200
    assert "Funds will be sent to your" in resp.text
    assert "https://wepay.test/acc_1" in resp.text
    assert 'name="wepay_account_id" id="wepay_account_id" value="acc_1"' in resp.text
    assert 'name="wepay_access_token" id="wepay_access_token" value="tok_1"' in resp.text
    wepay.get_token.assert_awaited_once_with("abc123", "http://test/submit")
    assert store.accounts[USER.user_id] == LinkedAccount(
        "acc_1", "tok_1", "https://wepay.test/acc_1",
    )


@pytest.mark.asyncio
async def test_submit_page_shows_error_when_handshake_fails(client):
    store = InMemoryAccountStore()
    wepay = _mock_wepay()
    wepay.get_token.side_effect = WePayApiError(400, "invalid_request")
    _override_link_service(store, wepay)

    resp = await client.get("/submit", params={"code": "bad"})

    assert resp.status_code == 200
    assert 'class="wepay-error"' in resp.text
    assert "wepay-oauth-create-account" in resp.text
    assert store.saved == []


@pytest.mark.asyncio
async def test_submit_page_requires_user(client):
    async def _no_db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = _no_db

    resp = await client.get("/submit")

    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_submit_page_rejects_malformed_user_id(client):
    async def _no_db():
        yield AsyncMock()

    app.dependency_overrides[get_db] = _no_db

    resp = await client.get("/submit", headers={"X-User-Id": "not-a-uuid"})

    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# /api/v1/wepay/account and /authorize-url
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_link_status_for_linked_user(client):
    store = InMemoryAccountStore({
        USER.user_id: LinkedAccount("acc_1", "tok_1", "https://wepay.test/acc_1"),
    })
    _override_link_service(store, _mock_wepay())

    resp = await client.get("/api/v1/wepay/account")

    assert resp.status_code == 200
    body = resp.json()
    assert body["needs_linking"] is False
    assert body["account_id"] == "acc_1"
    assert body["account_uri"] == "https://wepay.test/acc_1"
    assert "access_token" not in body


@pytest.mark.asyncio
async def test_link_status_for_unlinked_user(client):
    _override_link_service(InMemoryAccountStore(), _mock_wepay())

    resp = await client.get("/api/v1/wepay/account")

    assert resp.json()["needs_linking"] is True
    assert resp.json()["account_id"] is None


@pytest.mark.asyncio
async def test_authorize_url(client):
    wepay = _mock_wepay()
    _override_link_service(InMemoryAccountStore(), wepay)

    resp = await client.get("/api/v1/wepay/authorize-url")

    assert resp.status_code == 200
    assert resp.json()["authorization_url"].startswith("https://stage.wepay.com/v2/oauth2/authorize")
    scopes, redirect = wepay.get_authorization_uri.call_args[0]
    assert redirect == "http://test/submit"
    assert "send_money" in scopes


@pytest.mark.asyncio
async def test_campaign_meta_fields(client):
    resp = await client.post(
        "/api/v1/wepay/campaign-meta-fields", json={"fields": ["campaign_goal"]},
    )

    assert resp.json()["fields"] == [
        "campaign_goal", "wepay_account_id", "wepay_access_token",
    ]


# ---------------------------------------------------------------------------
# Checkout decoration
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_checkout_args_adds_fee(client, gateway_headers):
    _override_decorator(fee_percent="5")

    resp = await client.post(
        "/api/v1/wepay/checkout-args",
        headers=gateway_headers,
        json={"args": {"amount": 200.0, "short_description": "Pledge"}, "subtotal": "200.00"},
    )

    assert resp.status_code == 200
    args = resp.json()["args"]
    assert args["app_fee"] == pytest.approx(10.0)
    assert args["short_description"] == "Pledge"


@pytest.mark.asyncio
async def test_checkout_args_without_fee(client, gateway_headers):
    _override_decorator(fee_percent="")

    resp = await client.post(
        "/api/v1/wepay/checkout-args",
        headers=gateway_headers,
        json={"args": {"amount": 200.0}, "subtotal": "200.00"},
    )

    assert "app_fee" not in resp.json()["args"]


@pytest.mark.asyncio
async def test_credentials_resolved_from_cart(client, gateway_headers):
    _override_decorator(fee_percent="")

    resp = await client.post(
        "/api/v1/wepay/credentials",
        headers=gateway_headers,
        json={
            "creds": {"access_token": "", "account_id": ""},
            "cart_items": [{"id": 1, "quantity": 1}],
        },
    )

    assert resp.json()["creds"] == {"access_token": "tok_owner", "account_id": "acc_owner"}


@pytest.mark.asyncio
async def test_credentials_unresolved_passes_through(client, gateway_headers):
    _override_decorator(fee_percent="")

    resp = await client.post(
        "/api/v1/wepay/credentials",
        headers=gateway_headers,
        json={"creds": {"access_token": "x", "account_id": "y"}, "cart_items": [{"id": 999999}]},
    )

    assert resp.json()["creds"] == {"access_token": "x", "account_id": "y"}


@pytest.mark.asyncio
async def test_credentials_with_bad_session_item_passes_through(client, gateway_headers):
    _override_decorator(fee_percent="")

    resp = await client.post(
        "/api/v1/wepay/credentials",
        headers=gateway_headers,
        json={"creds": {"access_token": "x", "account_id": "y"}, "session": {"downloads": [1]}},
    )

    assert resp.status_code == 200
    assert resp.json()["creds"] == {"access_token": "x", "account_id": "y"}


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/api/v1/wepay/credentials", "/api/v1/wepay/checkout-args"])
async def test_checkout_routes_require_gateway_secret(client, gateway_headers, path):
    _override_decorator(fee_percent="5")

    resp = await client.post(
        path,
        json={"cart_items": [{"id": 1}], "subtotal": "10.00"},
    )

    assert resp.status_code == 401
    assert "tok_owner" not in resp.text


@pytest.mark.asyncio
async def test_credentials_reject_wrong_gateway_secret(client, gateway_headers):
    _override_decorator(fee_percent="")

    resp = await client.post(
        "/api/v1/wepay/credentials",
        headers={"X-Gateway-Secret": "guess"},
        json={"cart_items": [{"id": 1}]},
    )

    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_credentials_rejected_while_no_secret_configured(client, monkeypatch):
    monkeypatch.setattr(settings, "WEPAY_GATEWAY_SECRET", "")
    _override_decorator(fee_percent="")

    resp = await client.post(
        "/api/v1/wepay/credentials",
        headers={"X-Gateway-Secret": ""},
        json={"cart_items": [{"id": 1}]},
    )

    assert resp.status_code == 401


# ---------------------------------------------------------------------------
# /api/v1/wepay/campaigns/{id}/funding-account
# ---------------------------------------------------------------------------

def _override_campaigns(*campaigns: CampaignRecord) -> None:
    class _Campaigns:
        async def get_campaign(self, campaign_id):
            for campaign in campaigns:
                if campaign.campaign_id == campaign_id:
                    return campaign
            return None

    app.dependency_overrides[get_campaign_repository] = lambda: _Campaigns()


@pytest.mark.asyncio
async def test_funding_account_shown_to_campaign_owner(client):
    store = InMemoryAccountStore({
        USER.user_id: LinkedAccount("acc_1", "tok_1", "https://wepay.test/acc_1"),
    })
    _override_link_service(store, _mock_wepay())
    _override_campaigns(CampaignRecord(campaign_id=5, author_id=USER.user_id, status="publish"))

    resp = await client.get("/api/v1/wepay/campaigns/5/funding-account")

    assert resp.status_code == 200
    body = resp.json()
    assert body["owner_email"] == "artist@example.com"
    assert body["account_id"] == "acc_1"
    assert body["access_token"] == "tok_1"
    assert body["notice"] == "Funds will be sent to artist@example.com's WePay account."


@pytest.mark.asyncio
async def test_funding_account_hidden_for_auto_draft(client):
    _override_link_service(InMemoryAccountStore(), _mock_wepay())
    _override_campaigns(CampaignRecord(campaign_id=5, author_id=USER.user_id, status="auto-draft"))

    resp = await client.get("/api/v1/wepay/campaigns/5/funding-account")

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_funding_account_forbidden_for_other_users(client):
    _override_link_service(InMemoryAccountStore(), _mock_wepay())
    _override_campaigns(CampaignRecord(campaign_id=5, author_id=OWNER, status="publish"))

    resp = await client.get("/api/v1/wepay/campaigns/5/funding-account")

    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_funding_account_unknown_campaign(client):
    _override_link_service(InMemoryAccountStore(), _mock_wepay())
    _override_campaigns()

    resp = await client.get("/api/v1/wepay/campaigns/77/funding-account")

    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.json() == {"status": "healthy"}

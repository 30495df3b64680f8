"""WePay link status, campaign payout and checkout decoration endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from wepay_link.api.dependencies import (
    get_account_link_service,
    get_campaign_repository,
    get_current_user,
    get_payment_decorator,
    verify_gateway,
)
from wepay_link.services.account_link import (
    AccountLinkService,
    AuthorizationUrlResponse,
    CampaignFundingResponse,
    CampaignMetaFieldsRequest,
    LinkStatusResponse,
    extend_campaign_meta_fields,
)
from wepay_link.services.checkout_fee import (
    CheckoutArgsRequest,
    CredentialsRequest,
    PaymentDecorator,
)
from wepay_link.services.linked_accounts import CampaignRepository, SiteUser

router = APIRouter(prefix="/api/v1/wepay", tags=["wepay"])


# ---------------------------------------------------------------------------
# Account link
# ---------------------------------------------------------------------------

@router.get("/account", response_model=LinkStatusResponse)
async def read_link_status(
    current_user: SiteUser = Depends(get_current_user),
    service: AccountLinkService = Depends(get_account_link_service),
):
    """Return whether the current user still has to link a WePay account."""
    account = await service.linked_account(current_user)
    return LinkStatusResponse(
        user_id=current_user.user_id,
        needs_linking=account is None,
        account_id=account.account_id if account else None,
        account_uri=account.account_uri if account else None,
    )


@router.get("/authorize-url", response_model=AuthorizationUrlResponse)
async def read_authorization_url(
    service: AccountLinkService = Depends(get_account_link_service),
):
    return AuthorizationUrlResponse(authorization_url=service.build_authorization_url())


@router.post("/campaign-meta-fields")
async def campaign_meta_fields(body: CampaignMetaFieldsRequest):
    """Extend the host's campaign-meta whitelist with the WePay keys."""
    return {"fields": extend_campaign_meta_fields(body.fields)}


@router.get(
    "/campaigns/{campaign_id}/funding-account",
    response_model=CampaignFundingResponse,
)
async def read_campaign_funding_account(
    campaign_id: int,
    current_user: SiteUser = Depends(get_current_user),
    campaigns: CampaignRepository = Depends(get_campaign_repository),
    service: AccountLinkService = Depends(get_account_link_service),
):
    """Show a campaign's owner which WePay account its pledges are sent to."""
    campaign = await campaigns.get_campaign(campaign_id)
    if campaign is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Campaign not found",
        )
    if campaign.author_id != current_user.user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not the campaign owner",
        )

    funding = await service.campaign_funding_account(campaign, current_user)
    if funding is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Campaign has not been saved yet",
        )
    return funding


# ---------------------------------------------------------------------------
# Checkout decoration (payment gateway only)
# ---------------------------------------------------------------------------

@router.post("/checkout-args", dependencies=[Depends(verify_gateway)])
async def decorate_checkout_args(
    body: CheckoutArgsRequest,
    decorator: PaymentDecorator = Depends(get_payment_decorator),
):
    """Add the site's app fee to an outbound WePay checkout request."""
    return {"args": decorator.add_fee(body.args, body.subtotal)}


@router.post("/credentials", dependencies=[Depends(verify_gateway)])
async def resolve_credentials(
    body: CredentialsRequest,
    decorator: PaymentDecorator = Depends(get_payment_decorator),
):
    """Return the gateway credentials with the settlement account filled in."""
    creds = await decorator.resolve_credentials(
        body.creds,
        cart_items=body.cart_items,
        session=body.session,
        payment_id=body.payment_id,
        query_params=body.query_params,
    )
    return {"creds": creds}

"""Campaign submission page -- WePay callback listener and link gate."""

from __future__ import annotations

import html

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse

from wepay_link.api.dependencies import get_account_link_service, get_current_user
from wepay_link.services.account_link import AccountLinkService
from wepay_link.services.linked_accounts import SiteUser

router = APIRouter(tags=["submit"])


@router.get("/submit", response_class=HTMLResponse)
async def submit_page(
    request: Request,
    current_user: SiteUser = Depends(get_current_user),
    service: AccountLinkService = Depends(get_account_link_service),
):
    """Handle WePay's redirect, then show the call-to-action or the WePay form fields."""
    outcome = await service.listen(str(request.url), request.query_params, current_user)

    parts: list[str] = []
    if outcome is not None and outcome.error:
        parts.append(f'<p class="wepay-error">{html.escape(outcome.error)}</p>')

    account = await service.linked_account(current_user)
    if account is None:
        parts.append(service.render_call_to_action())
    else:
        parts.append(service.render_linked_notice(account))

    return HTMLResponse("\n".join(parts))

"""Structured JSON audit logger for account-link and settlement events.

Emits structured log entries via structlog whenever a user links a WePay
account, a handshake fails, or settlement credentials are chosen for a
payment.  Every entry carries an ``audit: true`` flag so production log
pipelines can filter on it easily.  Access tokens are never logged.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog


log = structlog.get_logger()


class AuditLogger:
    """Structured audit logger for WePay link events.

    All methods are synchronous -- they only emit log lines and perform
    no I/O beyond writing to the configured structlog sink.
    """

    # ------------------------------------------------------------------
    # Account link
    # ------------------------------------------------------------------

    def log_account_linked(
        self,
        user_id,
        account_id: str,
        environment: str,
    ) -> None:
        """Record a completed handshake and the account it produced."""
        log.info(
            "audit_event",
            event_type="wepay_account_linked",
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_id=str(user_id),
            account_id=account_id,
            environment=environment,
            audit=True,
        )

    def log_handshake_failure(
        self,
        user_id,
        stage: str,
        error: str,
    ) -> None:
        """Record a handshake that left the user unlinked.

        *stage* is one of ``token_exchange``, ``account_creation`` or
        ``persistence``.
        """
        log.warning(
            "audit_event",
            event_type="wepay_handshake_failed",
            timestamp=datetime.now(timezone.utc).isoformat(),
            user_id=str(user_id),
            stage=stage,
            error=error,
            audit=True,
        )

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def log_settlement_resolved(
        self,
        campaign_id,
        owner_user_id,
        account_id: str,
        source: str,
    ) -> None:
        """Record whose account receives funds and where the items came from."""
        log.info(
            "audit_event",
            event_type="settlement_resolved",
            timestamp=datetime.now(timezone.utc).isoformat(),
            campaign_id=str(campaign_id),
            owner_user_id=str(owner_user_id),
            account_id=account_id,
            source=source,
            audit=True,
        )

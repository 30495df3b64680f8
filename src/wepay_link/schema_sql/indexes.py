"""All CREATE INDEX statements for the initial schema."""

ALL = [
    # users
    "CREATE INDEX idx_users_wepay_account ON users(wepay_account_id) "
    "WHERE wepay_account_id IS NOT NULL;",
    # campaigns
    "CREATE INDEX idx_campaigns_author ON campaigns(author_id);",
    # payment_downloads
    "CREATE INDEX idx_payment_downloads_campaign ON payment_downloads(campaign_id);",
]

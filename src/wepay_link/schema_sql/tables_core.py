"""CREATE TABLE statements for users, campaigns, and payments."""

USERS = """
CREATE TABLE users (
    user_id            UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email              VARCHAR(320) NOT NULL UNIQUE,
    nicename           VARCHAR(50)  NOT NULL,
    wepay_account_id   VARCHAR(64),
    wepay_access_token VARCHAR(255),
    wepay_account_uri  VARCHAR(2048),
    created_at         TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

CAMPAIGNS = """
CREATE TABLE campaigns (
    campaign_id        BIGSERIAL PRIMARY KEY,
    author_id          UUID NOT NULL REFERENCES users(user_id),
    title              VARCHAR(200) NOT NULL,
    status             VARCHAR(20) NOT NULL DEFAULT 'draft'
                       CONSTRAINT ck_campaign_status
                       CHECK (status IN ('auto-draft', 'draft', 'pending', 'publish')),
    created_at         TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

PAYMENTS = """
CREATE TABLE payments (
    payment_id  BIGSERIAL PRIMARY KEY,
    user_id     UUID REFERENCES users(user_id),
    status      VARCHAR(20) NOT NULL DEFAULT 'pending',
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

PAYMENT_DOWNLOADS = """
CREATE TABLE payment_downloads (
    payment_id  BIGINT  NOT NULL REFERENCES payments(payment_id),
    position    INTEGER NOT NULL,
    campaign_id BIGINT  NOT NULL REFERENCES campaigns(campaign_id),
    quantity    INTEGER NOT NULL DEFAULT 1,
    PRIMARY KEY (payment_id, position)
);
"""

ALL = [USERS, CAMPAIGNS, PAYMENTS, PAYMENT_DOWNLOADS]

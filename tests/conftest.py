import uuid

import pytest
from httpx import ASGITransport, AsyncClient

from wepay_link.main import app
from wepay_link.services.linked_accounts import LinkedAccount


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


class InMemoryAccountStore:
    """Dict-backed stand-in for UserAccountRepository."""

    def __init__(self, accounts: dict[uuid.UUID, LinkedAccount] | None = None) -> None:
        self.accounts = dict(accounts or {})
        self.saved: list[tuple[uuid.UUID, LinkedAccount]] = []

    async def get_linked_account(self, user_id):
        return self.accounts.get(user_id)

    async def save_linked_account(self, user_id, account):
        self.saved.append((user_id, account))
        self.accounts[user_id] = account


@pytest.fixture
def account_store():
    return InMemoryAccountStore()

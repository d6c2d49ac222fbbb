"""
Shared fixtures: an in-memory store wired in place of DynamoDB and
seeded accounts for each role.
"""
import os
import sys

import pytest

# Add src to path for import
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from shared import dynamo  # noqa: E402
from shared.auth import Session  # noqa: E402
from shared.config import config  # noqa: E402
from shared.ledger import Ledger  # noqa: E402
from shared.models import Role  # noqa: E402

from fakes import FUTURE, FakeStore  # noqa: E402


@pytest.fixture()
def store(monkeypatch) -> FakeStore:
    """FakeStore installed as the process-wide store used by handlers."""
    fake = FakeStore()
    monkeypatch.setattr(dynamo, '_store', fake)
    return fake


@pytest.fixture()
def ledger(store) -> Ledger:
    return Ledger(store)


@pytest.fixture()
def add_account(store):
    """Factory: seed an account and return its Session."""

    def _add(user_id: str, role: str, coins: int, name: str = None, **extra) -> Session:
        name = name or user_id.title()
        store.add(config.ACCOUNTS_TABLE, {
            'userId': user_id,
            'displayName': name,
            'email': f'{user_id}@example.com',
            'role': role,
            'coins': coins,
            'reservedCoins': 0,
            'createdAt': '2026-01-01T00:00:00+00:00',
            **extra,
        })
        return Session(account_id=user_id, role=role, display_name=name, email=f'{user_id}@example.com')

    return _add


@pytest.fixture()
def buyer(add_account) -> Session:
    return add_account('buyer-1', Role.BUYER, 500, name='Bob Buyer')


@pytest.fixture()
def worker(add_account) -> Session:
    return add_account('worker-1', Role.WORKER, 0, name='Wendy Worker')


@pytest.fixture()
def admin(add_account) -> Session:
    return add_account('admin-1', Role.ADMIN, 100, name='Ada Admin')


@pytest.fixture()
def funded_task(ledger, buyer) -> dict:
    """Reward 10 x 5 workers funded by a 500-coin buyer."""
    return ledger.fund_task(
        buyer,
        reward=10,
        slots=5,
        title='Watch a video and comment',
        description='Watch the linked video and leave a thoughtful comment.',
        submission_info='Paste a link to your comment.',
        deadline=FUTURE,
    )

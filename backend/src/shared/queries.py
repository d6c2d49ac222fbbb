"""
Read-side views over the ledger tables: task catalogue, submission,
withdrawal, payment and user listings.
"""
from datetime import date
from decimal import Decimal
from typing import Optional

from boto3.dynamodb.conditions import Attr, Key

from shared.auth import Session
from shared.config import config
from shared.errors import Forbidden, NotFound, ValidationError
from shared.models import Role, SubmissionStatus, WithdrawalStatus, available_coins, pending_coins
from shared.utils import today as utc_today


def _newest_first(items: list) -> list:
    return sorted(items, key=lambda item: item.get('createdAt', ''), reverse=True)


def get_account(store, session: Session) -> dict:
    """Balance refresh for the current session."""
    account = store.get_item(config.ACCOUNTS_TABLE, {'userId': session.account_id})
    if not account:
        raise NotFound('Account not found')
    return {**account, 'availableCoins': available_coins(account)}


def list_available_tasks(store, search: Optional[str] = None, today: date = None) -> list:
    """
    Tasks that still accept submissions: slots left and deadline not passed.
    Newest first; `search` matches title or owner name, case-insensitively.
    """
    today = today or utc_today()
    tasks = store.scan(
        config.TASKS_TABLE,
        filter_expression=Attr('remainingSlots').gt(0) & Attr('deadline').gte(today.isoformat()),
    )
    if search:
        needle = search.lower()
        tasks = [
            t for t in tasks
            if needle in t.get('title', '').lower() or needle in t.get('ownerName', '').lower()
        ]
    return _newest_first(tasks)


def get_task(store, session: Session, task_id: str) -> dict:
    """Task detail with whether the caller already submitted work for it."""
    task = store.get_item(config.TASKS_TABLE, {'taskId': task_id})
    if not task:
        raise NotFound('Task not found')

    submissions = store.query(
        config.SUBMISSIONS_TABLE,
        Key('taskId').eq(task_id),
        index_name='byTask',
        filter_expression=Attr('workerId').eq(session.account_id),
    )
    detail = {k: v for k, v in task.items() if k != 'activeWorkers'}
    detail['hasSubmitted'] = bool(submissions)
    return detail


def list_owner_tasks(store, session: Session) -> list:
    tasks = store.query(config.TASKS_TABLE, Key('ownerId').eq(session.account_id), index_name='byOwner')
    return _newest_first(tasks)


def list_all_tasks(store, session: Session) -> dict:
    """Admin view of every task and the coins still escrowed in open slots."""
    session.require_role(Role.ADMIN)
    tasks = _newest_first(store.scan(config.TASKS_TABLE))
    return {
        'tasks': tasks,
        'totalEscrowedCoins': sum(int(t.get('reward', 0)) * int(t.get('remainingSlots', 0)) for t in tasks),
    }


def list_worker_submissions(store, session: Session) -> list:
    submissions = store.query(
        config.SUBMISSIONS_TABLE,
        Key('workerId').eq(session.account_id),
        index_name='byWorker',
    )
    return _newest_first(submissions)


def list_task_submissions(store, session: Session, task_id: str) -> list:
    task = store.get_item(config.TASKS_TABLE, {'taskId': task_id})
    if not task:
        raise NotFound('Task not found')
    if not (session.is_admin or task.get('ownerId') == session.account_id):
        raise Forbidden('Only the task owner or an admin can see its submissions')
    return _newest_first(store.query(config.SUBMISSIONS_TABLE, Key('taskId').eq(task_id), index_name='byTask'))


def list_pending_reviews(store, session: Session) -> list:
    """Pending submissions across all of the caller's tasks."""
    submissions = store.query(
        config.SUBMISSIONS_TABLE,
        Key('ownerId').eq(session.account_id),
        index_name='byOwner',
        filter_expression=Attr('status').eq(SubmissionStatus.PENDING),
    )
    return _newest_first(submissions)


def list_my_withdrawals(store, session: Session) -> dict:
    """The caller's withdrawals with coins reserved by pending ones."""
    withdrawals = _newest_first(store.query(
        config.WITHDRAWALS_TABLE,
        Key('userId').eq(session.account_id),
        index_name='byUser',
    ))
    account = store.get_item(config.ACCOUNTS_TABLE, {'userId': session.account_id}) or {}
    reserved = pending_coins(withdrawals)
    return {
        'withdrawals': withdrawals,
        'pendingCoins': reserved,
        'availableCoins': int(account.get('coins', 0)) - reserved,
    }


def list_withdrawals(store, session: Session, status: Optional[str] = None) -> dict:
    """Admin listing, optionally filtered by status, with summary counts."""
    session.require_role(Role.ADMIN)
    if status and status not in WithdrawalStatus.ALL:
        raise ValidationError(f"Unknown withdrawal status: {status}")

    withdrawals = _newest_first(store.scan(config.WITHDRAWALS_TABLE))
    approved = [w for w in withdrawals if w.get('status') == WithdrawalStatus.APPROVED]
    summary = {
        'pending': len([w for w in withdrawals if w.get('status') == WithdrawalStatus.PENDING]),
        'approved': len(approved),
        'totalApprovedUsd': sum((Decimal(str(w.get('amountUsd', 0))) for w in approved), Decimal('0')),
    }
    if status:
        withdrawals = [w for w in withdrawals if w.get('status') == status]
    return {'withdrawals': withdrawals, 'summary': summary}


def list_payments(store, session: Session) -> dict:
    payments = _newest_first(store.query(
        config.PAYMENTS_TABLE,
        Key('userId').eq(session.account_id),
        index_name='byUser',
    ))
    return {
        'payments': payments,
        'totalCoins': sum(int(p.get('coins', 0)) for p in payments),
        'totalSpentUsd': sum((Decimal(str(p.get('amountUsd', 0))) for p in payments), Decimal('0')),
    }


def list_users(store, session: Session) -> list:
    session.require_role(Role.ADMIN)
    users = store.scan(config.ACCOUNTS_TABLE)
    return sorted(users, key=lambda u: u.get('displayName', '').lower())

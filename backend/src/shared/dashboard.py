"""
Role-gated dashboard composition.
Each role gets its own navigation menu and landing summary.
"""
from decimal import Decimal

from boto3.dynamodb.conditions import Attr, Key

from shared.auth import Session
from shared.config import config
from shared.models import Role, SubmissionStatus, WithdrawalStatus, available_coins, coins_to_usd

MENUS = {
    Role.WORKER: [
        {'title': 'Home', 'route': '/dashboard'},
        {'title': 'Task List', 'route': '/dashboard/tasks'},
        {'title': 'My Submissions', 'route': '/dashboard/submissions'},
        {'title': 'Withdrawals', 'route': '/dashboard/withdrawals'},
    ],
    Role.BUYER: [
        {'title': 'Home', 'route': '/dashboard'},
        {'title': 'Add New Task', 'route': '/dashboard/add-task'},
        {'title': 'My Tasks', 'route': '/dashboard/my-tasks'},
        {'title': 'Purchase Coins', 'route': '/dashboard/purchase'},
        {'title': 'Payment History', 'route': '/dashboard/payments'},
    ],
    Role.ADMIN: [
        {'title': 'Home', 'route': '/dashboard'},
        {'title': 'Manage Users', 'route': '/dashboard/users'},
        {'title': 'Manage Tasks', 'route': '/dashboard/manage-tasks'},
        {'title': 'Withdrawals', 'route': '/dashboard/admin-withdrawals'},
    ],
}


def worker_summary(store, session: Session, account: dict) -> dict:
    submissions = store.query(
        config.SUBMISSIONS_TABLE,
        Key('workerId').eq(session.account_id),
        index_name='byWorker',
    )
    earned = sum(int(s.get('reward', 0)) for s in submissions if s.get('status') == SubmissionStatus.APPROVED)
    available = available_coins(account)
    return {
        'totalSubmissions': len(submissions),
        'pendingSubmissions': len([s for s in submissions if s.get('status') == SubmissionStatus.PENDING]),
        'totalEarnings': earned,
        'availableCoins': available,
        'availableUsd': coins_to_usd(available),
    }


def buyer_summary(store, session: Session, account: dict) -> dict:
    tasks = store.query(config.TASKS_TABLE, Key('ownerId').eq(session.account_id), index_name='byOwner')
    submissions = store.query(
        config.SUBMISSIONS_TABLE,
        Key('ownerId').eq(session.account_id),
        index_name='byOwner',
    )
    return {
        'totalTasks': len(tasks),
        'pendingSlots': sum(int(t.get('remainingSlots', 0)) for t in tasks),
        'totalPaid': sum(int(s.get('reward', 0)) for s in submissions if s.get('status') == SubmissionStatus.APPROVED),
        'pendingReviews': len([s for s in submissions if s.get('status') == SubmissionStatus.PENDING]),
        'coins': int(account.get('coins', 0)),
    }


def admin_summary(store, session: Session, account: dict) -> dict:
    accounts = store.scan(config.ACCOUNTS_TABLE)
    payments = store.scan(config.PAYMENTS_TABLE)
    pending = store.scan(config.WITHDRAWALS_TABLE, filter_expression=Attr('status').eq(WithdrawalStatus.PENDING))
    return {
        'totalWorkers': len([a for a in accounts if a.get('role') == Role.WORKER]),
        'totalBuyers': len([a for a in accounts if a.get('role') == Role.BUYER]),
        'totalCoins': sum(int(a.get('coins', 0)) for a in accounts),
        'totalPaymentsUsd': sum((Decimal(str(p.get('amountUsd', 0))) for p in payments), Decimal('0')),
        'pendingWithdrawals': len(pending),
    }


SUMMARIES = {
    Role.WORKER: worker_summary,
    Role.BUYER: buyer_summary,
    Role.ADMIN: admin_summary,
}


def build_dashboard(store, session: Session, account: dict) -> dict:
    """Landing view for the session's role."""
    return {
        'role': session.role,
        'displayName': account.get('displayName', session.display_name),
        'coins': int(account.get('coins', 0)),
        'menu': MENUS[session.role],
        'summary': SUMMARIES[session.role](store, session, account),
    }

"""
Data models and status constants for the coin marketplace.
Ledger lifecycle: Funded task → Pending submission → Approved/Rejected,
Pending withdrawal → Approved/Rejected.
"""
from decimal import Decimal, ROUND_HALF_UP

from shared.config import config


class Role:
    """Account roles (one per account)."""
    WORKER = 'worker'
    BUYER = 'buyer'
    ADMIN = 'admin'

    ALL = (WORKER, BUYER, ADMIN)


class SubmissionStatus:
    """Submission review statuses."""
    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'


class WithdrawalStatus:
    """Withdrawal request statuses."""
    PENDING = 'Pending'
    APPROVED = 'Approved'
    REJECTED = 'Rejected'

    ALL = (PENDING, APPROVED, REJECTED)


class Decision:
    """Reviewer decisions for submissions and withdrawals."""
    APPROVE = 'APPROVE'
    REJECT = 'REJECT'

    ALL = (APPROVE, REJECT)


class PaymentStatus:
    """Coin purchase statuses."""
    COMPLETED = 'completed'


# Role-dependent signup bonus in coins
SIGNUP_BONUS = {
    Role.WORKER: config.WORKER_SIGNUP_BONUS,
    Role.BUYER: config.BUYER_SIGNUP_BONUS,
    Role.ADMIN: config.ADMIN_SIGNUP_BONUS,
}

# Fixed coin packages: coins -> price in USD
COIN_PACKAGES = {
    100: Decimal('5'),
    250: Decimal('10'),
    500: Decimal('18'),
    1000: Decimal('30'),
}

CENTS = Decimal('0.01')


def coins_to_usd(coins: int) -> Decimal:
    """Convert coins to USD at the fixed withdrawal rate, rounded to cents."""
    return (Decimal(coins) / Decimal(config.COINS_PER_USD)).quantize(CENTS, rounding=ROUND_HALF_UP)


def available_coins(account: dict) -> int:
    """Balance not reserved by a pending withdrawal."""
    return int(account.get('coins', 0)) - int(account.get('reservedCoins', 0))


def pending_coins(withdrawals: list) -> int:
    """Sum of coins held by pending withdrawal requests."""
    return sum(int(w.get('coins', 0)) for w in withdrawals if w.get('status') == WithdrawalStatus.PENDING)

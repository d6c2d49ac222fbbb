"""
Coin ledger workflow.

Orchestrates the multi-entity transitions of the marketplace:
- task funding debits the buyer (escrow)
- a submission takes one slot of its task
- approving a submission credits the worker, rejecting it frees the slot
- a withdrawal request reserves coins, approving it debits them

Each coin-moving operation is one DynamoDB transaction. The reads that
precede it only produce precise error messages; the transaction conditions
are what keep balances and slots non-negative and decisions single-shot.
"""
import uuid
from datetime import date, datetime
from decimal import Decimal

from boto3.dynamodb.conditions import Attr

from shared.auth import Session
from shared.config import config
from shared.dynamo import ConditionFailed, Put, TransactionCanceled, Update
from shared.errors import (
    AccountExists,
    AlreadyDecided,
    AlreadySubmitted,
    BelowMinimum,
    Forbidden,
    InsufficientAvailableBalance,
    InsufficientFunds,
    NotFound,
    PendingWithdrawalExists,
    PersistenceError,
    TaskExpired,
    TaskFull,
    ValidationError,
)
from shared.logging import log_refusal, log_transition, logger
from shared.models import (
    COIN_PACKAGES,
    CENTS,
    SIGNUP_BONUS,
    Decision,
    PaymentStatus,
    Role,
    SubmissionStatus,
    WithdrawalStatus,
    available_coins,
    coins_to_usd,
)
from shared.notifications import notify
from shared.utils import now_iso, today as utc_today


def parse_positive_int(value, field_name: str, minimum: int = 1) -> int:
    """Parse an integer form value, rejecting bools, fractions and values below `minimum`."""
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number")
    try:
        number = Decimal(str(value))
    except Exception:
        raise ValidationError(f"{field_name} must be a whole number")
    if not number.is_finite() or number % 1 != 0:
        raise ValidationError(f"{field_name} must be a whole number")
    if number < minimum:
        raise ValidationError(f"{field_name} must be at least {minimum}")
    return int(number)


def parse_deadline(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError('Please select a completion date')
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValidationError('Completion date must be YYYY-MM-DD')


def require_text(value, field_name: str) -> str:
    text = (value or '').strip() if isinstance(value, str) else ''
    if not text:
        raise ValidationError(f"{field_name} is required")
    return text


def parse_decision(decision) -> str:
    normalized = str(decision or '').upper()
    if normalized not in Decision.ALL:
        raise ValidationError('Invalid decision. Must be APPROVE or REJECT')
    return normalized


def spendable_guard(account: dict, cost: int):
    """
    Condition that `cost` coins can leave `account` without touching coins
    reserved by a withdrawal. Pins the reservation seen in `account`, so a
    withdrawal request committed after that read cancels the write.
    """
    reserved = int(account.get('reservedCoins', 0))
    pending_id = account.get('pendingWithdrawalId')
    if pending_id:
        pinned = Attr('pendingWithdrawalId').eq(pending_id)
    else:
        pinned = Attr('pendingWithdrawalId').not_exists()
    return pinned & Attr('coins').gte(cost + reserved)


def task_refusal(task, worker_id: str, today: date):
    """Return the error that keeps `worker_id` from submitting to `task`, or None."""
    if not task:
        return NotFound('Task not found')
    if task.get('deadline', '') < today.isoformat():
        return TaskExpired(f"Task deadline {task.get('deadline')} has passed")
    if int(task.get('remainingSlots', 0)) <= 0:
        return TaskFull('No worker slots left on this task')
    if worker_id in (task.get('activeWorkers') or set()):
        return AlreadySubmitted('You already submitted work for this task')
    return None


class Ledger:
    """Ledger operations over a store (DynamoStore in Lambda, a fake in tests)."""

    def __init__(self, store):
        self.store = store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _get(self, table_name: str, key: dict, label: str) -> dict:
        item = self.store.get_item(table_name, key)
        if not item:
            raise NotFound(f"{label} not found")
        return item

    def get_account(self, account_id: str) -> dict:
        return self._get(config.ACCOUNTS_TABLE, {'userId': account_id}, 'Account')

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def register_account(self, session: Session, role: str, display_name: str = None,
                         email: str = None, avatar_url: str = None) -> dict:
        """Create the caller's account and issue the role's signup bonus."""
        if role not in Role.ALL:
            raise ValidationError(f"Role must be one of {', '.join(Role.ALL)}")

        timestamp = now_iso()
        account = {
            'userId': session.account_id,
            'displayName': require_text(display_name or session.display_name, 'Name'),
            'email': require_text(email or session.email, 'Email'),
            'role': role,
            'coins': SIGNUP_BONUS[role],
            'reservedCoins': 0,
            'createdAt': timestamp,
            'updatedAt': timestamp,
        }
        if avatar_url:
            account['avatarUrl'] = avatar_url

        try:
            self.store.put_item(config.ACCOUNTS_TABLE, account, condition=Attr('userId').not_exists())
        except ConditionFailed:
            raise AccountExists('Account already registered')

        log_transition('account.registered', userId=session.account_id, role=role, bonus=SIGNUP_BONUS[role])
        return account

    def update_account(self, session: Session, user_id: str, role: str = None, coins=None) -> dict:
        """
        Admin change of a user's role and/or balance, applied as one write.
        The balance cannot go below coins reserved by a pending withdrawal.
        """
        session.require_role(Role.ADMIN)
        if role is None and coins is None:
            raise ValidationError('Nothing to update: provide role or coins')

        changes = {}
        condition = Attr('userId').exists()
        if role is not None:
            if role not in Role.ALL:
                raise ValidationError(f"Role must be one of {', '.join(Role.ALL)}")
            changes['role'] = role
        if coins is not None:
            changes['coins'] = parse_positive_int(coins, 'Coins', minimum=0)
            condition = condition & (
                Attr('reservedCoins').not_exists() | Attr('reservedCoins').lte(changes['coins'])
            )

        try:
            account = self.store.update_item(Update(
                table=config.ACCOUNTS_TABLE,
                key={'userId': user_id},
                set={**changes, 'updatedAt': now_iso()},
                condition=condition,
            ))
        except ConditionFailed:
            current = self.get_account(user_id)
            raise ValidationError(
                f"Balance cannot go below the {int(current.get('reservedCoins', 0))} coins reserved for a pending withdrawal"
            )
        log_transition('account.updated', userId=user_id, by=session.account_id, **changes)
        return account

    def set_role(self, session: Session, user_id: str, role: str) -> dict:
        return self.update_account(session, user_id, role=role)

    def set_coins(self, session: Session, user_id: str, coins) -> dict:
        return self.update_account(session, user_id, coins=coins)

    def purchase_coins(self, session: Session, package_coins=None, custom_coins=None) -> dict:
        """
        Mock coin purchase: record the payment and credit the balance in one transaction.

        Args:
            package_coins: one of the fixed package sizes (100, 250, 500, 1000)
            custom_coins: any amount >= MIN_PURCHASE_COINS at the custom per-coin price
        """
        session.require_role(Role.BUYER)

        if package_coins is not None:
            coins = parse_positive_int(package_coins, 'Package')
            if coins not in COIN_PACKAGES:
                raise ValidationError(f"Unknown coin package: {coins}")
            price = COIN_PACKAGES[coins]
        else:
            coins = parse_positive_int(custom_coins, 'Coins', minimum=0)
            if coins < config.MIN_PURCHASE_COINS:
                raise BelowMinimum(f"Minimum purchase is {config.MIN_PURCHASE_COINS} coins")
            price = (Decimal(coins) * Decimal(config.CUSTOM_COIN_PRICE_USD)).quantize(CENTS)

        payment = {
            'paymentId': str(uuid.uuid4()),
            'userId': session.account_id,
            'coins': coins,
            'amountUsd': price,
            'paymentMethod': 'mock',
            'status': PaymentStatus.COMPLETED,
            'createdAt': now_iso(),
        }
        try:
            self.store.transact([
                Put(config.PAYMENTS_TABLE, payment, condition=Attr('paymentId').not_exists()),
                Update(
                    table=config.ACCOUNTS_TABLE,
                    key={'userId': session.account_id},
                    add={'coins': coins},
                    set={'updatedAt': payment['createdAt']},
                    condition=Attr('userId').exists(),
                ),
            ])
        except TransactionCanceled as e:
            if e.failed(1):
                raise NotFound('Account not found')
            raise PersistenceError('Could not record payment')

        log_transition('coins.purchased', userId=session.account_id, coins=coins, amountUsd=price)
        return payment

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def fund_task(self, session: Session, reward, slots, title: str, description: str,
                  submission_info: str, deadline, image_url: str = None, today: date = None) -> dict:
        """
        Create a task and escrow reward * slots coins from the buyer.

        Raises:
            InsufficientFunds: available balance below reward * slots
            ValidationError: missing fields, non-positive amounts, past deadline
        """
        session.require_role(Role.BUYER)
        today = today or utc_today()

        reward = parse_positive_int(reward, 'Payable amount')
        slots = parse_positive_int(slots, 'Required workers')
        deadline = parse_deadline(deadline)
        if deadline < today:
            raise ValidationError('Completion date cannot be in the past')
        title = require_text(title, 'Title')
        description = require_text(description, 'Description')
        submission_info = require_text(submission_info, 'Submission info')

        cost = reward * slots
        account = self.get_account(session.account_id)
        available = available_coins(account)
        if available < cost:
            error = InsufficientFunds(f"You need {cost} coins but only have {available}.")
            log_refusal('task.fund', error, userId=session.account_id, cost=cost)
            raise error

        timestamp = now_iso()
        task = {
            'taskId': str(uuid.uuid4()),
            'ownerId': session.account_id,
            'ownerName': account.get('displayName') or session.display_name,
            'title': title,
            'description': description,
            'submissionInfo': submission_info,
            'reward': reward,
            'requiredWorkers': slots,
            'remainingSlots': slots,
            'deadline': deadline.isoformat(),
            'createdAt': timestamp,
        }
        if image_url and image_url.strip():
            task['imageUrl'] = image_url.strip()

        try:
            self.store.transact([
                Put(config.TASKS_TABLE, task, condition=Attr('taskId').not_exists()),
                Update(
                    table=config.ACCOUNTS_TABLE,
                    key={'userId': session.account_id},
                    add={'coins': -cost},
                    set={'updatedAt': timestamp},
                    condition=spendable_guard(account, cost),
                ),
            ])
        except TransactionCanceled as e:
            if e.failed(1):
                current = self.get_account(session.account_id)
                error = InsufficientFunds(f"You need {cost} coins but only have {available_coins(current)}.")
                log_refusal('task.fund', error, userId=session.account_id, cost=cost)
                raise error
            raise PersistenceError('Failed to create task')

        log_transition('task.funded', taskId=task['taskId'], ownerId=session.account_id,
                       reward=reward, slots=slots, escrowed=cost)
        return task

    def delete_task(self, session: Session, task_id: str) -> dict:
        """
        Delete a task (owner or admin).
        Escrowed coins for unused slots are not refunded.
        """
        task = self._get(config.TASKS_TABLE, {'taskId': task_id}, 'Task')
        if not (session.is_admin or task.get('ownerId') == session.account_id):
            raise Forbidden('Only the task owner or an admin can delete this task')

        self.store.delete_item(config.TASKS_TABLE, {'taskId': task_id})
        unrefunded = int(task.get('reward', 0)) * int(task.get('remainingSlots', 0))
        if unrefunded:
            logger.warning(f"Task {task_id} deleted with {unrefunded} escrowed coins not refunded")
        log_transition('task.deleted', taskId=task_id, by=session.account_id)
        return task

    # ------------------------------------------------------------------
    # Submissions
    # ------------------------------------------------------------------

    def submit_work(self, session: Session, task_id: str, details: str, today: date = None) -> dict:
        """
        Record a Pending submission and take one slot of the task.

        Raises:
            TaskFull, TaskExpired, AlreadySubmitted, NotFound
        """
        session.require_role(Role.WORKER)
        today = today or utc_today()
        details = require_text(details, 'Submission details')
        worker_id = session.account_id
        # Only registered workers can take a slot
        self.get_account(worker_id)

        task = self.store.get_item(config.TASKS_TABLE, {'taskId': task_id})
        error = task_refusal(task, worker_id, today)
        if error:
            log_refusal('submission.create', error, taskId=task_id, workerId=worker_id)
            raise error

        timestamp = now_iso()
        submission = {
            'submissionId': str(uuid.uuid4()),
            'taskId': task_id,
            'taskTitle': task['title'],
            'ownerId': task['ownerId'],
            'workerId': worker_id,
            'workerName': session.display_name,
            'details': details,
            'reward': int(task['reward']),
            'status': SubmissionStatus.PENDING,
            'createdAt': timestamp,
            'updatedAt': timestamp,
        }

        try:
            self.store.transact([
                Put(config.SUBMISSIONS_TABLE, submission, condition=Attr('submissionId').not_exists()),
                Update(
                    table=config.TASKS_TABLE,
                    key={'taskId': task_id},
                    add={'remainingSlots': -1, 'activeWorkers': {worker_id}},
                    condition=(
                        Attr('taskId').exists()
                        & Attr('remainingSlots').gt(0)
                        & Attr('deadline').gte(today.isoformat())
                        & ~Attr('activeWorkers').contains(worker_id)
                    ),
                ),
            ])
        except TransactionCanceled as e:
            if e.failed(1):
                # Lost a race: re-read to tell the caller which guard tripped
                current = self.store.get_item(config.TASKS_TABLE, {'taskId': task_id})
                error = task_refusal(current, worker_id, today) or TaskFull('No worker slots left on this task')
                log_refusal('submission.create', error, taskId=task_id, workerId=worker_id)
                raise error
            raise PersistenceError('Failed to save submission')

        log_transition('submission.created', submissionId=submission['submissionId'],
                       taskId=task_id, workerId=worker_id)
        notify(self.store, task['ownerId'], f'New submission received for "{task["title"]}"', '/dashboard')
        return submission

    def decide_submission(self, session: Session, submission_id: str, decision) -> dict:
        """
        Approve (credit the worker) or reject (free the slot) a Pending submission.

        Raises:
            AlreadyDecided: the submission is no longer Pending
            Forbidden: caller is neither the task owner nor an admin
        """
        decision = parse_decision(decision)
        key = {'submissionId': submission_id}
        submission = self._get(config.SUBMISSIONS_TABLE, key, 'Submission')

        if not (session.is_admin or submission.get('ownerId') == session.account_id):
            raise Forbidden('Only the task owner or an admin can review this submission')
        if submission.get('status') != SubmissionStatus.PENDING:
            error = AlreadyDecided(f"Submission is already {submission.get('status')}")
            log_refusal('submission.decide', error, submissionId=submission_id)
            raise error

        timestamp = now_iso()
        worker_id = submission['workerId']
        reward = int(submission['reward'])
        title = submission.get('taskTitle', '')
        new_status = SubmissionStatus.APPROVED if decision == Decision.APPROVE else SubmissionStatus.REJECTED

        operations = [
            Update(
                table=config.SUBMISSIONS_TABLE,
                key=key,
                set={'status': new_status, 'updatedAt': timestamp},
                condition=Attr('status').eq(SubmissionStatus.PENDING),
            ),
        ]
        if decision == Decision.APPROVE:
            operations.append(Update(
                table=config.ACCOUNTS_TABLE,
                key={'userId': worker_id},
                add={'coins': reward},
                set={'updatedAt': timestamp},
                condition=Attr('userId').exists(),
            ))
        else:
            # Deleted tasks have no slot to give back
            task_key = {'taskId': submission['taskId']}
            if self.store.get_item(config.TASKS_TABLE, task_key):
                operations.append(Update(
                    table=config.TASKS_TABLE,
                    key=task_key,
                    add={'remainingSlots': 1},
                    delete={'activeWorkers': {worker_id}},
                    condition=Attr('taskId').exists(),
                ))

        try:
            self.store.transact(operations)
        except TransactionCanceled as e:
            if e.failed(0):
                error = AlreadyDecided('Submission was already reviewed')
            elif e.failed(1) and decision == Decision.APPROVE:
                error = NotFound('Worker account not found')
            elif e.failed(1):
                error = NotFound('Task not found')
            else:
                raise PersistenceError('Failed to save decision')
            log_refusal('submission.decide', error, submissionId=submission_id)
            raise error

        if decision == Decision.APPROVE:
            log_transition('submission.approved', submissionId=submission_id, workerId=worker_id, coins=reward)
            buyer = session.display_name or 'the buyer'
            notify(self.store, worker_id,
                   f'You earned {reward} coins from {buyer} for completing "{title}"',
                   '/dashboard/submissions')
        else:
            log_transition('submission.rejected', submissionId=submission_id, workerId=worker_id)
            notify(self.store, worker_id,
                   f'Your submission for "{title}" was rejected.',
                   '/dashboard/submissions')

        return {**submission, 'status': new_status, 'updatedAt': timestamp}

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------

    def request_withdrawal(self, session: Session, coins, payment_system: str, account_number: str) -> dict:
        """
        Create a Pending withdrawal and reserve its coins on the account.
        Coins are only debited when an admin approves.

        Raises:
            BelowMinimum, PendingWithdrawalExists, InsufficientAvailableBalance
        """
        session.require_role(Role.WORKER, Role.BUYER)
        coins = parse_positive_int(coins, 'Coins', minimum=0)
        if coins < config.MIN_WITHDRAWAL_COINS:
            raise BelowMinimum(f"Minimum withdrawal is {config.MIN_WITHDRAWAL_COINS} coins")
        payment_system = require_text(payment_system, 'Payment system')
        account_number = require_text(account_number, 'Account number')

        account = self.get_account(session.account_id)
        error = self._withdrawal_refusal(account, coins)
        if error:
            log_refusal('withdrawal.request', error, userId=session.account_id, coins=coins)
            raise error

        timestamp = now_iso()
        withdrawal = {
            'withdrawalId': str(uuid.uuid4()),
            'userId': session.account_id,
            'userName': account.get('displayName', ''),
            'coins': coins,
            'amountUsd': coins_to_usd(coins),
            'paymentSystem': payment_system,
            'accountNumber': account_number,
            'status': WithdrawalStatus.PENDING,
            'createdAt': timestamp,
            'updatedAt': timestamp,
        }

        try:
            self.store.transact([
                Put(config.WITHDRAWALS_TABLE, withdrawal, condition=Attr('withdrawalId').not_exists()),
                Update(
                    table=config.ACCOUNTS_TABLE,
                    key={'userId': session.account_id},
                    set={
                        'pendingWithdrawalId': withdrawal['withdrawalId'],
                        'reservedCoins': coins,
                        'updatedAt': timestamp,
                    },
                    condition=Attr('pendingWithdrawalId').not_exists() & Attr('coins').gte(coins),
                ),
            ])
        except TransactionCanceled as e:
            if e.failed(1):
                current = self.get_account(session.account_id)
                error = self._withdrawal_refusal(current, coins) or InsufficientAvailableBalance(
                    "You don't have enough available coins for this withdrawal.")
                log_refusal('withdrawal.request', error, userId=session.account_id, coins=coins)
                raise error
            raise PersistenceError('Failed to create withdrawal request')

        log_transition('withdrawal.requested', withdrawalId=withdrawal['withdrawalId'],
                       userId=session.account_id, coins=coins)
        return withdrawal

    @staticmethod
    def _withdrawal_refusal(account: dict, coins: int):
        if account.get('pendingWithdrawalId'):
            return PendingWithdrawalExists(
                'Please wait for your pending withdrawal to be processed before requesting another.')
        if coins > available_coins(account):
            return InsufficientAvailableBalance(
                "You don't have enough available coins (excluding pending withdrawals).")
        return None

    def decide_withdrawal(self, session: Session, withdrawal_id: str, decision) -> dict:
        """
        Approve (debit the reserved coins) or reject (release them) a Pending withdrawal.
        Admin only.
        """
        session.require_role(Role.ADMIN)
        decision = parse_decision(decision)
        key = {'withdrawalId': withdrawal_id}
        withdrawal = self._get(config.WITHDRAWALS_TABLE, key, 'Withdrawal')

        if withdrawal.get('status') != WithdrawalStatus.PENDING:
            error = AlreadyDecided(f"Withdrawal is already {withdrawal.get('status')}")
            log_refusal('withdrawal.decide', error, withdrawalId=withdrawal_id)
            raise error

        timestamp = now_iso()
        user_id = withdrawal['userId']
        coins = int(withdrawal['coins'])
        amount_usd = Decimal(str(withdrawal['amountUsd'])).quantize(CENTS)
        new_status = WithdrawalStatus.APPROVED if decision == Decision.APPROVE else WithdrawalStatus.REJECTED

        operations = [
            Update(
                table=config.WITHDRAWALS_TABLE,
                key=key,
                set={'status': new_status, 'updatedAt': timestamp},
                condition=Attr('status').eq(WithdrawalStatus.PENDING),
            ),
        ]
        if decision == Decision.APPROVE:
            operations.append(Update(
                table=config.ACCOUNTS_TABLE,
                key={'userId': user_id},
                add={'coins': -coins},
                set={'reservedCoins': 0, 'updatedAt': timestamp},
                remove=['pendingWithdrawalId'],
                condition=Attr('coins').gte(coins) & Attr('pendingWithdrawalId').eq(withdrawal_id),
            ))
        else:
            account = self.store.get_item(config.ACCOUNTS_TABLE, {'userId': user_id})
            if account and account.get('pendingWithdrawalId') == withdrawal_id:
                operations.append(Update(
                    table=config.ACCOUNTS_TABLE,
                    key={'userId': user_id},
                    set={'reservedCoins': 0, 'updatedAt': timestamp},
                    remove=['pendingWithdrawalId'],
                    condition=Attr('pendingWithdrawalId').eq(withdrawal_id),
                ))

        try:
            self.store.transact(operations)
        except TransactionCanceled as e:
            if e.failed(0):
                error = AlreadyDecided('Withdrawal was already processed')
            elif e.failed(1):
                account = self.store.get_item(config.ACCOUNTS_TABLE, {'userId': user_id})
                if not account:
                    error = NotFound('Account not found')
                elif int(account.get('coins', 0)) < coins:
                    error = InsufficientFunds('User balance no longer covers this withdrawal')
                else:
                    error = PersistenceError('Withdrawal reservation is missing on the account')
            else:
                raise PersistenceError('Failed to save decision')
            log_refusal('withdrawal.decide', error, withdrawalId=withdrawal_id)
            raise error

        if decision == Decision.APPROVE:
            log_transition('withdrawal.approved', withdrawalId=withdrawal_id, userId=user_id, coins=coins)
            notify(self.store, user_id, f'Your withdrawal of ${amount_usd} has been approved!',
                   '/dashboard/withdrawals')
        else:
            log_transition('withdrawal.rejected', withdrawalId=withdrawal_id, userId=user_id)
            notify(self.store, user_id, f'Your withdrawal request of ${amount_usd} was rejected.',
                   '/dashboard/withdrawals')

        return {**withdrawal, 'status': new_status, 'updatedAt': timestamp}

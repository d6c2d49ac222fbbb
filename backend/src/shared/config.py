"""
Configuration module for Lambda handlers.
Loads all environment variables needed by the platform.
"""
import os


class Config:
    """Centralized configuration from environment variables."""

    # AWS Region
    AWS_REGION = os.environ.get('AWS_REGION', 'us-east-1')

    # DynamoDB Tables
    ACCOUNTS_TABLE = os.environ.get('ACCOUNTS_TABLE', 'Accounts')
    TASKS_TABLE = os.environ.get('TASKS_TABLE', 'Tasks')
    SUBMISSIONS_TABLE = os.environ.get('SUBMISSIONS_TABLE', 'Submissions')
    WITHDRAWALS_TABLE = os.environ.get('WITHDRAWALS_TABLE', 'Withdrawals')
    NOTIFICATIONS_TABLE = os.environ.get('NOTIFICATIONS_TABLE', 'Notifications')
    PAYMENTS_TABLE = os.environ.get('PAYMENTS_TABLE', 'Payments')

    # Withdrawals: 20 coins = $1, minimum 200 coins ($10)
    MIN_WITHDRAWAL_COINS = int(os.environ.get('MIN_WITHDRAWAL_COINS', '200'))
    COINS_PER_USD = int(os.environ.get('COINS_PER_USD', '20'))

    # Coin purchases
    MIN_PURCHASE_COINS = int(os.environ.get('MIN_PURCHASE_COINS', '50'))
    CUSTOM_COIN_PRICE_USD = os.environ.get('CUSTOM_COIN_PRICE_USD', '0.05')

    # Signup bonus per role
    WORKER_SIGNUP_BONUS = int(os.environ.get('WORKER_SIGNUP_BONUS', '10'))
    BUYER_SIGNUP_BONUS = int(os.environ.get('BUYER_SIGNUP_BONUS', '50'))
    ADMIN_SIGNUP_BONUS = int(os.environ.get('ADMIN_SIGNUP_BONUS', '100'))


config = Config()

"""
Withdraw Funds Handler.
Creates a Pending withdrawal request; coins stay in the balance but are
reserved until an admin approves or rejects the request.
"""
from shared.auth import load_session
from shared.config import config
from shared.dynamo import get_store
from shared.ledger import Ledger
from shared.logging import log_event
from shared.utils import error_response, format_response, parse_body, unauthorized


def handler(event, context):
    """
    POST /wallet/withdrawals
    Body: { "coins": 200, "paymentSystem": "paypal", "accountNumber": "worker@email.com" }

    Minimum withdrawal is MIN_WITHDRAWAL_COINS (200 coins = $10).
    """
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        body = parse_body(event)
        withdrawal = Ledger(store).request_withdrawal(
            session,
            body.get('coins'),
            body.get('paymentSystem'),
            body.get('accountNumber'),
        )

        return format_response(201, {
            'message': 'Withdrawal requested! Your request is being processed by admin.',
            'withdrawalId': withdrawal['withdrawalId'],
            'coins': withdrawal['coins'],
            'amountUsd': withdrawal['amountUsd'],
            'rate': f"{config.COINS_PER_USD} coins = $1",
            'withdrawal': withdrawal,
        })

    except Exception as e:
        return error_response(e)

"""
Purchase Coins Handler - Mock payment.
POST /wallet/purchase
"""
from shared.auth import load_session
from shared.config import config
from shared.dynamo import get_store
from shared.ledger import Ledger
from shared.logging import log_event
from shared.utils import error_response, format_response, parse_body, unauthorized


def handler(event, context):
    """
    POST /wallet/purchase
    Body: { "package": 250 } or { "customCoins": 75 }

    Mock purchase - in production this would integrate with Stripe/PayPal.
    """
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        body = parse_body(event)
        payment = Ledger(store).purchase_coins(
            session,
            package_coins=body.get('package'),
            custom_coins=body.get('customCoins'),
        )
        account = store.get_item(config.ACCOUNTS_TABLE, {'userId': session.account_id}) or {}

        return format_response(200, {
            'message': f"{payment['coins']} coins added to your account.",
            'paymentId': payment['paymentId'],
            'coins': payment['coins'],
            'amountUsd': payment['amountUsd'],
            'newBalance': account.get('coins', 0),
        })

    except Exception as e:
        return error_response(e)

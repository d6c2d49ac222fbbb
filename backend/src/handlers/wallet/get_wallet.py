"""
Get Wallet Handler.
GET /wallet - balance refresh: coins, reserved coins and what is withdrawable.
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.logging import log_event
from shared.models import coins_to_usd
from shared.queries import get_account
from shared.utils import error_response, format_response, unauthorized


def handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        account = get_account(store, session)
        return format_response(200, {
            'userId': account['userId'],
            'displayName': account.get('displayName'),
            'role': account.get('role'),
            'coins': account.get('coins', 0),
            'reservedCoins': account.get('reservedCoins', 0),
            'availableCoins': account['availableCoins'],
            'availableUsd': coins_to_usd(account['availableCoins']),
        })

    except Exception as e:
        return error_response(e)

"""
Payment History Handler.
GET /wallet/payments - the caller's coin purchases, newest first.
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.logging import log_event
from shared.queries import list_payments
from shared.utils import error_response, format_response, unauthorized


def handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        return format_response(200, list_payments(store, session))

    except Exception as e:
        return error_response(e)

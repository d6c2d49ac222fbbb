"""
Withdrawal listing handlers.
- handler:       GET /wallet/withdrawals (caller's requests with reserved coins)
- admin_handler: GET /admin/withdrawals?status=Pending
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.logging import log_event
from shared.queries import list_my_withdrawals, list_withdrawals
from shared.utils import error_response, format_response, get_query_param, unauthorized


def handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        return format_response(200, list_my_withdrawals(store, session))

    except Exception as e:
        return error_response(e)


def admin_handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        status = get_query_param(event, 'status')
        if status == 'all':
            status = None
        return format_response(200, list_withdrawals(store, session, status=status))

    except Exception as e:
        return error_response(e)

"""
Dashboard Handler.
GET /dashboard - role-specific navigation menu and landing summary.
"""
from shared.auth import load_session
from shared.dashboard import build_dashboard
from shared.dynamo import get_store
from shared.logging import log_event
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
        return format_response(200, build_dashboard(store, session, account))

    except Exception as e:
        return error_response(e)

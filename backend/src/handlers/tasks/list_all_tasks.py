"""
Manage Tasks Handler (admin).
GET /admin/tasks - every task plus the coins still escrowed in open slots.
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.logging import log_event
from shared.queries import list_all_tasks
from shared.utils import error_response, format_response, unauthorized


def handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        return format_response(200, list_all_tasks(store, session))

    except Exception as e:
        return error_response(e)

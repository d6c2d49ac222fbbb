"""
Mark Notifications Read Handlers.
- handler:     POST /notifications/{notificationId}/read
- all_handler: POST /notifications/read-all
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.logging import log_event
from shared.notifications import mark_all_read, mark_read
from shared.utils import error_response, format_response, get_path_param, unauthorized


def handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        notification = mark_read(store, session, get_path_param(event, 'notificationId'))
        return format_response(200, {'notification': notification})

    except Exception as e:
        return error_response(e)


def all_handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        updated = mark_all_read(store, session)
        return format_response(200, {'message': f'{updated} notifications marked as read', 'updated': updated})

    except Exception as e:
        return error_response(e)

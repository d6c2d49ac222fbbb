"""
Get Task Handler.
GET /tasks/{taskId}
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.logging import log_event
from shared.queries import get_task
from shared.utils import error_response, format_response, get_path_param, unauthorized


def handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        task = get_task(store, session, get_path_param(event, 'taskId'))
        return format_response(200, {'task': task})

    except Exception as e:
        return error_response(e)

"""
List My Tasks Handler.
GET /buyer/tasks - tasks funded by the caller, newest first.
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.logging import log_event
from shared.queries import list_owner_tasks
from shared.utils import error_response, format_response, unauthorized


def handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        tasks = list_owner_tasks(store, session)
        return format_response(200, {'tasks': tasks, 'totalTasks': len(tasks)})

    except Exception as e:
        return error_response(e)

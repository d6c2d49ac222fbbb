"""
Delete Task Handler.
DELETE /tasks/{taskId} - task owner or admin.
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.ledger import Ledger
from shared.logging import log_event
from shared.utils import error_response, format_response, get_path_param, unauthorized


def handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        task = Ledger(store).delete_task(session, get_path_param(event, 'taskId'))
        return format_response(200, {
            'message': 'Task deleted',
            'taskId': task['taskId'],
        })

    except Exception as e:
        return error_response(e)

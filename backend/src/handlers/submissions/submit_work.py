"""
Submit Work Handler.
Records a Pending submission and takes one worker slot of the task.
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.ledger import Ledger
from shared.logging import log_event
from shared.utils import error_response, format_response, get_path_param, parse_body, unauthorized


def handler(event, context):
    """
    POST /worker/tasks/{taskId}/submit
    Body: { "submissionDetails": "..." }
    """
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        body = parse_body(event)
        submission = Ledger(store).submit_work(
            session,
            get_path_param(event, 'taskId'),
            body.get('submissionDetails'),
        )

        return format_response(201, {
            'message': 'Your work has been submitted for review.',
            'submissionId': submission['submissionId'],
            'submission': submission,
        })

    except Exception as e:
        return error_response(e)

"""
Submission listing handlers.
- worker_handler:  GET /worker/submissions
- pending_handler: GET /buyer/submissions (pending reviews across the buyer's tasks)
- task_handler:    GET /buyer/tasks/{taskId}/submissions
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.logging import log_event
from shared.queries import list_pending_reviews, list_task_submissions, list_worker_submissions
from shared.utils import error_response, format_response, get_path_param, unauthorized


def _list(event, fetch):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        submissions = fetch(store, session)
        return format_response(200, {'submissions': submissions, 'total': len(submissions)})

    except Exception as e:
        return error_response(e)


def worker_handler(event, context):
    return _list(event, list_worker_submissions)


def pending_handler(event, context):
    return _list(event, list_pending_reviews)


def task_handler(event, context):
    task_id = get_path_param(event, 'taskId')
    return _list(event, lambda store, session: list_task_submissions(store, session, task_id))

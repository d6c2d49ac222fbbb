"""
Decide Submission Handler.
Approve credits the worker with the task reward; reject returns the slot to the task.
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.ledger import Ledger
from shared.logging import log_event
from shared.models import SubmissionStatus
from shared.utils import error_response, format_response, get_path_param, parse_body, unauthorized


def handler(event, context):
    """
    POST /submissions/{submissionId}/decision
    Body: { "decision": "APPROVE" | "REJECT" }
    """
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        body = parse_body(event)
        submission = Ledger(store).decide_submission(
            session,
            get_path_param(event, 'submissionId'),
            body.get('decision'),
        )

        if submission['status'] == SubmissionStatus.APPROVED:
            message = f"{submission['reward']} coins sent to worker."
        else:
            message = 'Submission rejected. The worker slot is open again.'

        return format_response(200, {'message': message, 'submission': submission})

    except Exception as e:
        return error_response(e)

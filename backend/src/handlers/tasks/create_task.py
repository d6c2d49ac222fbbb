"""
Create Task Handler.
Funds a new task from the buyer's balance (reward x workers escrowed up front).
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.ledger import Ledger
from shared.logging import log_event
from shared.utils import error_response, format_response, parse_body, unauthorized


def handler(event, context):
    """
    POST /buyer/tasks
    Body: {
        "title": "...", "description": "...", "submissionInfo": "...",
        "imageUrl": "...", "requiredWorkers": 5, "payableAmount": 10,
        "completionDate": "2026-12-31"
    }
    """
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        body = parse_body(event)
        task = Ledger(store).fund_task(
            session,
            reward=body.get('payableAmount'),
            slots=body.get('requiredWorkers'),
            title=body.get('title'),
            description=body.get('description'),
            submission_info=body.get('submissionInfo'),
            deadline=body.get('completionDate'),
            image_url=body.get('imageUrl'),
        )

        cost = task['reward'] * task['requiredWorkers']
        return format_response(201, {
            'message': f'Task created! {cost} coins deducted from your balance.',
            'task': task,
        })

    except Exception as e:
        return error_response(e)

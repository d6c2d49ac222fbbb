"""
Decide Withdrawal Handler (admin).
Approve debits the reserved coins from the user; reject releases them.
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.ledger import Ledger
from shared.logging import log_event
from shared.models import WithdrawalStatus
from shared.utils import error_response, format_response, get_path_param, parse_body, unauthorized


def handler(event, context):
    """
    POST /admin/withdrawals/{withdrawalId}/decision
    Body: { "decision": "APPROVE" | "REJECT" }
    """
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        body = parse_body(event)
        withdrawal = Ledger(store).decide_withdrawal(
            session,
            get_path_param(event, 'withdrawalId'),
            body.get('decision'),
        )

        if withdrawal['status'] == WithdrawalStatus.APPROVED:
            message = f"${withdrawal['amountUsd']} sent to {withdrawal.get('userName') or 'user'}."
        else:
            message = 'Withdrawal request rejected.'

        return format_response(200, {'message': message, 'withdrawal': withdrawal})

    except Exception as e:
        return error_response(e)

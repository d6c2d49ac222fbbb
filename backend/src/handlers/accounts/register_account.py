"""
Register Account Handler.
Creates the caller's account with the role's signup bonus
(worker 10, buyer 50, admin 100 coins).
"""
from shared.auth import get_session
from shared.dynamo import get_store
from shared.ledger import Ledger
from shared.logging import log_event
from shared.utils import error_response, format_response, parse_body, unauthorized


def handler(event, context):
    """
    POST /accounts
    Body: { "role": "worker" | "buyer" | "admin", "displayName": "...", "email": "...", "avatarUrl": "..." }
    """
    log_event(event)

    try:
        session = get_session(event)
        if not session:
            return unauthorized()

        body = parse_body(event)
        account = Ledger(get_store()).register_account(
            session,
            role=str(body.get('role', '')).lower(),
            display_name=body.get('displayName'),
            email=body.get('email'),
            avatar_url=body.get('avatarUrl'),
        )

        return format_response(201, {
            'message': f"Account created successfully. You received {account['coins']} bonus coins!",
            'account': account,
        })

    except Exception as e:
        return error_response(e)

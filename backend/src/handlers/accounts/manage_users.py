"""
Manage Users Handler (admin).
- GET   /admin/users            list accounts
- PATCH /admin/users/{userId}   Body: { "role": "buyer" } and/or { "coins": 120 }
"""
from shared.auth import load_session
from shared.dynamo import get_store
from shared.ledger import Ledger
from shared.logging import log_event
from shared.queries import list_users
from shared.utils import error_response, format_response, get_path_param, parse_body, unauthorized


def handler(event, context):
    log_event(event)

    try:
        store = get_store()
        session = load_session(event, store)
        if not session:
            return unauthorized()

        if event.get('httpMethod', 'GET') == 'GET':
            users = list_users(store, session)
            return format_response(200, {'users': users, 'totalUsers': len(users)})

        user_id = get_path_param(event, 'userId')
        body = parse_body(event)
        role = body.get('role')
        account = Ledger(store).update_account(
            session,
            user_id,
            role=str(role).lower() if role is not None else None,
            coins=body.get('coins'),
        )

        return format_response(200, {'message': 'User updated', 'user': account})

    except Exception as e:
        return error_response(e)

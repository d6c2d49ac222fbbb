"""
Authentication utilities for extracting the caller's session from Cognito tokens.
"""
from dataclasses import dataclass
from typing import Optional

from shared.config import config
from shared.errors import Forbidden
from shared.models import Role


@dataclass(frozen=True)
class Session:
    """The authenticated caller, passed explicitly into every ledger call."""
    account_id: str
    role: str
    display_name: str = ''
    email: str = ''

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def require_role(self, *roles: str) -> None:
        """Raise Forbidden unless the session holds one of the given roles."""
        if self.role not in roles:
            raise Forbidden(f"Only {' or '.join(roles)} accounts can do this")


def get_claims(event: dict) -> dict:
    """Return the Cognito authorizer claims, or an empty dict."""
    try:
        return event['requestContext']['authorizer']['claims'] or {}
    except (KeyError, TypeError):
        return {}


def get_user_sub(event: dict) -> Optional[str]:
    """
    Extract user sub (unique ID) from Cognito authorizer claims.

    Args:
        event: API Gateway Lambda proxy event

    Returns:
        User sub string or None if not authenticated
    """
    return get_claims(event).get('sub')


def get_user_groups(event: dict) -> list:
    """Extract user groups (worker, buyer, admin) from Cognito claims."""
    groups = get_claims(event).get('cognito:groups', '')
    if isinstance(groups, str):
        return groups.split(',') if groups else []
    return groups or []


def get_role(event: dict) -> str:
    """
    Resolve the single role of the caller.
    Admin wins over buyer, buyer over worker; accounts without a group are workers.
    """
    groups = get_user_groups(event)
    for role in (Role.ADMIN, Role.BUYER, Role.WORKER):
        if role in groups:
            return role
    return Role.WORKER


def get_session(event: dict) -> Optional[Session]:
    """Build a Session from the request, or None when unauthenticated."""
    claims = get_claims(event)
    user_id = claims.get('sub')
    if not user_id:
        return None
    return Session(
        account_id=user_id,
        role=get_role(event),
        display_name=claims.get('name', ''),
        email=claims.get('email', ''),
    )


def load_session(event: dict, store) -> Optional[Session]:
    """
    Resolve the session at request start.
    The stored account's role wins over token groups.
    """
    session = get_session(event)
    if session is None:
        return None

    account = store.get_item(config.ACCOUNTS_TABLE, {'userId': session.account_id})
    if not account:
        return session
    return Session(
        account_id=session.account_id,
        role=account.get('role', session.role),
        display_name=account.get('displayName') or session.display_name,
        email=account.get('email') or session.email,
    )

"""
User-facing notifications.
Inserts are best effort: a failed notification never blocks the ledger
transition that produced it.
"""
import uuid
from typing import Optional

from boto3.dynamodb.conditions import Attr, Key

from shared.auth import Session
from shared.config import config
from shared.dynamo import ConditionFailed, Update
from shared.errors import NotFound
from shared.logging import logger
from shared.utils import now_iso


def notify(store, recipient_id: str, message: str, action_route: Optional[str] = None) -> Optional[dict]:
    """Insert a notification; returns the item, or None if the insert failed."""
    item = {
        'notificationId': str(uuid.uuid4()),
        'userId': recipient_id,
        'message': message,
        'isRead': False,
        'createdAt': now_iso(),
    }
    if action_route:
        item['actionRoute'] = action_route

    try:
        store.put_item(config.NOTIFICATIONS_TABLE, item)
        return item
    except Exception as e:
        logger.warning(f"Notification to {recipient_id} not saved (non-critical): {e}")
        return None


def list_notifications(store, session: Session) -> dict:
    items = store.query(
        config.NOTIFICATIONS_TABLE,
        Key('userId').eq(session.account_id),
        index_name='byUser',
    )
    items.sort(key=lambda n: n.get('createdAt', ''), reverse=True)
    return {
        'notifications': items,
        'unreadCount': len([n for n in items if not n.get('isRead')]),
    }


def mark_read(store, session: Session, notification_id: str) -> dict:
    """Mark one of the caller's notifications as read."""
    try:
        return store.update_item(Update(
            table=config.NOTIFICATIONS_TABLE,
            key={'notificationId': notification_id},
            set={'isRead': True},
            condition=Attr('userId').eq(session.account_id),
        ))
    except ConditionFailed:
        raise NotFound('Notification not found')


def mark_all_read(store, session: Session) -> int:
    """Mark every unread notification of the caller as read; returns how many."""
    unread = store.query(
        config.NOTIFICATIONS_TABLE,
        Key('userId').eq(session.account_id),
        index_name='byUser',
        filter_expression=Attr('isRead').eq(False),
    )
    for notification in unread:
        store.update_item(Update(
            table=config.NOTIFICATIONS_TABLE,
            key={'notificationId': notification['notificationId']},
            set={'isRead': True},
        ))
    return len(unread)

"""
In-memory stand-in for DynamoStore.

Evaluates the same boto3 Attr/Key conditions the ledger sends to DynamoDB and
applies transactions all-or-nothing, reporting cancellation reasons in item
order like TransactionCanceledException does.
"""
import copy
import json
import operator
from collections import defaultdict
from datetime import date, timedelta

from shared.config import config
from shared.dynamo import ConditionFailed, Delete, Put, TransactionCanceled, Update

KEY_ATTRIBUTES = {
    config.ACCOUNTS_TABLE: 'userId',
    config.TASKS_TABLE: 'taskId',
    config.SUBMISSIONS_TABLE: 'submissionId',
    config.WITHDRAWALS_TABLE: 'withdrawalId',
    config.NOTIFICATIONS_TABLE: 'notificationId',
    config.PAYMENTS_TABLE: 'paymentId',
}

# A deadline comfortably in the future
FUTURE = (date.today() + timedelta(days=30)).isoformat()

COMPARATORS = {
    '=': operator.eq,
    '<>': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


def evaluate(condition, item: dict) -> bool:
    """Evaluate a boto3 condition against a plain item dict."""
    expression = condition.get_expression()
    op = expression['operator']
    values = expression['values']

    if op == 'AND':
        return all(evaluate(v, item) for v in values)
    if op == 'OR':
        return any(evaluate(v, item) for v in values)
    if op == 'NOT':
        return not evaluate(values[0], item)

    name = values[0].name
    if op == 'attribute_exists':
        return name in item
    if op == 'attribute_not_exists':
        return name not in item
    if name not in item:
        return False

    actual = item[name]
    if op == 'contains':
        return values[1] in actual
    if op == 'begins_with':
        return str(actual).startswith(values[1])
    return COMPARATORS[op](actual, values[1])


class FakeStore:
    """
    Deterministic store for unit tests.

    - `tables[name][key]` holds items
    - `transactions` captures every committed transaction
    - `before_transact` lets a test land a concurrent write between the
      ledger's read and its transaction
    - `failing_tables` makes put_item raise for those tables
    """

    def __init__(self):
        self.tables = defaultdict(dict)
        self.transactions = []
        self.before_transact = None
        self.failing_tables = set()

    # -- helpers --------------------------------------------------------

    def add(self, table_name: str, item: dict) -> dict:
        self.tables[table_name][item[KEY_ATTRIBUTES[table_name]]] = copy.deepcopy(item)
        return item

    def item(self, table_name: str, key_value: str):
        return self.tables[table_name].get(key_value)

    def balance(self, user_id: str) -> int:
        return self.tables[config.ACCOUNTS_TABLE][user_id]['coins']

    def _current(self, table_name: str, key: dict) -> dict:
        return self.tables[table_name].get(next(iter(key.values()))) or {}

    @staticmethod
    def _check(condition, item: dict) -> bool:
        return condition is None or evaluate(condition, item)

    def _apply(self, op) -> dict:
        if isinstance(op, Put):
            return self.add(op.table, op.item)
        key_value = next(iter(op.key.values()))
        if isinstance(op, Delete):
            self.tables[op.table].pop(key_value, None)
            return {}

        item = self.tables[op.table].setdefault(key_value, dict(op.key))
        for attr, value in op.set.items():
            item[attr] = copy.deepcopy(value)
        for attr, value in op.add.items():
            if isinstance(value, (set, frozenset)):
                item[attr] = set(item.get(attr, set())) | set(value)
            else:
                item[attr] = item.get(attr, 0) + value
        for attr, value in op.delete.items():
            remaining = set(item.get(attr, set())) - set(value)
            if remaining:
                item[attr] = remaining
            else:
                item.pop(attr, None)
        for attr in op.remove:
            item.pop(attr, None)
        return copy.deepcopy(item)

    # -- store interface ------------------------------------------------

    def get_item(self, table_name, key):
        item = self.tables[table_name].get(next(iter(key.values())))
        return copy.deepcopy(item) if item is not None else None

    def put_item(self, table_name, item, condition=None):
        if table_name in self.failing_tables:
            raise RuntimeError(f"{table_name} unavailable")
        key = {KEY_ATTRIBUTES[table_name]: item[KEY_ATTRIBUTES[table_name]]}
        if not self._check(condition, self._current(table_name, key)):
            raise ConditionFailed(f"Put on {table_name} refused")
        self.add(table_name, item)

    def update_item(self, update):
        if not self._check(update.condition, self._current(update.table, update.key)):
            raise ConditionFailed(f"Update on {update.table} refused")
        return self._apply(update)

    def delete_item(self, table_name, key, condition=None):
        if not self._check(condition, self._current(table_name, key)):
            raise ConditionFailed(f"Delete on {table_name} refused")
        self.tables[table_name].pop(next(iter(key.values())), None)

    def query(self, table_name, key_condition, index_name=None, filter_expression=None):
        return [
            copy.deepcopy(item) for item in self.tables[table_name].values()
            if evaluate(key_condition, item) and self._check(filter_expression, item)
        ]

    def scan(self, table_name, filter_expression=None):
        return [copy.deepcopy(item) for item in self.tables[table_name].values()
                if self._check(filter_expression, item)]

    def transact(self, operations):
        if self.before_transact:
            hook, self.before_transact = self.before_transact, None
            hook(self)

        reasons = []
        for op in operations:
            key = op.key if not isinstance(op, Put) else {
                KEY_ATTRIBUTES[op.table]: op.item[KEY_ATTRIBUTES[op.table]]
            }
            ok = self._check(op.condition, self._current(op.table, key))
            reasons.append('None' if ok else 'ConditionalCheckFailed')
        if 'ConditionalCheckFailed' in reasons:
            raise TransactionCanceled(reasons)

        for op in operations:
            self._apply(op)
        self.transactions.append(operations)


def make_event(session=None, body=None, path=None, query=None, method='POST'):
    """Build an API Gateway proxy event carrying Cognito claims for `session`."""
    event = {
        'httpMethod': method,
        'pathParameters': path or {},
        'queryStringParameters': query,
        'body': json.dumps(body) if body is not None else None,
        'requestContext': {},
    }
    if session is not None:
        event['requestContext'] = {
            'authorizer': {
                'claims': {
                    'sub': session.account_id,
                    'email': session.email,
                    'name': session.display_name,
                    'cognito:groups': session.role,
                }
            }
        }
    return event

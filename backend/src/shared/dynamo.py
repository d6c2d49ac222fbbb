"""
DynamoDB access layer for the coin ledger.

Reads go through the boto3 resource API. Every coin-moving write is a single
transact_write_items call whose ConditionExpressions carry the invariants
(non-negative balances and slots, Pending-only decisions, one pending
withdrawal per account), so two concurrent callers cannot both pass a check.
"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional

import boto3
from boto3.dynamodb.conditions import ConditionBase, ConditionExpressionBuilder
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from .config import config
from .errors import PersistenceError
from .logging import logger

# DynamoDB allows at most 100 items per transaction
MAX_TRANSACTION_ITEMS = 100


class ConditionFailed(Exception):
    """A conditional single-item write was refused by the store."""


class TransactionCanceled(ConditionFailed):
    """
    A transaction was cancelled.

    `reasons` holds one code per transaction item, in item order
    ('None' for items that were not the cause).
    """

    def __init__(self, reasons: List[str]):
        self.reasons = list(reasons)
        super().__init__(f"Transaction cancelled: {self.reasons}")

    def failed(self, index: int) -> bool:
        """True when the item at `index` failed its condition."""
        if index >= len(self.reasons):
            return False
        return self.reasons[index] not in ('None', None)


@dataclass
class Put:
    table: str
    item: Dict[str, Any]
    condition: Optional[ConditionBase] = None


@dataclass
class Update:
    """
    A single-item update.

    `add` increments numbers (negative values decrement) or adds set members,
    `delete` removes set members, `remove` drops attributes.
    """
    table: str
    key: Dict[str, Any]
    set: Dict[str, Any] = field(default_factory=dict)
    add: Dict[str, Any] = field(default_factory=dict)
    delete: Dict[str, Any] = field(default_factory=dict)
    remove: List[str] = field(default_factory=list)
    condition: Optional[ConditionBase] = None


@dataclass
class Delete:
    table: str
    key: Dict[str, Any]
    condition: Optional[ConditionBase] = None


def build_update_expression(update: Update) -> tuple:
    """
    Render an Update into (UpdateExpression, names, values).

    Placeholders use the #u/:u prefix so they never collide with the
    #n/:v placeholders produced by ConditionExpressionBuilder.
    """
    names = {}
    values = {}
    clauses = []

    def placeholder(attr):
        index = len(names)
        names[f'#u{index}'] = attr
        return f'#u{index}', f':u{index}'

    set_parts = []
    for attr, value in update.set.items():
        name, val = placeholder(attr)
        set_parts.append(f'{name} = {val}')
        values[val] = value
    if set_parts:
        clauses.append('SET ' + ', '.join(set_parts))

    for verb, attrs in (('ADD', update.add), ('DELETE', update.delete)):
        parts = []
        for attr, value in attrs.items():
            name, val = placeholder(attr)
            parts.append(f'{name} {val}')
            values[val] = value
        if parts:
            clauses.append(f'{verb} ' + ', '.join(parts))

    if update.remove:
        clauses.append('REMOVE ' + ', '.join(placeholder(attr)[0] for attr in update.remove))

    return ' '.join(clauses), names, values


def build_condition(condition: Optional[ConditionBase]) -> tuple:
    """Render a boto3 condition into (ConditionExpression, names, values)."""
    if condition is None:
        return None, {}, {}
    built = ConditionExpressionBuilder().build_expression(condition)
    return (
        built.condition_expression,
        built.attribute_name_placeholders,
        built.attribute_value_placeholders,
    )


class DynamoStore:
    """Ledger store backed by DynamoDB tables named in config."""

    def __init__(self, resource=None, client=None):
        self.resource = resource or boto3.resource('dynamodb', region_name=config.AWS_REGION)
        self.client = client or boto3.client('dynamodb', region_name=config.AWS_REGION)
        self.serializer = TypeSerializer()

    def _table(self, table_name: str):
        return self.resource.Table(table_name)

    def get_item(self, table_name: str, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Get a single item with a strongly consistent read."""
        try:
            response = self._table(table_name).get_item(Key=key, ConsistentRead=True)
            return response.get('Item')
        except ClientError as e:
            logger.error(f"Error getting item from {table_name}: {e}")
            raise PersistenceError(f"Could not read from {table_name}") from e

    def put_item(self, table_name: str, item: Dict[str, Any], condition: Optional[ConditionBase] = None) -> None:
        params = {'Item': item}
        expression, names, values = build_condition(condition)
        if expression:
            params['ConditionExpression'] = expression
            params['ExpressionAttributeNames'] = names
            if values:
                params['ExpressionAttributeValues'] = values
        try:
            self._table(table_name).put_item(**params)
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise ConditionFailed(f"Put on {table_name} refused") from e
            logger.error(f"Error writing item to {table_name}: {e}")
            raise PersistenceError(f"Could not write to {table_name}") from e

    def update_item(self, update: Update) -> Dict[str, Any]:
        """Apply a single-item update and return the new item."""
        params = self._update_params(update)
        params['ReturnValues'] = 'ALL_NEW'
        try:
            response = self._table(update.table).update_item(**params)
            return response.get('Attributes', {})
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise ConditionFailed(f"Update on {update.table} refused") from e
            logger.error(f"Error updating item in {update.table}: {e}")
            raise PersistenceError(f"Could not update {update.table}") from e

    def delete_item(self, table_name: str, key: Dict[str, Any], condition: Optional[ConditionBase] = None) -> None:
        params = {'Key': key}
        expression, names, values = build_condition(condition)
        if expression:
            params['ConditionExpression'] = expression
            params['ExpressionAttributeNames'] = names
            if values:
                params['ExpressionAttributeValues'] = values
        try:
            self._table(table_name).delete_item(**params)
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise ConditionFailed(f"Delete on {table_name} refused") from e
            logger.error(f"Error deleting item from {table_name}: {e}")
            raise PersistenceError(f"Could not delete from {table_name}") from e

    def query(
        self,
        table_name: str,
        key_condition: ConditionBase,
        index_name: Optional[str] = None,
        filter_expression: Optional[ConditionBase] = None
    ) -> List[Dict[str, Any]]:
        """Query a table or index, following pagination."""
        params = {'KeyConditionExpression': key_condition}
        if index_name:
            params['IndexName'] = index_name
        if filter_expression is not None:
            params['FilterExpression'] = filter_expression
        return self._paginate(table_name, 'query', params)

    def scan(self, table_name: str, filter_expression: Optional[ConditionBase] = None) -> List[Dict[str, Any]]:
        """Scan a whole table, following pagination."""
        params = {}
        if filter_expression is not None:
            params['FilterExpression'] = filter_expression
        return self._paginate(table_name, 'scan', params)

    def _paginate(self, table_name: str, operation: str, params: dict) -> List[Dict[str, Any]]:
        table = self._table(table_name)
        items = []
        try:
            while True:
                response = getattr(table, operation)(**params)
                items.extend(response.get('Items', []))
                last_key = response.get('LastEvaluatedKey')
                if not last_key:
                    return items
                params['ExclusiveStartKey'] = last_key
        except ClientError as e:
            logger.error(f"Error running {operation} on {table_name}: {e}")
            raise PersistenceError(f"Could not read from {table_name}") from e

    def transact(self, operations: list) -> None:
        """
        Execute Put/Update/Delete operations atomically.

        Raises:
            TransactionCanceled: a condition failed; reasons follow item order
            PersistenceError: any other store failure
        """
        if len(operations) > MAX_TRANSACTION_ITEMS:
            raise PersistenceError(f"Transaction too large ({len(operations)} items)")

        transact_items = [self.to_transact_item(op) for op in operations]
        try:
            self.client.transact_write_items(TransactItems=transact_items)
        except ClientError as e:
            if e.response['Error']['Code'] == 'TransactionCanceledException':
                reasons = [r.get('Code', 'None') for r in e.response.get('CancellationReasons', [])]
                raise TransactionCanceled(reasons) from e
            logger.error(f"Transaction error: {e}")
            raise PersistenceError('Could not save changes') from e

    def to_transact_item(self, op) -> Dict[str, Any]:
        """Render one operation in the low-level (typed) TransactItems format."""
        if isinstance(op, Put):
            body = {'TableName': op.table, 'Item': self._serialize(op.item)}
            expression, names, values = build_condition(op.condition)
            kind = 'Put'
        elif isinstance(op, Update):
            params = self._update_params(op)
            body = {
                'TableName': op.table,
                'Key': self._serialize(params.pop('Key')),
                'UpdateExpression': params.pop('UpdateExpression'),
            }
            expression = params.pop('ConditionExpression', None)
            names = params.pop('ExpressionAttributeNames', {})
            values = params.pop('ExpressionAttributeValues', {})
            kind = 'Update'
        elif isinstance(op, Delete):
            body = {'TableName': op.table, 'Key': self._serialize(op.key)}
            expression, names, values = build_condition(op.condition)
            kind = 'Delete'
        else:
            raise TypeError(f"Unsupported transaction operation: {op!r}")

        if expression:
            body['ConditionExpression'] = expression
        if names:
            body['ExpressionAttributeNames'] = names
        if values:
            body['ExpressionAttributeValues'] = self._serialize(values)
        return {kind: body}

    def _update_params(self, update: Update) -> Dict[str, Any]:
        update_expression, names, values = build_update_expression(update)
        params = {'Key': update.key, 'UpdateExpression': update_expression}
        expression, cond_names, cond_values = build_condition(update.condition)
        if expression:
            params['ConditionExpression'] = expression
            names.update(cond_names)
            values.update(cond_values)
        if names:
            params['ExpressionAttributeNames'] = names
        if values:
            params['ExpressionAttributeValues'] = values
        return params

    def _serialize(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return {k: self.serializer.serialize(v) for k, v in data.items()}


# Initialize the store lazily
_store = None


def get_store():
    """Get or create the process-wide store."""
    global _store
    if _store is None:
        _store = DynamoStore()
    return _store

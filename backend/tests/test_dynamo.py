"""
Tests for the DynamoDB access layer with boto3 mocked out.
"""
from unittest.mock import MagicMock

import pytest
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from shared.dynamo import (
    MAX_TRANSACTION_ITEMS,
    ConditionFailed,
    Delete,
    DynamoStore,
    Put,
    TransactionCanceled,
    Update,
    build_update_expression,
)
from shared.errors import PersistenceError


def client_error(code, **extra):
    response = {'Error': {'Code': code, 'Message': code}}
    response.update(extra)
    return ClientError(response, 'Operation')


@pytest.fixture()
def table():
    return MagicMock()


@pytest.fixture()
def dynamo_store(table):
    resource = MagicMock()
    resource.Table.return_value = table
    return DynamoStore(resource=resource, client=MagicMock())


class TestUpdateExpression:

    def test_all_clauses(self):
        update = Update(
            table='Accounts',
            key={'userId': 'u1'},
            set={'reservedCoins': 0},
            add={'coins': -200},
            delete={'activeWorkers': {'w1'}},
            remove=['pendingWithdrawalId'],
        )

        expression, names, values = build_update_expression(update)

        assert expression == 'SET #u0 = :u0 ADD #u1 :u1 DELETE #u2 :u2 REMOVE #u3'
        assert names == {
            '#u0': 'reservedCoins',
            '#u1': 'coins',
            '#u2': 'activeWorkers',
            '#u3': 'pendingWithdrawalId',
        }
        assert values == {':u0': 0, ':u1': -200, ':u2': {'w1'}}

    def test_add_only(self):
        expression, names, values = build_update_expression(
            Update(table='Tasks', key={'taskId': 't1'}, add={'remainingSlots': 1})
        )
        assert expression == 'ADD #u0 :u0'
        assert values == {':u0': 1}


class TestTransactItems:

    def test_put_is_typed(self, dynamo_store):
        item = dynamo_store.to_transact_item(
            Put('Tasks', {'taskId': 't1', 'reward': 10}, condition=Attr('taskId').not_exists())
        )

        assert item == {
            'Put': {
                'TableName': 'Tasks',
                'Item': {'taskId': {'S': 't1'}, 'reward': {'N': '10'}},
                'ConditionExpression': 'attribute_not_exists(#n0)',
                'ExpressionAttributeNames': {'#n0': 'taskId'},
            }
        }

    def test_update_merges_update_and_condition_placeholders(self, dynamo_store):
        item = dynamo_store.to_transact_item(Update(
            table='Accounts',
            key={'userId': 'u1'},
            add={'coins': -50},
            condition=Attr('coins').gte(50),
        ))['Update']

        assert item['Key'] == {'userId': {'S': 'u1'}}
        assert item['UpdateExpression'] == 'ADD #u0 :u0'
        assert item['ConditionExpression'] == '#n0 >= :v0'
        assert item['ExpressionAttributeNames'] == {'#u0': 'coins', '#n0': 'coins'}
        assert item['ExpressionAttributeValues'] == {':u0': {'N': '-50'}, ':v0': {'N': '50'}}

    def test_delete(self, dynamo_store):
        item = dynamo_store.to_transact_item(Delete('Tasks', {'taskId': 't1'}))
        assert item == {'Delete': {'TableName': 'Tasks', 'Key': {'taskId': {'S': 't1'}}}}

    def test_unknown_operation(self, dynamo_store):
        with pytest.raises(TypeError):
            dynamo_store.to_transact_item({'Put': {}})


class TestTransact:

    def test_sends_all_items_in_one_call(self, dynamo_store):
        dynamo_store.transact([
            Put('Submissions', {'submissionId': 's1'}),
            Update(table='Tasks', key={'taskId': 't1'}, add={'remainingSlots': -1}),
        ])

        call = dynamo_store.client.transact_write_items.call_args
        assert [list(item) for item in call.kwargs['TransactItems']] == [['Put'], ['Update']]

    def test_cancellation_reasons_follow_item_order(self, dynamo_store):
        dynamo_store.client.transact_write_items.side_effect = client_error(
            'TransactionCanceledException',
            CancellationReasons=[{'Code': 'None'}, {'Code': 'ConditionalCheckFailed'}],
        )

        with pytest.raises(TransactionCanceled) as exc:
            dynamo_store.transact([Put('A', {'id': '1'}), Put('B', {'id': '2'})])

        assert exc.value.reasons == ['None', 'ConditionalCheckFailed']
        assert not exc.value.failed(0)
        assert exc.value.failed(1)
        assert not exc.value.failed(5)

    def test_other_errors_become_persistence_errors(self, dynamo_store):
        dynamo_store.client.transact_write_items.side_effect = client_error('ProvisionedThroughputExceededException')

        with pytest.raises(PersistenceError):
            dynamo_store.transact([Put('A', {'id': '1'})])

    def test_too_many_items(self, dynamo_store):
        with pytest.raises(PersistenceError):
            dynamo_store.transact([Put('A', {'id': str(i)}) for i in range(MAX_TRANSACTION_ITEMS + 1)])
        dynamo_store.client.transact_write_items.assert_not_called()


class TestSingleItemWrites:

    def test_conditional_put_refused(self, dynamo_store, table):
        table.put_item.side_effect = client_error('ConditionalCheckFailedException')

        with pytest.raises(ConditionFailed):
            dynamo_store.put_item('Accounts', {'userId': 'u1'}, condition=Attr('userId').not_exists())

        kwargs = table.put_item.call_args.kwargs
        assert kwargs['ConditionExpression'] == 'attribute_not_exists(#n0)'
        assert kwargs['ExpressionAttributeNames'] == {'#n0': 'userId'}

    def test_update_returns_new_item(self, dynamo_store, table):
        table.update_item.return_value = {'Attributes': {'notificationId': 'n1', 'isRead': True}}

        result = dynamo_store.update_item(Update(
            table='Notifications',
            key={'notificationId': 'n1'},
            set={'isRead': True},
            condition=Attr('userId').eq('u1'),
        ))

        assert result == {'notificationId': 'n1', 'isRead': True}
        assert table.update_item.call_args.kwargs['ReturnValues'] == 'ALL_NEW'

    def test_update_refused(self, dynamo_store, table):
        table.update_item.side_effect = client_error('ConditionalCheckFailedException')

        with pytest.raises(ConditionFailed):
            dynamo_store.update_item(Update(table='Accounts', key={'userId': 'u1'}, set={'role': 'buyer'}))

    def test_read_failure(self, dynamo_store, table):
        table.get_item.side_effect = client_error('ResourceNotFoundException')

        with pytest.raises(PersistenceError):
            dynamo_store.get_item('Accounts', {'userId': 'u1'})

    def test_get_item_is_consistent(self, dynamo_store, table):
        table.get_item.return_value = {'Item': {'userId': 'u1'}}

        assert dynamo_store.get_item('Accounts', {'userId': 'u1'}) == {'userId': 'u1'}
        assert table.get_item.call_args.kwargs['ConsistentRead'] is True


class TestReads:

    def test_query_follows_pagination(self, dynamo_store, table):
        table.query.side_effect = [
            {'Items': [{'id': 1}], 'LastEvaluatedKey': {'id': 1}},
            {'Items': [{'id': 2}]},
        ]

        items = dynamo_store.query('Submissions', Key('workerId').eq('w1'), index_name='byWorker')

        assert items == [{'id': 1}, {'id': 2}]
        assert table.query.call_count == 2
        assert table.query.call_args.kwargs['ExclusiveStartKey'] == {'id': 1}
        assert table.query.call_args.kwargs['IndexName'] == 'byWorker'

    def test_scan_with_filter(self, dynamo_store, table):
        table.scan.return_value = {'Items': []}
        condition = Attr('status').eq('Pending')

        assert dynamo_store.scan('Withdrawals', filter_expression=condition) == []
        assert table.scan.call_args.kwargs['FilterExpression'] is condition

"""
List Available Tasks Handler.
Returns tasks with open worker slots whose deadline has not passed.
"""
from shared.dynamo import get_store
from shared.logging import log_event
from shared.queries import list_available_tasks
from shared.utils import error_response, format_response, get_query_param


def handler(event, context):
    """
    GET /tasks?search=...
    """
    log_event(event)

    try:
        tasks = list_available_tasks(get_store(), search=get_query_param(event, 'search'))
        for task in tasks:
            task.pop('activeWorkers', None)

        return format_response(200, {
            'tasks': tasks,
            'totalTasks': len(tasks),
        })

    except Exception as e:
        return error_response(e)

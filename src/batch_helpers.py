import io
import sys
import time

import azure.batch.models as batchmodels

from create_result import CreateResult

STANDARD_OUT_FILE_NAME = 'stdout.txt'

# Upper bound on tasks accepted by a single add_collection call.
MAX_TASKS_PER_REQUEST = 100

_POOL_EXISTS = 'PoolExists'
_JOB_EXISTS = 'JobExists'


class TaskTimeoutError(RuntimeError):
    """Raised when tasks do not reach the Completed state in time."""


def print_batch_exception(batch_exception):
    """
    Prints the contents of the specified Batch exception.
    :param batch_exception:
    """
    print('-------------------------------------------')
    print('Exception encountered:')
    if batch_exception.error and \
            batch_exception.error.message and \
            batch_exception.error.message.value:
        print(batch_exception.error.message.value)
        if batch_exception.error.values:
            print()
            for mesg in batch_exception.error.values:
                print('{}:\t{}'.format(mesg.key, mesg.value))
    print('-------------------------------------------')


def _error_code(batch_exception):
    error = getattr(batch_exception, 'error', None)
    return getattr(error, 'code', None)


def _error_message(batch_exception):
    error = getattr(batch_exception, 'error', None)
    message = getattr(error, 'message', None)
    if message is not None and message.value:
        return message.value
    return str(batch_exception)


def create_pool(batch_service_client, config):
    """
    Creates a pool of Linux compute nodes, or reuses the pool with the same ID.

    :param batch_service_client: A Batch service client.
    :type batch_service_client: `azure.batch.BatchServiceClient`
    :param config: The quickstart configuration.
    :type config: `QuickstartConfig`
    :rtype: `CreateResult`
    """
    print('Creating pool [{}]...'.format(config.pool_id))

    new_pool = batchmodels.PoolAddParameter(
        id=config.pool_id,
        virtual_machine_configuration=batchmodels.VirtualMachineConfiguration(
            image_reference=batchmodels.ImageReference(
                publisher='canonical',
                offer='0001-com-ubuntu-server-focal',
                sku='20_04-lts',
                version='latest'),
            node_agent_sku_id='batch.node.ubuntu 20.04'),
        vm_size=config.pool_vm_size,
        target_dedicated_nodes=config.pool_node_count)

    try:
        batch_service_client.pool.add(new_pool)
    except batchmodels.BatchErrorException as err:
        if _error_code(err) == _POOL_EXISTS:
            print('The pool {} already existed when we tried to create it'.format(config.pool_id))
            return CreateResult.already_exists(config.pool_id, reason=_error_message(err))
        return CreateResult.failed(config.pool_id, _error_message(err), err)

    return CreateResult.created(config.pool_id)


def create_job(batch_service_client, job_id, pool_id):
    """
    Creates a job with the specified ID, associated with the specified pool.

    :param batch_service_client: A Batch service client.
    :type batch_service_client: `azure.batch.BatchServiceClient`
    :param str job_id: The ID for the job.
    :param str pool_id: The ID for the pool.
    :rtype: `CreateResult`
    """
    print('Creating job [{}]...'.format(job_id))

    job = batchmodels.JobAddParameter(
        id=job_id,
        pool_info=batchmodels.PoolInformation(pool_id=pool_id))

    try:
        batch_service_client.job.add(job)
    except batchmodels.BatchErrorException as err:
        if _error_code(err) == _JOB_EXISTS:
            print('The job {} already existed when we tried to create it'.format(job_id))
            return CreateResult.already_exists(job_id, reason=_error_message(err))
        return CreateResult.failed(job_id, _error_message(err), err)

    return CreateResult.created(job_id)


def resource_files_from_blobs(blob_files):
    return [batchmodels.ResourceFile(http_url=blob.url, file_path=blob.name)
            for blob in blob_files]


def build_tasks(resource_files):
    """
    Builds one task per input file. Task ``Task{i}`` prints the contents of
    the i-th file.

    :param list resource_files: A collection of `azure.batch.models.ResourceFile`.
    :rtype: list
    """
    tasks = []
    for idx, input_file in enumerate(resource_files):
        command = '/bin/bash -c "cat {}"'.format(input_file.file_path)
        tasks.append(batchmodels.TaskAddParameter(
            id='Task{}'.format(idx),
            command_line=command,
            resource_files=[input_file]))

    return tasks


def add_tasks(batch_service_client, job_id, tasks):
    """
    Adds the tasks to the specified job.

    :param batch_service_client: A Batch service client.
    :type batch_service_client: `azure.batch.BatchServiceClient`
    :param str job_id: The ID of the job to which to add the tasks.
    :param list tasks: A collection of `azure.batch.models.TaskAddParameter`.
    :rtype: list
    :return: The task IDs in submission order.
    """
    print('Adding {} tasks to job [{}]...'.format(len(tasks), job_id))

    for start in range(0, len(tasks), MAX_TASKS_PER_REQUEST):
        batch_service_client.task.add_collection(
            job_id, tasks[start:start + MAX_TASKS_PER_REQUEST])

    return [task.id for task in tasks]


def wait_for_tasks_to_complete(batch_service_client, job_id, task_ids,
                               timeout, poll_interval=1):
    """
    Returns when all given tasks in the specified job reach the Completed state.

    :param batch_service_client: A Batch service client.
    :type batch_service_client: `azure.batch.BatchServiceClient`
    :param str job_id: The id of the job whose tasks should be to monitored.
    :param list task_ids: The ids of the tasks to wait for.
    :param timedelta timeout: The duration to wait for task completion. If all
    tasks do not reach Completed state within this time period, a
    TaskTimeoutError is raised.
    """
    timeout_expiration = time.monotonic() + timeout.total_seconds()
    pending = set(task_ids)

    print("Monitoring all tasks for 'Completed' state, timeout in {}..."
          .format(timeout), end='')

    while time.monotonic() < timeout_expiration:
        print('.', end='')
        sys.stdout.flush()
        completed = {task.id for task in batch_service_client.task.list(job_id)
                     if task.state == batchmodels.TaskState.completed}
        if pending <= completed:
            print()
            print('All tasks reached state Completed.')
            return True
        time.sleep(poll_interval)

    print()
    raise TaskTimeoutError("ERROR: Tasks did not reach 'Completed' state within "
                           "timeout period of " + str(timeout))


def read_task_file_as_string(batch_service_client, job_id, task_id,
                             file_name, encoding=None):
    """
    Reads the specified file from the node a task ran on.

    :param str encoding: The encoding of the file. The default is utf-8.
    :rtype: str
    """
    stream = batch_service_client.file.get_from_task(job_id, task_id, file_name)

    output = io.BytesIO()
    try:
        for data in stream:
            output.write(data)
        return output.getvalue().decode(encoding or 'utf-8')
    finally:
        output.close()


def print_task_output(batch_service_client, job_id, task_ids, encoding=None):
    """
    Prints the stdout.txt file for each task, in submission order.

    :param batch_service_client: The batch client to use.
    :type batch_service_client: `azure.batch.BatchServiceClient`
    :param str job_id: The id of the job with task output files to print.
    :param list task_ids: The ids of the tasks to print.
    :rtype: dict
    :return: The standard output of each task, keyed by task id.
    """
    print()
    print('Printing task output...')

    outputs = {}
    for task_id in task_ids:
        node_info = batch_service_client.task.get(job_id, task_id).node_info
        node_id = node_info.node_id if node_info else None
        print('Task: {}'.format(task_id))
        print('Node: {}'.format(node_id))

        file_text = read_task_file_as_string(
            batch_service_client, job_id, task_id, STANDARD_OUT_FILE_NAME, encoding)
        print('Standard out:')
        print(file_text)
        outputs[task_id] = file_text

    return outputs


def delete_job(batch_service_client, job_id):
    print('Deleting job [{}]...'.format(job_id))
    batch_service_client.job.delete(job_id)


def delete_pool(batch_service_client, pool_id):
    print('Deleting pool [{}]...'.format(pool_id))
    batch_service_client.pool.delete(pool_id)

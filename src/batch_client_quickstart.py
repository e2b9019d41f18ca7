import datetime
import time

import azure.batch as azurebatch
import azure.batch.batch_auth as batchauth
import azure.batch.models as batchmodels
import azure.storage.blob as azureblob

import config_local
from batch_helpers import (add_tasks, build_tasks, create_job, create_pool,
                           delete_job, delete_pool, print_batch_exception,
                           print_task_output, resource_files_from_blobs,
                           wait_for_tasks_to_complete)
from create_result import CreateOutcome
from quickstart_config import QuickstartConfig
from storage_helpers import create_container_if_not_exists, list_blobs


def query_yes_no(question):
    """
    Prompts the operator and returns False only for 'n' or 'no'. An empty
    answer accepts the default (yes).

    :param str question: The text of the prompt for input.
    :rtype: bool
    """
    choice = input(question).strip().lower()
    return choice not in ('n', 'no')


def _check_created(result):
    if result.outcome is CreateOutcome.FAILED:
        print('Could not create [{}]: {}'.format(result.resource_id, result.reason))
        result.raise_for_failure()
    return result


def get_resource_files_from_container(blob_service_client, container_name):
    """
    Lists the input container and returns one resource file per blob.

    :param blob_service_client: A blob service client.
    :type blob_service_client: `azure.storage.blob.BlobServiceClient`
    :param str container_name: The name of the input container.
    :rtype: list
    """
    container_client = blob_service_client.get_container_client(container_name)
    blob_files = list_blobs(container_client,
                            blob_service_client.credential.account_key)
    return resource_files_from_blobs(blob_files)


def run_quickstart(config, blob_service_client, batch_client,
                   confirm=query_yes_no, pause=input):
    """
    Runs the quickstart: one task per file in the input container, then
    prints each task's output.

    :param config: The validated run configuration.
    :type config: `QuickstartConfig`
    :param blob_service_client: A blob service client.
    :type blob_service_client: `azure.storage.blob.BlobServiceClient`
    :param batch_client: A Batch service client.
    :type batch_client: `azure.batch.BatchServiceClient`
    :param confirm: Asks a yes/no question, returns True to proceed.
    :param pause: Called once with the exit prompt, whatever the outcome.
    :rtype: dict
    :return: The standard output of each task, keyed by task id.
    """
    config.validate()

    try:
        start_time = datetime.datetime.now().replace(microsecond=0)
        print('Sample start: {}'.format(start_time))
        print()
        timer = time.monotonic()

        create_container_if_not_exists(blob_service_client,
                                       config.input_container_name)

        input_files = get_resource_files_from_container(
            blob_service_client, config.input_container_name)

        _check_created(create_pool(batch_client, config))
        _check_created(create_job(batch_client, config.job_id, config.pool_id))

        tasks = build_tasks(input_files)
        task_ids = add_tasks(batch_client, config.job_id, tasks)

        wait_for_tasks_to_complete(batch_client, config.job_id, task_ids,
                                   config.task_timeout)

        outputs = print_task_output(batch_client, config.job_id, task_ids)

        end_time = datetime.datetime.now().replace(microsecond=0)
        print()
        print('Sample end: {}'.format(end_time))
        elapsed = datetime.timedelta(seconds=round(time.monotonic() - timer))
        print('Elapsed time: {}'.format(elapsed))
        print()

        if confirm('Delete job? [yes] no: '):
            delete_job(batch_client, config.job_id)

        if confirm('Delete pool? [yes] no: '):
            delete_pool(batch_client, config.pool_id)

        return outputs
    finally:
        print()
        pause('Sample complete, hit ENTER to exit...')


def main():
    config = QuickstartConfig.from_module(config_local).validate()

    # Create the blob client, for use in obtaining references to
    # blob storage containers.
    blob_service_client = azureblob.BlobServiceClient.from_connection_string(
        config.storage_connection_string)

    credentials = batchauth.SharedKeyCredentials(config.batch_account_name,
                                                 config.batch_account_key)

    # Create a Batch service client.
    batch_client = azurebatch.BatchServiceClient(
        credentials,
        batch_url=config.batch_account_url)

    try:
        run_quickstart(config, blob_service_client, batch_client)
    except batchmodels.BatchErrorException as err:
        print_batch_exception(err)
        raise


if __name__ == '__main__':
    main()

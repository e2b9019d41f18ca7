import datetime


class ConfigurationError(ValueError):
    """Raised when one or more account credential strings are empty."""


class QuickstartConfig(object):
    """
    Account credentials and fixed resource settings for one quickstart run.

    Built once at start-up and passed explicitly to the orchestration
    routine.
    """

    TASK_TIMEOUT = datetime.timedelta(minutes=30)

    def __init__(self, batch_account_name, batch_account_key,
                 batch_account_url, storage_connection_string,
                 input_container_name='input',
                 pool_id='PythonQuickstartPool',
                 job_id='PythonQuickstartJob',
                 pool_node_count=2,
                 pool_vm_size='STANDARD_A1_v2',
                 task_timeout=TASK_TIMEOUT):
        self.batch_account_name = batch_account_name
        self.batch_account_key = batch_account_key
        self.batch_account_url = batch_account_url
        self.storage_connection_string = storage_connection_string
        self.input_container_name = input_container_name
        self.pool_id = pool_id
        self.job_id = job_id
        self.pool_node_count = pool_node_count
        self.pool_vm_size = pool_vm_size
        self.task_timeout = task_timeout

    @classmethod
    def from_module(cls, module):
        """
        Builds a configuration from a module of constants laid out like
        ``config_local``.
        :param module: The module holding the ``_BATCH_*``/``_STORAGE_*`` constants.
        :rtype: QuickstartConfig
        """
        return cls(
            batch_account_name=module._BATCH_ACCOUNT_NAME,
            batch_account_key=module._BATCH_ACCOUNT_KEY,
            batch_account_url=module._BATCH_ACCOUNT_URL,
            storage_connection_string=module._STORAGE_CONNECTION_STRING,
            input_container_name=module._INPUT_CONTAINER_NAME,
            pool_id=module._POOL_ID,
            job_id=module._JOB_ID,
            pool_node_count=module._POOL_NODE_COUNT,
            pool_vm_size=module._POOL_VM_SIZE)

    def missing_settings(self):
        required = [
            ('batch account name', self.batch_account_name),
            ('batch account key', self.batch_account_key),
            ('batch account URL', self.batch_account_url),
            ('storage connection string', self.storage_connection_string),
        ]
        return [name for name, value in required if not value]

    def validate(self):
        """
        Raises ConfigurationError when any required credential is empty or
        the storage connection string carries no account key.
        """
        missing = self.missing_settings()
        if missing:
            raise ConfigurationError(
                'One or more account credential strings have not been '
                'populated ({}). Please ensure that your Batch and Storage '
                'account credentials have been specified.'.format(', '.join(missing)))
        # Blob SAS tokens are signed with the account key.
        if not _connection_string_setting(self.storage_connection_string, 'AccountKey'):
            raise ConfigurationError(
                'The storage connection string has no AccountKey. Use the '
                'account key connection string of the storage account.')
        return self


def _connection_string_setting(connection_string, name):
    for part in connection_string.split(';'):
        key, _, value = part.partition('=')
        if key.strip().lower() == name.lower():
            return value.strip()
    return None

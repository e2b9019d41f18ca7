# Global constant variables (Azure Storage account/Batch details)

# import "config_local.py" in "batch_client_quickstart.py"

# Update the Batch and Storage account credential strings below with the values

# unique to your accounts. These are used when constructing the Batch and

# Storage client objects.


_BATCH_ACCOUNT_NAME = '' # Your batch account name
_BATCH_ACCOUNT_KEY = '' # Your batch account key
_BATCH_ACCOUNT_URL = '' # Your batch account URL

_STORAGE_CONNECTION_STRING = '' # Your storage account connection string

_INPUT_CONTAINER_NAME = 'input' # Container holding the files to process

_POOL_ID = 'PythonQuickstartPool'
_JOB_ID = 'PythonQuickstartJob'
_POOL_NODE_COUNT = 2
_POOL_VM_SIZE = 'STANDARD_A1_v2'

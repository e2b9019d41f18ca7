import datetime
import posixpath
from urllib.parse import unquote, urlparse

from azure.core.exceptions import ResourceExistsError
import azure.storage.blob as azureblob

from create_result import CreateResult

# Name of the policy granting long-lived read links to shared inputs.
STANDARD_SHARING_POLICY = 'standard-sharing'

_CLOCK_SKEW = datetime.timedelta(minutes=5)
_AD_HOC_LIFETIME = datetime.timedelta(hours=2)
_SHARING_LIFETIME_YEARS = 2


class BlobFile(object):
    """
    A blob listed from a container: a directly fetchable SAS URL and the
    base name the file is known by on the compute node.
    """

    __slots__ = ('_url', '_name')

    def __init__(self, url, name):
        self._url = url
        self._name = name

    @property
    def url(self):
        return self._url

    @property
    def name(self):
        return self._name

    def __eq__(self, other):
        if not isinstance(other, BlobFile):
            return NotImplemented
        return (self.url, self.name) == (other.url, other.name)

    def __hash__(self):
        return hash((self.url, self.name))

    def __repr__(self):
        return 'BlobFile(url={!r}, name={!r})'.format(self.url, self.name)


class SasPolicy(object):
    """
    Constraints for one shared access signature. A stored access policy
    carries only ``policy_id``; everything else is defined on the container.
    """

    def __init__(self, permission=None, start=None, expiry=None, policy_id=None):
        self.permission = permission
        self.start = start
        self.expiry = expiry
        self.policy_id = policy_id

    def __repr__(self):
        return 'SasPolicy(permission={!r}, start={!r}, expiry={!r}, policy_id={!r})'.format(
            self.permission, self.start, self.expiry, self.policy_id)


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


def _add_years(moment, years):
    try:
        return moment.replace(year=moment.year + years)
    except ValueError:
        # 29 February in a non-leap target year
        return moment.replace(year=moment.year + years, day=28)


def blob_name_from_url(url):
    """
    Returns the base name of a blob URL, ignoring any query string.
    :param str url: The blob URL.
    :rtype: str
    """
    return posixpath.basename(unquote(urlparse(url).path))


def create_ad_hoc_sas_policy(permission, now=None):
    """
    Returns a policy valid for two hours. The start time is set five minutes
    before now to tolerate clock skew.
    """
    now = now or _utcnow()
    return SasPolicy(permission=permission,
                     start=now - _CLOCK_SKEW,
                     expiry=now + _AD_HOC_LIFETIME)


def create_sharing_sas_policy(permission, now=None):
    now = now or _utcnow()
    return SasPolicy(permission=permission,
                     start=now - _CLOCK_SKEW,
                     expiry=_add_years(now, _SHARING_LIFETIME_YEARS))


def get_sas_policy(permission, policy_name=None, now=None):
    """
    Selects the signature constraints for a blob.

    :param permission: The permissions to grant.
    :type permission: `azure.storage.blob.BlobSasPermissions`
    :param str policy_name: None for an ad-hoc signature, ``standard-sharing``
    for a long-lived one, or the name of an access policy stored on the
    container.
    :rtype: SasPolicy
    """
    if policy_name is None:
        return create_ad_hoc_sas_policy(permission, now)
    if policy_name == STANDARD_SHARING_POLICY:
        return create_sharing_sas_policy(permission, now)
    # All constraints come from the container's stored access policy.
    return SasPolicy(policy_id=policy_name)


def get_blob_sas_token(container_client, account_key, blob_name,
                       permission, policy_name=None):
    """
    Obtains a shared access signature for a single blob.

    :param container_client: The client of the container holding the blob.
    :type container_client: `azure.storage.blob.ContainerClient`
    :param str account_key: The key of the storage account.
    :param str blob_name: The name of the blob. The blob does not need to
    exist yet.
    :param permission: A blob SAS permission object
    :type permission: `azure.storage.blob.BlobSasPermissions`
    :param str policy_name: See `get_sas_policy`.
    :rtype: str
    :return: A SAS token, without the leading '?'.
    """
    policy = get_sas_policy(permission, policy_name)

    return azureblob.generate_blob_sas(
        container_client.account_name,
        container_client.container_name,
        blob_name,
        account_key=account_key,
        permission=policy.permission,
        start=policy.start,
        expiry=policy.expiry,
        policy_id=policy.policy_id)


def list_blobs(container_client, account_key, policy_name=None,
               results_per_page=None):
    """
    Lists every blob in the container and signs each one for read access.

    :param container_client: The client of the container to list.
    :type container_client: `azure.storage.blob.ContainerClient`
    :param str account_key: The key of the storage account, used for signing.
    :param str policy_name: See `get_sas_policy`.
    :param int results_per_page: Page size requested from the service.
    :rtype: list
    :return: A list of `BlobFile` in listing order.
    """
    blob_files = []
    permission = azureblob.BlobSasPermissions(read=True)

    continuation_token = None
    while True:
        pages = container_client.list_blobs(results_per_page=results_per_page) \
            .by_page(continuation_token=continuation_token)
        page = next(pages, [])

        for blob in page:
            blob_url = container_client.get_blob_client(blob.name).url
            name = blob_name_from_url(blob_url)
            sas_token = get_blob_sas_token(container_client, account_key,
                                           blob.name, permission, policy_name)
            blob_files.append(BlobFile('{}?{}'.format(blob_url, sas_token), name))

        continuation_token = pages.continuation_token
        if not continuation_token:
            break

    return blob_files


def create_container_if_not_exists(blob_service_client, container_name):
    """
    Creates the container unless it is already there.
    :param blob_service_client: A blob service client.
    :type blob_service_client: `azure.storage.blob.BlobServiceClient`
    :param str container_name: The name of the container.
    :rtype: `CreateResult`
    """
    try:
        blob_service_client.create_container(container_name)
    except ResourceExistsError as err:
        print('The container {} already existed when we tried to create it'.format(container_name))
        return CreateResult.already_exists(container_name, reason=str(err))

    print('Created container [{}].'.format(container_name))
    return CreateResult.created(container_name)

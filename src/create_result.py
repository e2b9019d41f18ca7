import enum


class CreateOutcome(enum.Enum):
    CREATED = 'created'
    ALREADY_EXISTS = 'already_exists'
    FAILED = 'failed'


class CreateResult(object):
    """
    Outcome of a create-if-absent call against the Batch or Storage service.

    ``error`` holds the original exception for FAILED results so the caller
    can re-raise it after inspecting the outcome.
    """

    def __init__(self, outcome, resource_id, reason=None, error=None):
        self.outcome = outcome
        self.resource_id = resource_id
        self.reason = reason
        self.error = error

    @classmethod
    def created(cls, resource_id):
        return cls(CreateOutcome.CREATED, resource_id)

    @classmethod
    def already_exists(cls, resource_id, reason=None):
        return cls(CreateOutcome.ALREADY_EXISTS, resource_id, reason=reason)

    @classmethod
    def failed(cls, resource_id, reason, error=None):
        return cls(CreateOutcome.FAILED, resource_id, reason=reason, error=error)

    @property
    def ok(self):
        return self.outcome is not CreateOutcome.FAILED

    def raise_for_failure(self):
        if self.ok:
            return self
        if self.error is not None:
            raise self.error
        raise RuntimeError('Could not create [{}]: {}'.format(self.resource_id, self.reason))

    def __repr__(self):
        return 'CreateResult({}, {!r}, reason={!r})'.format(
            self.outcome.name, self.resource_id, self.reason)

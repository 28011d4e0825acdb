"""IPAM exception classes."""


class IPAMError(Exception):
    """Base exception for address management operations."""

    status_code = 500
    kind = "ipam_error"


class NotFound(IPAMError):
    """No active endpoint record for the requested address."""

    status_code = 404
    kind = "not_found"

    def __init__(self, entity: str, key: str):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found: {key}")


class ConflictViolation(IPAMError):
    """An insert or update would break a uniqueness constraint."""

    status_code = 409
    kind = "conflict"


class ConsistencyFault(IPAMError):
    """A stored-state invariant was found broken at read time."""

    status_code = 500
    kind = "consistency_fault"


class ConfigurationFault(IPAMError):
    """Layout widths are invalid, or an offset would overflow its field."""

    status_code = 500
    kind = "configuration_fault"


class StoreFault(IPAMError):
    """The underlying database failed to execute or commit."""

    status_code = 503
    kind = "store_fault"


class InvalidArgument(IPAMError):
    """Caller input cannot be encoded in the layout."""

    status_code = 400
    kind = "invalid_argument"

"""

used to store the outcome of an AS lookup for one IPv4 address, and to move
between that outcome and the string form kept in the on-disk AS cache

"""

from stem.util import enum

ASStatus = enum.Enum(
    ('FOUND', 'found'),
    ('INVALID_ADDRESS', 'invalid_address'),
    ('NOT_FOUND', 'not_found'),
    ('TRANSPORT_ERROR', 'transport_error'),
)

INVALID_ADDRESS_TEXT = "Invalid IPv4 address."
NOT_FOUND_TEXT = "AS information not found."
TRANSPORT_ERROR_PREFIX = "cURL Error:"


class ASLookup:
    """
    Result of resolving an IPv4 address to the organization announcing it.
    Only FOUND carries an org; TRANSPORT_ERROR carries the transport message.
    """
    def __init__(self, status, org=None, error=None):
        if status not in ASStatus:
            raise ValueError("Unknown AS lookup status: {}".format(status))
        self.status = status
        self.org = org
        self.error = error

    @classmethod
    def found(cls, org):
        return cls(ASStatus.FOUND, org=org)

    @classmethod
    def invalid_address(cls):
        return cls(ASStatus.INVALID_ADDRESS)

    @classmethod
    def not_found(cls):
        return cls(ASStatus.NOT_FOUND)

    @classmethod
    def transport_error(cls, message):
        return cls(ASStatus.TRANSPORT_ERROR, error=message)

    def is_valid(self):
        return self.status == ASStatus.FOUND

    def to_cache_value(self):
        if self.status == ASStatus.FOUND:
            return self.org
        elif self.status == ASStatus.INVALID_ADDRESS:
            return INVALID_ADDRESS_TEXT
        elif self.status == ASStatus.NOT_FOUND:
            return NOT_FOUND_TEXT
        return "{} {}".format(TRANSPORT_ERROR_PREFIX, self.error)

    @classmethod
    def from_cache_value(cls, value):
        """Inverse of to_cache_value(), for entries read back from the cache file."""
        value = str(value)
        if has_valid_as(value):
            return cls.found(value)
        if value == INVALID_ADDRESS_TEXT:
            return cls.invalid_address()
        if value == NOT_FOUND_TEXT:
            return cls.not_found()
        return cls.transport_error(value[len(TRANSPORT_ERROR_PREFIX):].strip())

    def __eq__(self, other):
        if not isinstance(other, ASLookup):
            return NotImplemented
        return (self.status, self.org, self.error) == (other.status, other.org, other.error)

    def __repr__(self):
        return "ASLookup({}, org={!r}, error={!r})".format(self.status, self.org, self.error)


def has_valid_as(value):
    """
    Validity check on the string form kept in the cache file, the same test
    ASLookup.is_valid() makes on a decoded result.
    """
    if value in (NOT_FOUND_TEXT, INVALID_ADDRESS_TEXT):
        return False
    if value.startswith(TRANSPORT_ERROR_PREFIX):
        return False
    return True

"""Domain exceptions for the provisioning bounded context.

Raised by pure domain code (validation, credential generation). None of
them implies that any store was touched.
"""


class InvalidIdentityKeyError(Exception):
    """Raised when an identity key violates the active format policy."""

    pass


class UnsafeIdentifierError(Exception):
    """Raised when a derived SQL identifier fails the trusted-name rules.

    Covers both characters that could break out of quoting and names that
    exceed MySQL's length limits.
    """

    pass


class InvalidHostError(Exception):
    """Raised when the configured allowed host is not an acceptable host."""

    pass

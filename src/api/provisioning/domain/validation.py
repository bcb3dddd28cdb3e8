"""Identity key and SQL identifier validation.

Pure functions only; nothing here performs I/O. Exactly one key policy is
active per validator:

- ``flexible`` (default): 1..max_length ASCII letters, digits, ``_`` or ``-``,
  starting and ending with a letter or digit.
- ``strict``: exactly ten ASCII digits, the legacy student number format
  whose first two digits are the enrolment year (e.g. ``2203010301``).

The validator is also the only producer of ``TrustedIdentifier`` values for
database and user names, so every name that reaches structural SQL has
passed the key policy first.
"""

from __future__ import annotations

import ipaddress
import re

from provisioning.domain.exceptions import (
    InvalidHostError,
    InvalidIdentityKeyError,
    UnsafeIdentifierError,
)
from provisioning.domain.value_objects import (
    DATABASE_PREFIX,
    MAX_DATABASE_NAME_LENGTH,
    MAX_USER_NAME_LENGTH,
    USER_PREFIX,
    IdentifierKind,
    IdentityKey,
    KeyPolicy,
    ResourceNames,
    TrustedIdentifier,
)

DEFAULT_MAX_KEY_LENGTH = 50
STRICT_KEY_LENGTH = 10

# Longest key whose derived user name still fits in a MySQL account name.
MAX_NAMEABLE_KEY_LENGTH = min(
    MAX_USER_NAME_LENGTH - len(USER_PREFIX),
    MAX_DATABASE_NAME_LENGTH - len(DATABASE_PREFIX),
)

MAX_HOST_LENGTH = 255
MAX_HOSTNAME_LENGTH = 253
WILDCARD_HOST = "%"

_FLEXIBLE_KEY_PATTERN = re.compile(r"[A-Za-z0-9](?:[A-Za-z0-9_-]*[A-Za-z0-9])?")
_STRICT_KEY_PATTERN = re.compile(r"[0-9]{%d}" % STRICT_KEY_LENGTH)
_HOSTNAME_PATTERN = re.compile(r"[A-Za-z0-9.-]+")


class IdentifierValidator:
    """Validates identity keys and derives trusted resource names."""

    def __init__(
        self,
        policy: KeyPolicy = KeyPolicy.FLEXIBLE,
        max_length: int = DEFAULT_MAX_KEY_LENGTH,
    ):
        """Initialize the validator.

        Args:
            policy: Active key policy
            max_length: Maximum key length under the flexible policy. Keys
                longer than MAX_NAMEABLE_KEY_LENGTH are refused regardless.

        Raises:
            ValueError: If max_length is not positive
        """
        if max_length < 1:
            raise ValueError("max_length must be at least 1")
        self._policy = KeyPolicy(policy)
        self._max_length = min(max_length, MAX_NAMEABLE_KEY_LENGTH)

    @property
    def max_length(self) -> int:
        """Longest key accepted under the flexible policy."""
        return self._max_length

    @property
    def policy(self) -> KeyPolicy:
        """The active key policy."""
        return self._policy

    def validate(self, raw_key: str) -> IdentityKey:
        """Check a raw key against the active policy.

        Args:
            raw_key: Key exactly as supplied by the caller

        Returns:
            The validated IdentityKey

        Raises:
            InvalidIdentityKeyError: If the key violates the policy
        """
        if not isinstance(raw_key, str) or not raw_key:
            raise InvalidIdentityKeyError("Identity key must not be empty")

        if self._policy is KeyPolicy.STRICT:
            if not _STRICT_KEY_PATTERN.fullmatch(raw_key):
                raise InvalidIdentityKeyError(
                    f"Identity key must be exactly {STRICT_KEY_LENGTH} digits"
                )
            return IdentityKey(value=raw_key)

        if len(raw_key) > self._max_length:
            raise InvalidIdentityKeyError(
                f"Identity key must be at most {self._max_length} characters"
            )
        if not _FLEXIBLE_KEY_PATTERN.fullmatch(raw_key):
            raise InvalidIdentityKeyError(
                "Identity key may only contain letters, digits, '_' and '-', "
                "and must start and end with a letter or digit"
            )
        return IdentityKey(value=raw_key)

    def is_valid(self, raw_key: str) -> bool:
        """Return whether a raw key passes the active policy."""
        try:
            self.validate(raw_key)
        except InvalidIdentityKeyError:
            return False
        return True

    def resource_names(self, key: IdentityKey | str) -> ResourceNames:
        """Derive the trusted database and user names for a key.

        Raw strings are validated first, so names can be rebuilt from
        ledger rows without trusting what was stored.

        Args:
            key: A validated IdentityKey or a raw key

        Returns:
            ResourceNames for ``db_<key>`` and ``user_<key>``

        Raises:
            InvalidIdentityKeyError: If a raw key violates the policy
            UnsafeIdentifierError: If a derived name exceeds MySQL limits
        """
        if not isinstance(key, IdentityKey):
            key = self.validate(key)

        database = f"{DATABASE_PREFIX}{key.value}"
        user = f"{USER_PREFIX}{key.value}"
        if len(database) > MAX_DATABASE_NAME_LENGTH:
            raise UnsafeIdentifierError(
                f"Database name {database!r} exceeds {MAX_DATABASE_NAME_LENGTH} characters"
            )
        if len(user) > MAX_USER_NAME_LENGTH:
            raise UnsafeIdentifierError(
                f"User name {user!r} exceeds {MAX_USER_NAME_LENGTH} characters"
            )

        return ResourceNames(
            identity_key=key,
            database=TrustedIdentifier(database, IdentifierKind.DATABASE),
            user=TrustedIdentifier(user, IdentifierKind.USER),
        )


def validate_host(host: str, allow_wildcard: bool = False) -> TrustedIdentifier:
    """Validate the host part used for created MySQL accounts.

    Accepts ``localhost``, IPv4/IPv6 literals and plain host names. The
    ``%`` wildcard is accepted only when ``allow_wildcard`` is set, which
    callers tie to development mode.

    Args:
        host: Host from configuration
        allow_wildcard: Whether '%' is acceptable

    Returns:
        TrustedIdentifier of kind HOST

    Raises:
        InvalidHostError: If the host is not acceptable
    """
    if not host or len(host) > MAX_HOST_LENGTH:
        raise InvalidHostError("Allowed host must be 1 to 255 characters")

    if host == WILDCARD_HOST:
        if not allow_wildcard:
            raise InvalidHostError(
                "Wildcard allowed host '%' is only permitted in development mode"
            )
        return TrustedIdentifier(host, IdentifierKind.HOST)

    if host == "localhost":
        return TrustedIdentifier(host, IdentifierKind.HOST)

    # MySQL treats '%' inside a host as a pattern, e.g. a scoped IPv6 zone.
    if WILDCARD_HOST in host:
        raise InvalidHostError(f"Invalid allowed host: {host!r}")

    try:
        ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        return TrustedIdentifier(host, IdentifierKind.HOST)

    if (
        len(host) > MAX_HOSTNAME_LENGTH
        or not _HOSTNAME_PATTERN.fullmatch(host)
        or host[0] in ".-"
        or host[-1] in ".-"
        or ".." in host
    ):
        raise InvalidHostError(f"Invalid allowed host: {host!r}")

    try:
        return TrustedIdentifier(host, IdentifierKind.HOST)
    except UnsafeIdentifierError as e:
        raise InvalidHostError(f"Invalid allowed host: {host!r}") from e

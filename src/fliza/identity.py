"""User identity helpers.

A user is either authenticated (an id issued by the auth provider) or a guest
holding a synthetic id that lives only as long as the conversation. The guest
prefix is the only discriminator between the two.
"""

from __future__ import annotations

import secrets
import string

GUEST_PREFIX = "guest-"

_BASE36 = string.digits + string.ascii_lowercase
_GUEST_SUFFIX_LENGTH = 9


def new_guest_id(prefix: str = GUEST_PREFIX) -> str:
    """Generate a guest id such as ``guest-k3j9x0a1b``."""
    suffix = "".join(secrets.choice(_BASE36) for _ in range(_GUEST_SUFFIX_LENGTH))
    return f"{prefix}{suffix}"


def is_guest(user_id: str, prefix: str = GUEST_PREFIX) -> bool:
    """Check whether a user id belongs to a guest."""
    return user_id.startswith(prefix)

"""
Caller checks shared by every service.

Services receive the caller as an optional ``Identity``; None means the
request carried no valid session.
"""

from typing import Optional

from bistro.core.errors import AuthenticationRequired, Forbidden
from bistro.schemas import Identity


def require_identity(identity: Optional[Identity]) -> Identity:
    if identity is None:
        raise AuthenticationRequired()
    return identity


def require_admin(identity: Optional[Identity]) -> Identity:
    identity = require_identity(identity)
    if not identity.is_admin:
        raise Forbidden("Administrator access required")
    return identity


def require_owner_or_admin(identity: Optional[Identity], owner_id: int) -> Identity:
    identity = require_identity(identity)
    if not identity.is_admin and identity.user_id != owner_id:
        raise Forbidden()
    return identity

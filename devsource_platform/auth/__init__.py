"""Authentication / authorization helpers.

Auth is kept lightweight:

- Users table (email/password hash + role), one hashing scheme for every role
- Stateless JWT access tokens valid for 24 hours

Requests authenticate with `Authorization: Bearer <token>`. Routes gate on
`get_current_user` (any valid token) or `require_admin` (role must be admin).
"""

from .deps import Principal, get_current_user, require_admin
from .crud import bootstrap_admin_if_needed, create_user

__all__ = [
    "Principal",
    "get_current_user",
    "require_admin",
    "bootstrap_admin_if_needed",
    "create_user",
]

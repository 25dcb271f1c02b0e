"""Identity delegation to the external token issuer.

Public API:
    Identity              - Claims of a verified caller
    TokenVerifier         - JWKS-backed bearer token verification
    UserIdentityResolver  - Subject → internal user record (created on first sight)
"""

from .models import Identity
from .resolver import UserIdentityResolver
from .tokens import TokenVerifier

__all__ = ["Identity", "TokenVerifier", "UserIdentityResolver"]

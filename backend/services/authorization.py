"""
Single admin-or-owner decision point for protected resources.

Rule, evaluated in order:
  1. no claims                      -> UnauthenticatedError (401)
  2. caller is admin                -> allow
  3. required_role given            -> allow iff caller has that role
  4. owner_id given                 -> allow iff caller owns the resource
  5. otherwise                      -> ForbiddenError (403)

Routes pass the owner id of the resource they loaded, or None when it does
not exist, and raise NotFoundError only after the gate allowed the call. A
non-admin therefore cannot tell a missing resource from someone else's.
"""

import logging
from typing import Optional, Union

from models.user import UserType
from services.errors import ForbiddenError, UnauthenticatedError
from services.tokens import Claims

logger = logging.getLogger(__name__)


class AuthorizationGate:
    def check(
        self,
        claims: Optional[Claims],
        owner_id: Optional[int] = None,
        required_role: Optional[Union[UserType, str]] = None,
    ) -> Claims:
        """Return the claims when access is allowed, raise otherwise."""
        if claims is None:
            raise UnauthenticatedError(reason="no valid access token")

        if claims.is_admin:
            return claims

        if required_role is not None:
            if claims.user_type == UserType(required_role):
                return claims
            logger.warning(
                "User %s (%s) denied: requires role %s",
                claims.user_id,
                claims.user_type.value,
                UserType(required_role).value,
            )
            raise ForbiddenError(reason="role mismatch")

        if owner_id is not None and claims.user_id == owner_id:
            return claims

        logger.warning("User %s denied access to resource owned by %s", claims.user_id, owner_id)
        raise ForbiddenError(reason="not owner")

    def allows(
        self,
        claims: Optional[Claims],
        owner_id: Optional[int] = None,
        required_role: Optional[Union[UserType, str]] = None,
    ) -> bool:
        """Non-raising variant, for filtering rather than guarding."""
        try:
            self.check(claims, owner_id=owner_id, required_role=required_role)
        except (UnauthenticatedError, ForbiddenError):
            return False
        return True


gate = AuthorizationGate()

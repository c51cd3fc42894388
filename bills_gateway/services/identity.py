from __future__ import annotations

import logging
from typing import Optional

from ..core.errors import ForbiddenError, UnauthorizedError
from .repository import BillsRepository


logger = logging.getLogger(__name__)


def parse_bearer(authorization: Optional[str]) -> str:
    if not authorization:
        raise UnauthorizedError("Authentication required")
    scheme, _, token = authorization.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthorizedError("Unauthorized")
    return token.strip()


class IdentityService:
    def __init__(self, repository: BillsRepository) -> None:
        self.repository = repository

    def resolve_user(self, authorization: Optional[str]) -> str:
        token = parse_bearer(authorization)
        user_id = self.repository.get_user_id_for_token(token)
        if user_id is None:
            logger.info("identity.unknown_token")
            raise UnauthorizedError("Unauthorized")
        return user_id

    def require_admin(self, authorization: Optional[str]) -> str:
        user_id = self.resolve_user(authorization)
        if not self.repository.is_admin(user_id):
            logger.warning("identity.admin_denied", extra={"user_id": user_id})
            raise ForbiddenError("Unauthorized: Access Denied (Admins Only)")
        return user_id

"""
Operator authentication
JWT bearer tokens guard the capacity administration endpoints
"""

import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from .exceptions import AuthenticationError, AuthorizationError
from ..config.settings import settings

ANONYMOUS_OPERATOR = "anonymous"

_bearer = HTTPBearer(auto_error=False)


class SecurityManager:
    """Issues and verifies operator tokens"""

    def create_jwt_token(self, operator_id: str, store_ids: Optional[list] = None,
                         additional_claims: Dict[str, Any] = None) -> str:
        """Create a signed token for an operator, optionally limited to some stores"""
        now = datetime.now(timezone.utc)
        payload = {
            "sub": operator_id,
            "exp": now + timedelta(hours=settings.jwt_expire_hours),
            "iat": now,
        }
        if store_ids:
            payload["stores"] = list(store_ids)
        if additional_claims:
            payload.update(additional_claims)
        return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

    def decode_jwt_token(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise AuthenticationError(f"Invalid token: {e}")

    def get_operator_from_token(self, token: str) -> Dict[str, Any]:
        payload = self.decode_jwt_token(token)
        if not payload.get("sub"):
            raise AuthenticationError("Token missing subject")
        return payload


security_manager = SecurityManager()


def require_operator(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Dict[str, Any]:
    """FastAPI dependency: decoded operator claims for admin endpoints"""
    if not settings.admin_auth_enabled:
        return {"sub": ANONYMOUS_OPERATOR}
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Operator token required")
    return security_manager.get_operator_from_token(credentials.credentials)


def ensure_store_access(operator: Dict[str, Any], store_id: str) -> None:
    """Reject operators whose token is scoped to other stores"""
    stores = operator.get("stores")
    if stores and store_id not in stores:
        raise AuthorizationError(f"Operator may not manage store {store_id}")


def optional_operator(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[Dict[str, Any]]:
    """Operator claims when a bearer token is sent; None for customer requests"""
    if not settings.admin_auth_enabled:
        return {"sub": ANONYMOUS_OPERATOR}
    if credentials is None or not credentials.credentials:
        return None
    return security_manager.get_operator_from_token(credentials.credentials)

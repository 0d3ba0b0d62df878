from typing import Optional

from fastapi import Request

from app.auth.schemas import AccountClaims, SessionClaims
from app.auth.security import verify_account_token, verify_session_token
from app.core.exceptions import AuthenticationError
from app.core.logging_config import get_logger

logger = get_logger(__name__)

TOKEN_HEADER = "token"


def _token_from(request: Request) -> Optional[str]:
    token = request.headers.get(TOKEN_HEADER)
    return token.strip() if token else None


def authenticate_session(request: Request) -> SessionClaims:
    """Claims of the session token in the request, or AuthenticationError."""
    claims = verify_session_token(_token_from(request))
    if claims is None:
        logger.info(f"Unauthenticated call to {request.url.path}")
        raise AuthenticationError()
    return claims


def authenticate_account(request: Request) -> AccountClaims:
    """Claims of the account token in the request, or AuthenticationError."""
    claims = verify_account_token(_token_from(request))
    if claims is None:
        logger.info(f"Invalid account token on {request.url.path}")
        raise AuthenticationError()
    return claims

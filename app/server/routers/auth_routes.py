import logging
from traceback import format_exc
from typing import Annotated, Optional

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import InvalidTokenError
from pydantic import BaseModel

from app.models.firestore import USER_ROLES
from app.models.shared import UserRole
from app.server.dependencies import get_config, get_firestore_service
from app.services.firestore_service import FirestoreService
from config import Config

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Create a router for authentication operations
auth_router = APIRouter()

# JWT configuration
ALGORITHM = "HS256"

bearer_scheme = HTTPBearer(auto_error=False)


# Pydantic models
class User(BaseModel):
    user_id: str
    email: Optional[str] = None
    role: UserRole = UserRole.USER


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_access_token(token: str, config: Config) -> dict:
    """
    Verify a session token issued by the storefront's auth provider.

    Raises:
        InvalidTokenError: If the signature, expiry or audience is wrong
    """
    return jwt.decode(
        token,
        config.auth_jwt_key,
        algorithms=[ALGORITHM],
        audience=config.auth_jwt_audience,
        options={"verify_aud": config.auth_jwt_audience is not None},
    )


async def get_current_user(
    credentials: Annotated[
        Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)
    ],
    config: Annotated[Config, Depends(get_config)],
) -> User:
    if credentials is None or not credentials.credentials:
        raise _credentials_exception()

    try:
        payload = decode_access_token(credentials.credentials, config)
    except InvalidTokenError:
        logger.error(f"Invalid token error\n{format_exc()}")
        raise _credentials_exception()

    user_id = payload.get("sub")
    if not user_id:
        logger.error("No subject found in token")
        raise _credentials_exception()

    return User(user_id=user_id, email=payload.get("email"))


async def has_admin_role(firestore_service: FirestoreService, user_id: str) -> bool:
    """Look up the user's role in the user_roles collection."""
    record = await firestore_service.get_document(
        collection_name=USER_ROLES, document_id=user_id
    )
    return record is not None and record.role == UserRole.ADMIN.value


async def get_admin_user(
    current_user: Annotated[User, Depends(get_current_user)],
    firestore_service: Annotated[FirestoreService, Depends(get_firestore_service)],
) -> User:
    if not await has_admin_role(firestore_service, current_user.user_id):
        logger.warning(f"Non-admin user {current_user.user_id} denied admin access")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required"
        )

    current_user.role = UserRole.ADMIN
    return current_user


@auth_router.get("/users/me", response_model=User)
async def get_users_me(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get current user information."""
    return current_user

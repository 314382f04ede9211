import logging
from datetime import datetime

from fastapi import HTTPException, Request, status

from myai.db.user_repo import UserRepo
from myai.models.user import User
from myai.request_context import RequestContext


logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
DEFAULT_USER_ID = "default-user"


class AuthService:
    """Resolves the X-API-Key header to a user"""

    def __init__(self, user_repo: UserRepo) -> None:
        self.user_repo = user_repo

    def ensure_default_user(self, api_key: str, now: datetime) -> User:
        """Make the configured API key usable on a fresh database"""
        user = self.user_repo.get_user_by_api_key(api_key)
        if user is not None:
            return user

        logger.info("Creating default user for the configured API key")
        return self.user_repo.create_user(DEFAULT_USER_ID, api_key, now)

    def authenticate(self, request: Request) -> RequestContext:
        """
        Authenticate a request and return RequestContext.

        Raises:
            HTTPException: 401 if the API key is missing or unknown
        """
        api_key = request.headers.get(API_KEY_HEADER)
        if not api_key:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing API key",
            )

        user = self.user_repo.get_user_by_api_key(api_key)
        if user is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid API key",
            )

        return RequestContext(user_id=user.id)

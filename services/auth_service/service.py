from datetime import timedelta

import structlog
from fastapi import HTTPException, status
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.settings import Settings
from shared.security.jwt_handler import create_access_token

from .models import Dispatcher
from .repository import DispatcherRepository
from .schemas import DispatcherLogin, DispatcherLoginResponse

logger = structlog.get_logger(__name__)

_pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthService:

    @staticmethod
    def hash_password(password: str) -> str:
        return _pwd_context.hash(password)

    @staticmethod
    def _verify_password(plain: str, hashed: str) -> bool:
        return _pwd_context.verify(plain, hashed)

    @staticmethod
    async def provision_dispatcher(
        db: AsyncSession, username: str, password: str, role: str = "dispatcher"
    ) -> Dispatcher:
        """Out-of-band provisioning; there is no public registration route."""
        existing = await DispatcherRepository.get_by_username(db, username)
        if existing:
            raise ValueError(f"Dispatcher {username!r} already exists")
        dispatcher = Dispatcher(
            username=username,
            password_hash=AuthService.hash_password(password),
            role=role,
        )
        return await DispatcherRepository.create(db, dispatcher)

    @staticmethod
    async def login(db: AsyncSession, settings: Settings, data: DispatcherLogin) -> DispatcherLoginResponse:
        dispatcher = await DispatcherRepository.get_by_username(db, data.username)
        if not dispatcher or not AuthService._verify_password(data.password, dispatcher.password_hash):
            logger.info("dispatcher_login_failed", username=data.username)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Incorrect username or password",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not dispatcher.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Account is disabled",
            )
        token = create_access_token(
            data={"sub": dispatcher.username, "role": dispatcher.role},
            secret_key=settings.jwt_secret_key,
            expires_delta=timedelta(minutes=settings.jwt_expire_minutes),
        )
        logger.info("dispatcher_logged_in", username=dispatcher.username)
        return DispatcherLoginResponse(
            username=dispatcher.username,
            role=dispatcher.role,
            access_token=token,
        )

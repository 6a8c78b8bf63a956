from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.config.settings import Settings, get_settings
from shared.security import CurrentDispatcher, get_current_dispatcher, limit_from_key, limiter, login_key

from .schemas import DispatcherLogin, DispatcherLoginResponse, DispatcherResponse
from .service import AuthService

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/dispatcher-login",
    response_model=DispatcherLoginResponse,
    summary="Authenticate a dispatcher and receive a bearer token",
)
@limiter.limit(limit_from_key, key_func=login_key)
async def dispatcher_login(
    request: Request,
    payload: DispatcherLogin,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    return await AuthService.login(db, settings, payload)


@router.get("/me", response_model=DispatcherResponse)
async def get_me(dispatcher: CurrentDispatcher = Depends(get_current_dispatcher)):
    return DispatcherResponse(username=dispatcher.username, role=dispatcher.role)

import secrets
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core.config import Settings
from ..domain.model import Identity
from ..services.history_service import HistoryService
from ..services.identity import IdentityProvider
from ..services.quiz_service import QuizService

SESSION_COOKIE = "triviaquest_session"

_bearer = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_quiz_service(request: Request) -> QuizService:
    return request.app.state.quiz_service


def get_history_service(request: Request) -> HistoryService:
    return request.app.state.history_service


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity


def get_session_id(request: Request, response: Response) -> str:
    """Session-scoped quiz context, carried in a cookie."""
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id and 16 <= len(session_id) <= 128:
        return session_id
    session_id = secrets.token_urlsafe(24)
    settings: Settings = request.app.state.settings
    response.set_cookie(
        key=SESSION_COOKIE,
        value=session_id,
        max_age=settings.SESSION_TTL_SECONDS,
        httponly=True,
        samesite="lax",
        secure=settings.APP_ENV != "dev",
    )
    return session_id


def get_bearer_token(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(_bearer)],
) -> Optional[str]:
    return credentials.credentials if credentials else None


def get_identity(
    token: Annotated[Optional[str], Depends(get_bearer_token)],
    provider: Annotated[IdentityProvider, Depends(get_identity_provider)],
) -> Optional[Identity]:
    if not token:
        return None
    return provider.resolve(token)


def require_identity(identity: Annotated[Optional[Identity], Depends(get_identity)]) -> Identity:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not signed in",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return identity


QuizServiceDep = Annotated[QuizService, Depends(get_quiz_service)]
HistoryServiceDep = Annotated[HistoryService, Depends(get_history_service)]
IdentityProviderDep = Annotated[IdentityProvider, Depends(get_identity_provider)]
SessionDep = Annotated[str, Depends(get_session_id)]
OptionalIdentityDep = Annotated[Optional[Identity], Depends(get_identity)]
IdentityDep = Annotated[Identity, Depends(require_identity)]
TokenDep = Annotated[Optional[str], Depends(get_bearer_token)]

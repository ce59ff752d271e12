from typing import Annotated, AsyncGenerator

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.context import AuthenticatedUserContext
from src.modules.user.auth_handlers import extract_bearer_token, handle_jwt_auth
from src.services.credits import CreditLedgerService


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Get database session from app state."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        yield session


async def get_credit_ledger_service(
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> CreditLedgerService:
    """Get credit ledger service with database session."""
    return CreditLedgerService(db)


async def get_current_user_authenticated(request: Request) -> AuthenticatedUserContext:
    """Dependency to get the user behind the request's Supabase bearer token."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    user = handle_jwt_auth(token)
    structlog.contextvars.bind_contextvars(user_id=str(user.user_id))
    return user


AsyncSessionDep = Annotated[AsyncSession, Depends(get_db_session)]
CreditLedgerServiceDep = Annotated[
    CreditLedgerService, Depends(get_credit_ledger_service)
]
CurrentUserAuthDep = Annotated[
    AuthenticatedUserContext, Depends(get_current_user_authenticated)
]

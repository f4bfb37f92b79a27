"""
Request-scoped dependencies: application context and actor resolution
"""
from typing import Optional
from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from trustfund.context import AppContext
from trustfund.core.security import decode_token
from trustfund.database.database import get_db
from trustfund.models.user import User

security = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def get_optional_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
) -> Optional[User]:
    """Resolve the caller when a token is presented; anonymous otherwise"""
    if not credentials:
        return None
    claims = decode_token(context.settings, credentials.credentials)
    return await context.users.resolve_actor(db, claims)


async def get_current_actor(actor: Optional[User] = Depends(get_optional_actor)) -> User:
    """Require an authenticated caller"""
    if actor is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return actor


async def require_admin(actor: User = Depends(get_current_actor)) -> User:
    if not actor.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return actor

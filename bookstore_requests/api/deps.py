# bookstore_requests/api/deps.py
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from bookstore_requests.core.security import decode_token
from bookstore_requests.services.transition_engine import TransitionEngine

# the chat bridge authenticates with a bearer token; anonymous calls act as "system"
security = HTTPBearer(auto_error=False)


async def get_current_actor(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> str:
    if credentials is None:
        return "system"
    try:
        payload = decode_token(credentials.credentials)
        actor = payload.get("sub")
        if not actor:
            raise ValueError()
    except (jwt.PyJWTError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return actor


def get_engine(request: Request) -> TransitionEngine:
    return request.app.state.engine

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt.exceptions import PyJWTError

from practicepulse.auth.schemas import CallerContext
from practicepulse.auth.service import decode_access_token

security = HTTPBearer()


async def get_caller(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> CallerContext:
    try:
        payload = decode_access_token(credentials.credentials)
    except PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    user_id = payload.get("sub")
    organization_id = payload.get("org")
    if not user_id or not organization_id or payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    return CallerContext(user_id=str(user_id), organization_id=str(organization_id))

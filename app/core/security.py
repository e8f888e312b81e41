import uuid
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel
from app.core.config import settings

http_bearer = HTTPBearer(auto_error=False)

class Principal(BaseModel):
    """The caller of a service operation: a patient or a facility operator."""
    user_id: uuid.UUID
    roles: list[str] = []

    def has_role(self, role: str) -> bool:
        return role in self.roles

def issue_token(user_id: uuid.UUID, roles: list[str] | None = None, **claims) -> str:
    payload = {"sub": str(user_id), "roles": roles or [], **claims}
    if settings.REQUIRED_AUDIENCE and "aud" not in payload:
        payload["aud"] = settings.REQUIRED_AUDIENCE
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)

def _decode_token(token: str) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG], audience=settings.REQUIRED_AUDIENCE)
        return payload
    except JWTError as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Invalid token: {e}")

async def get_principal(creds: HTTPAuthorizationCredentials | None = Depends(http_bearer)) -> Principal:
    # In local dev, allow missing token and act as a throwaway user
    if creds is None and settings.ENV == "local":
        return Principal(user_id=uuid.uuid4(), roles=["patient", "provider"])
    if creds is None:
        raise HTTPException(status_code=401, detail="Missing token")

    data = _decode_token(creds.credentials)
    try:
        user_id = uuid.UUID(str(data.get("sub") or data.get("user_id")))
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token subject")
    roles = data.get("roles", [])
    return Principal(user_id=user_id, roles=roles)

def require_roles(*needed: str):
    def dep(principal: Principal = Depends(get_principal)) -> Principal:
        if not any(principal.has_role(r) for r in needed):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return principal
    return dep

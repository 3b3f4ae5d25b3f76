from dataclasses import dataclass

from jose import JWTError, jwt
from starlette.requests import Request

from leadflow.core.config import get_settings


@dataclass
class AuthUser:
    sub: str
    name: str | None
    role: str


def _bearer_token(request: Request) -> str:
    auth_header = request.headers.get("authorization", "")
    return auth_header.replace("Bearer ", "") if auth_header.startswith("Bearer ") else ""


async def get_current_user(request: Request) -> AuthUser | None:
    token = _bearer_token(request)
    if not token:
        return None

    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    subject = payload.get("sub")
    if not subject:
        return None

    role = payload.get("role")
    if not isinstance(role, str) or not role:
        roles = payload.get("roles")
        role = str(roles[0]) if isinstance(roles, list) and roles else "sdr"
    name = payload.get("name")
    return AuthUser(sub=str(subject), name=str(name) if name else None, role=role.lower())

from __future__ import annotations

from typing import Iterable

from fastapi import Depends, HTTPException, Request, status

from bgv_portal.core.config import settings
from bgv_portal.core.roles import Role, has_required_role
from bgv_portal.schemas.user import UserContext


async def get_current_user(request: Request) -> UserContext:
    # Identity is asserted by the fronting gateway:
    # - X-User-Email: user@company.com
    # - X-User-Roles: admin,operator
    email = (request.headers.get("x-user-email") or "").strip().lower()
    if not email:
        if settings.auth_mode == "strict":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing user identity")
        email = "demo@example.com"

    full_name = request.headers.get("x-user-name") or _derive_name_from_email(email)
    roles_header = request.headers.get("x-user-roles") or ("" if settings.auth_mode == "strict" else Role.ADMIN.value)
    roles: list[Role] = []
    for raw in roles_header.split(","):
        raw = raw.strip().lower()
        if not raw:
            continue
        try:
            roles.append(Role(raw))
        except ValueError:
            continue

    if not roles:
        roles = [Role.VIEWER]

    return UserContext(user_id=email, email=email, roles=roles, full_name=full_name)


def _derive_name_from_email(email: str) -> str:
    local = email.split("@", 1)[0].strip()
    if not local:
        return email
    parts = [p for p in local.replace("_", ".").split(".") if p]
    if not parts:
        return local
    return " ".join(p[:1].upper() + p[1:] for p in parts)


def require_roles(required: Iterable[Role]):
    required = tuple(required)

    async def dependency(user: UserContext = Depends(get_current_user)) -> UserContext:
        if not has_required_role(user.roles, required):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return user

    return dependency

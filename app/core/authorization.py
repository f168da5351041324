from enum import Enum

from fastapi import Depends, HTTPException, Request

from app.deps.auth import require_auth


class Role(Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


_RANK = {
    Role.EMPLOYEE: 1,
    Role.MANAGER: 2,
    Role.ADMIN: 3,
}


def require_role(role: Role):
    def dependency(request: Request, _auth: tuple[str, int] = Depends(require_auth)):
        try:
            user_role = Role(str(request.state.role).upper())
        except ValueError as exc:
            raise HTTPException(status_code=403, detail="Invalid role claim") from exc

        if _RANK[user_role] < _RANK[role]:
            raise HTTPException(status_code=403, detail="Insufficient role")

        return user_role

    return dependency

from typing import Tuple

from fastapi import Depends, HTTPException, Request

from app.database import SessionLocal
from app.models.employee import Employee
from app.services.auth_service import verify_token


def _parse_bearer_token(request: Request) -> str:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        raise HTTPException(status_code=401, detail="Missing Authorization header")

    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer" or not parts[1].strip():
        raise HTTPException(status_code=401, detail="Invalid Authorization header")

    return parts[1].strip()


def require_auth(request: Request) -> Tuple[str, int]:
    token = _parse_bearer_token(request)

    try:
        claims = verify_token(token)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    subject_id = str(claims.get("sub"))
    try:
        token_company_id = int(claims.get("company_id"))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=401, detail="Invalid token claims") from exc

    header_company_id = request.headers.get("X-Company-Id")
    if header_company_id is None:
        raise HTTPException(status_code=403, detail="Missing X-Company-Id header")

    try:
        header_company_id_int = int(header_company_id)
    except ValueError as exc:
        raise HTTPException(status_code=403, detail="Invalid X-Company-Id header") from exc

    if header_company_id_int != token_company_id:
        raise HTTPException(status_code=403, detail="Company mismatch")

    request.state.user_id = subject_id
    request.state.company_id = token_company_id
    request.state.role = str(claims.get("role") or "EMPLOYEE").upper()

    return subject_id, token_company_id


def require_employee(request: Request, auth: Tuple[str, int] = Depends(require_auth)) -> int:
    """The active employee behind the session, in the session's company. 401 otherwise."""
    subject_id, company_id = auth
    if request.state.role != "EMPLOYEE":
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        employee_id = int(subject_id)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Unauthorized") from exc

    db = SessionLocal()
    try:
        row = (
            db.query(Employee.id)
            .filter(
                Employee.id == employee_id,
                Employee.company_id == int(company_id),
                Employee.is_active.is_(True),
            )
            .first()
        )
    finally:
        db.close()

    if row is None:
        raise HTTPException(status_code=401, detail="Unauthorized")

    request.state.employee_id = employee_id
    return employee_id

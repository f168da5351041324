from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from app.core.authorization import Role, require_role
from app.database import SessionLocal
from app.models.employee import Employee
from app.schemas.employee import EmployeeCreate, EmployeeResponse

router = APIRouter(prefix="/employees", tags=["Employees"])


@router.post("", response_model=EmployeeResponse)
def create_employee(
    payload: EmployeeCreate,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        row = Employee(
            company_id=int(request.state.company_id),
            first_name=payload.first_name,
            last_name=payload.last_name,
            email=payload.email,
            is_active=True,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return row
    finally:
        db.close()


@router.get("", response_model=List[EmployeeResponse])
def list_employees(
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        rows = (
            db.query(Employee)
            .filter(Employee.company_id == int(request.state.company_id))
            .order_by(Employee.id.asc())
            .all()
        )
        return rows
    finally:
        db.close()


@router.get("/{employee_id}", response_model=EmployeeResponse)
def get_employee(
    employee_id: int,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        row = (
            db.query(Employee)
            .filter(
                Employee.id == int(employee_id),
                Employee.company_id == int(request.state.company_id),
            )
            .first()
        )
        if row is None:
            raise HTTPException(status_code=404, detail="Employee not found")
        return row
    finally:
        db.close()

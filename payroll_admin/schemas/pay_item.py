from typing import Annotated, Literal, Optional

from pydantic import BaseModel, Field

from payroll_admin.schemas.validation import NonNegative, Notes, UUIDStr

PayItemStatusLiteral = Literal["draft", "pending", "approved", "paid"]
Pieces = Annotated[int, Field(ge=0)]


class PayItemCreate(BaseModel):
    pay_run_id: UUIDStr
    employee_id: UUIDStr
    hours_worked: Optional[NonNegative] = None
    pieces_completed: Optional[Pieces] = None
    gross_pay: NonNegative
    tax_deduction: NonNegative
    benefit_deductions: NonNegative
    employer_contributions: Optional[NonNegative] = None
    status: PayItemStatusLiteral = "draft"
    notes: Notes = None


class PayItemUpdate(BaseModel):
    id: UUIDStr
    hours_worked: Optional[NonNegative] = None
    pieces_completed: Optional[Pieces] = None
    gross_pay: Optional[NonNegative] = None
    tax_deduction: Optional[NonNegative] = None
    benefit_deductions: Optional[NonNegative] = None
    employer_contributions: Optional[NonNegative] = None
    status: Optional[PayItemStatusLiteral] = None
    notes: Notes = None


class PayItemDelete(BaseModel):
    id: UUIDStr

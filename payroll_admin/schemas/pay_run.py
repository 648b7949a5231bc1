from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from payroll_admin.schemas.validation import IsoDate, UUIDStr

PayRunStatusLiteral = Literal["draft", "pending_approval", "approved", "processed"]
DaysWorked = Annotated[int, Field(ge=0, le=31)]


class PayRunCreate(BaseModel):
    pay_run_date: Optional[IsoDate] = None
    pay_period_start: IsoDate
    pay_period_end: IsoDate
    pay_group_id: Optional[UUIDStr] = None
    pay_group_master_id: Optional[UUIDStr] = None
    status: Optional[PayRunStatusLiteral] = None
    category: Optional[str] = None
    sub_type: Optional[str] = None
    pay_frequency: Optional[str] = None
    payroll_type: Optional[str] = None
    exchange_rate: Optional[float] = Field(default=None, ge=0)
    days_worked: Optional[DaysWorked] = None

    @model_validator(mode="after")
    def _check(self):
        if self.pay_period_start > self.pay_period_end:
            raise ValueError("pay_period_end must be on or after pay_period_start")
        if not self.pay_group_id and not self.pay_group_master_id:
            raise ValueError("Either pay_group_id or pay_group_master_id must be provided")
        return self


class PayRunUpdate(BaseModel):
    # total_* fields are derived from pay items and dropped here.
    id: UUIDStr
    status: Optional[PayRunStatusLiteral] = None
    pay_run_date: Optional[IsoDate] = None
    pay_period_start: Optional[IsoDate] = None
    pay_period_end: Optional[IsoDate] = None
    pay_group_id: Optional[UUIDStr] = None
    pay_group_master_id: Optional[UUIDStr] = None
    category: Optional[str] = None
    sub_type: Optional[str] = None
    pay_frequency: Optional[str] = None
    payroll_type: Optional[str] = None
    exchange_rate: Optional[float] = Field(default=None, ge=0)
    days_worked: Optional[DaysWorked] = None
    approved_by: Optional[UUIDStr] = None
    approved_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_period(self):
        if (
            self.pay_period_start is not None
            and self.pay_period_end is not None
            and self.pay_period_start > self.pay_period_end
        ):
            raise ValueError("pay_period_end must be on or after pay_period_start")
        return self


class PayRunDelete(BaseModel):
    id: UUIDStr
    hard_delete: bool = False


class PayItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    pay_run_id: str
    employee_id: str
    hours_worked: Optional[Decimal]
    pieces_completed: Optional[int]
    gross_pay: Decimal
    tax_deduction: Decimal
    benefit_deductions: Decimal
    employer_contributions: Decimal
    total_deductions: Decimal
    net_pay: Decimal
    status: str
    notes: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class PayRunOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    pay_run_id: str
    organization_id: str
    pay_run_date: date
    pay_period_start: date
    pay_period_end: date
    status: str
    category: Optional[str]
    sub_type: Optional[str]
    pay_frequency: Optional[str]
    payroll_type: Optional[str]
    pay_group_id: Optional[str]
    pay_group_master_id: Optional[str]
    exchange_rate: Optional[Decimal]
    days_worked: Optional[int]
    total_gross_pay: Decimal
    total_deductions: Decimal
    total_net_pay: Decimal
    approved_by: Optional[str]
    approved_at: Optional[datetime]
    created_by: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]


class PayRunDetailOut(PayRunOut):
    pay_items: list[PayItemOut] = []


class PayRunsResponse(BaseModel):
    success: bool = True
    limit: int
    offset: int
    rows: list[PayRunOut]


class PayRunDetailResponse(BaseModel):
    success: bool = True
    pay_run: PayRunDetailOut

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, computed_field, constr
from pydantic.alias_generators import to_snake


def camel_field(alias: str, **kwargs):
    """Field serialized as camelCase ``alias`` that validates from either spelling."""
    return Field(
        validation_alias=AliasChoices(to_snake(alias), alias),
        serialization_alias=alias,
        **kwargs,
    )


class Category(str, Enum):
    FOOD = "Food"
    TRAVEL = "Travel"
    OFFICE = "Office"
    OTHER = "Other"


class PaymentStatus(str, Enum):
    PAID = "Paid"
    PENDING = "Pending"
    REIMBURSABLE = "Reimbursable"
    RECURRING = "Recurring"


class UserBase(BaseModel):
    email: constr(min_length=1)


class UserCreate(UserBase):
    password: constr(min_length=1)


class UserLogin(UserBase):
    password: constr(min_length=1)


class UserOut(UserBase):
    id: int

    class Config:
        from_attributes = True


class RegisterResponse(UserOut):
    message: str = "User registered successfully"


class LoginResponse(BaseModel):
    message: str = "Login successful"
    token: str
    user: UserOut


# Input models never carry total_amount; unknown body keys are ignored.
class ExpenseCreate(BaseModel):
    description: constr(min_length=1)
    base_amount: float = Field(ge=0, allow_inf_nan=False)
    tax_rate: float = Field(allow_inf_nan=False)
    category: Category
    payment_status: PaymentStatus = PaymentStatus.PENDING


class ExpenseUpdate(BaseModel):
    description: Optional[constr(min_length=1)] = None
    base_amount: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)
    tax_rate: Optional[float] = Field(default=None, allow_inf_nan=False)
    category: Optional[Category] = None
    payment_status: Optional[PaymentStatus] = None


class ExpenseOut(BaseModel):
    id: int
    user_id: int = camel_field("userId")
    description: str
    base_amount: float
    tax_rate: float
    category: Category
    payment_status: PaymentStatus
    created_at: datetime = camel_field("createdAt")
    # Read from the ORM ``owner`` relationship
    user: Optional[UserOut] = Field(
        default=None, validation_alias=AliasChoices("owner", "user")
    )

    class Config:
        from_attributes = True

    @computed_field
    @property
    def total_amount(self) -> float:
        return self.base_amount + self.base_amount * self.tax_rate


class ExpenseResponse(BaseModel):
    expense: ExpenseOut


class ExpenseMutationResponse(ExpenseResponse):
    message: str


class ExpenseQuery(BaseModel):
    category: Optional[str] = None
    payment_status: Optional[str] = None
    search: Optional[str] = None
    sort_by: str = "createdAt"
    sort_order: str = "desc"
    page: int = 1
    limit: int = 10


class Pagination(BaseModel):
    current_page: int = camel_field("currentPage")
    limit: int
    total_expenses: int = camel_field("totalExpenses")
    total_pages: int = camel_field("totalPages")
    has_prev_page: bool = camel_field("hasPrevPage")
    has_next_page: bool = camel_field("hasNextPage")


class ExpenseListResponse(BaseModel):
    expenses: list[ExpenseOut]
    pagination: Pagination


class BucketSummary(BaseModel):
    count: int = 0
    amount: float = 0.0


class ExpenseSummary(BaseModel):
    total_expenses: int = camel_field("totalExpenses")
    total_amount: float = camel_field("totalAmount")
    by_category: dict[str, BucketSummary] = camel_field("byCategory")
    by_payment_status: dict[str, BucketSummary] = camel_field("byPaymentStatus")
    recent_expenses: list[ExpenseOut] = camel_field("recentExpenses")

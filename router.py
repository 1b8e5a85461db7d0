from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from analytics import summarize_expenses
from auth import get_current_user
from config import get_settings
from database import User
from errors import ValidationError
from repository import ExpenseRepository, get_expense_repository
from schemas import (
    ExpenseCreate,
    ExpenseListResponse,
    ExpenseMutationResponse,
    ExpenseQuery,
    ExpenseResponse,
    ExpenseSummary,
    ExpenseUpdate,
)

router = APIRouter()

# Largest value an SQL INTEGER column can hold
MAX_EXPENSE_ID = 2**63 - 1
# page * limit must still fit an SQL OFFSET
MAX_PAGING_VALUE = 2**31 - 1


def _parse_expense_id(expense_id: str) -> int:
    try:
        parsed = int(expense_id)
    except ValueError:
        raise ValidationError("Invalid expense ID")
    if not -MAX_EXPENSE_ID - 1 <= parsed <= MAX_EXPENSE_ID:
        raise ValidationError("Invalid expense ID")
    return parsed


def _positive_int(value: Optional[str], default: int) -> int:
    # Unparseable or out-of-range paging values fall back to the default
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if 1 <= parsed <= MAX_PAGING_VALUE else default


@router.get("/expenses", response_model=ExpenseListResponse)
def get_expenses(
    category: Optional[str] = None,
    payment_status: Optional[str] = None,
    search: Optional[str] = None,
    sort_by: str = Query(default="createdAt", alias="sortBy"),
    sort_order: str = Query(default="desc", alias="sortOrder"),
    page: Optional[str] = None,
    limit: Optional[str] = None,
    repo: ExpenseRepository = Depends(get_expense_repository),
    current_user: User = Depends(get_current_user),
):
    query = ExpenseQuery(
        category=category,
        payment_status=payment_status,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=_positive_int(page, 1),
        limit=_positive_int(limit, get_settings().default_page_size),
    )
    return repo.list_expenses(current_user.id, query)


@router.post(
    "/expenses",
    response_model=ExpenseMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_expense(
    expense: ExpenseCreate,
    repo: ExpenseRepository = Depends(get_expense_repository),
    current_user: User = Depends(get_current_user),
):
    created = repo.create(current_user.id, expense)
    return ExpenseMutationResponse(
        message="Expense created successfully", expense=created
    )


@router.get("/expenses/{expense_id}", response_model=ExpenseResponse)
def get_expense(
    expense_id: str,
    repo: ExpenseRepository = Depends(get_expense_repository),
    current_user: User = Depends(get_current_user),
):
    expense = repo.get(current_user.id, _parse_expense_id(expense_id))
    return ExpenseResponse(expense=expense)


@router.put("/expenses/{expense_id}", response_model=ExpenseMutationResponse)
def update_expense(
    expense_id: str,
    changes: ExpenseUpdate,
    repo: ExpenseRepository = Depends(get_expense_repository),
    current_user: User = Depends(get_current_user),
):
    updated = repo.update(current_user.id, _parse_expense_id(expense_id), changes)
    return ExpenseMutationResponse(
        message="Expense updated successfully", expense=updated
    )


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_expense(
    expense_id: str,
    repo: ExpenseRepository = Depends(get_expense_repository),
    current_user: User = Depends(get_current_user),
):
    repo.delete(current_user.id, _parse_expense_id(expense_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/profile/summary", response_model=ExpenseSummary)
def get_profile_summary(
    repo: ExpenseRepository = Depends(get_expense_repository),
    current_user: User = Depends(get_current_user),
):
    """
    Totals for the profile page: counts and tax-inclusive amounts per
    category and per payment status, plus the most recent expenses.
    """
    expenses = repo.all_for_user(current_user.id)
    return summarize_expenses(
        expenses, recent_limit=get_settings().recent_expenses_limit
    )

import logging
import math

from fastapi import Depends
from sqlalchemy.orm import Session, joinedload

from database import Expense, get_db
from errors import ForbiddenError, NotFoundError
from schemas import (
    ExpenseCreate,
    ExpenseListResponse,
    ExpenseOut,
    ExpenseQuery,
    ExpenseUpdate,
    Pagination,
)

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "createdAt": Expense.created_at,
    "base_amount": Expense.base_amount,
    "tax_rate": Expense.tax_rate,
    "description": Expense.description,
    "category": Expense.category,
}
DEFAULT_SORT_FIELD = "createdAt"


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ExpenseRepository:
    """Expense persistence scoped to the owning user."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, user_id: int, data: ExpenseCreate) -> ExpenseOut:
        expense = Expense(
            user_id=user_id,
            description=data.description,
            base_amount=float(data.base_amount),
            tax_rate=float(data.tax_rate),
            category=data.category.value,
            payment_status=data.payment_status.value,
        )
        self.db.add(expense)
        self.db.commit()
        self.db.refresh(expense)
        logger.info("Created expense %s for user %s", expense.id, user_id)
        return ExpenseOut.model_validate(expense)

    def _get_owned(
        self, user_id: int, expense_id: int, forbidden_message: str = "Forbidden"
    ) -> Expense:
        expense = self.db.get(Expense, expense_id)
        if expense is None:
            raise NotFoundError("Expense not found")
        if expense.user_id != user_id:
            raise ForbiddenError(forbidden_message)
        return expense

    def get(self, user_id: int, expense_id: int) -> ExpenseOut:
        expense = self._get_owned(
            user_id, expense_id, "Forbidden - You can only access your own expenses"
        )
        return ExpenseOut.model_validate(expense)

    def update(self, user_id: int, expense_id: int, changes: ExpenseUpdate) -> ExpenseOut:
        values = changes.model_dump(exclude_unset=True, exclude_none=True)
        if "category" in values:
            values["category"] = values["category"].value
        if "payment_status" in values:
            values["payment_status"] = values["payment_status"].value

        owned = self.db.query(Expense).filter(
            Expense.id == expense_id, Expense.user_id == user_id
        )
        if values:
            affected = owned.update(values, synchronize_session=False)
            self.db.commit()
        else:
            affected = owned.count()

        # A missing expense and someone else's expense look the same here
        if affected == 0:
            raise NotFoundError(
                "Expense not found or you do not have permission to update it"
            )

        logger.info("Updated expense %s fields %s", expense_id, sorted(values))
        expense = self.db.get(Expense, expense_id, populate_existing=True)
        if expense is None:
            raise NotFoundError("Expense not found")
        return ExpenseOut.model_validate(expense)

    def delete(self, user_id: int, expense_id: int) -> None:
        expense = self._get_owned(user_id, expense_id)
        self.db.delete(expense)
        self.db.commit()
        logger.info("Deleted expense %s for user %s", expense_id, user_id)

    def list_expenses(self, user_id: int, query: ExpenseQuery) -> ExpenseListResponse:
        filtered = self.db.query(Expense).filter(Expense.user_id == user_id)
        if query.category:
            filtered = filtered.filter(Expense.category == query.category)
        if query.payment_status:
            filtered = filtered.filter(Expense.payment_status == query.payment_status)
        if query.search:
            pattern = f"%{_escape_like(query.search)}%"
            filtered = filtered.filter(Expense.description.ilike(pattern, escape="\\"))

        sort_column = SORTABLE_COLUMNS.get(
            query.sort_by, SORTABLE_COLUMNS[DEFAULT_SORT_FIELD]
        )
        if query.sort_order == "asc":
            ordering = (sort_column.asc(), Expense.id.asc())
        else:
            ordering = (sort_column.desc(), Expense.id.desc())

        page, limit = query.page, query.limit
        skip = (page - 1) * limit
        rows = (
            filtered.options(joinedload(Expense.owner))
            .order_by(*ordering)
            .offset(skip)
            .limit(limit)
            .all()
        )
        total = filtered.count()
        total_pages = math.ceil(total / limit)

        return ExpenseListResponse(
            expenses=[ExpenseOut.model_validate(row) for row in rows],
            pagination=Pagination(
                current_page=page,
                limit=limit,
                total_expenses=total,
                total_pages=total_pages,
                has_prev_page=page > 1,
                has_next_page=page < total_pages,
            ),
        )

    def all_for_user(self, user_id: int) -> list[ExpenseOut]:
        rows = (
            self.db.query(Expense)
            .options(joinedload(Expense.owner))
            .filter(Expense.user_id == user_id)
            .order_by(Expense.created_at.desc(), Expense.id.desc())
            .all()
        )
        return [ExpenseOut.model_validate(row) for row in rows]


def get_expense_repository(db: Session = Depends(get_db)) -> ExpenseRepository:
    return ExpenseRepository(db)

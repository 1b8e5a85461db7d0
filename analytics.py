from typing import Sequence

from schemas import BucketSummary, ExpenseOut, ExpenseSummary

RECENT_EXPENSES_LIMIT = 5


def summarize_expenses(
    expenses: Sequence[ExpenseOut], recent_limit: int = RECENT_EXPENSES_LIMIT
) -> ExpenseSummary:
    """
    Totals a list of expenses by category and by payment status.

    The list order is kept as-is; callers pass it newest first so that
    the leading ``recent_limit`` items are the most recent expenses.
    """
    by_category: dict[str, BucketSummary] = {}
    by_payment_status: dict[str, BucketSummary] = {}
    total_amount = 0.0

    for expense in expenses:
        amount = expense.total_amount

        bucket = by_category.setdefault(expense.category.value, BucketSummary())
        bucket.count += 1
        bucket.amount += amount

        bucket = by_payment_status.setdefault(
            expense.payment_status.value, BucketSummary()
        )
        bucket.count += 1
        bucket.amount += amount

        total_amount += amount

    return ExpenseSummary(
        total_expenses=len(expenses),
        total_amount=total_amount,
        by_category=by_category,
        by_payment_status=by_payment_status,
        recent_expenses=list(expenses[:recent_limit]),
    )

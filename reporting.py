"""
Read-side aggregation for the reports pages.

These helpers take already-loaded rows (anything with ``type``, ``amount``,
``category`` and ``date`` attributes) and never touch the database.
Transfers move money between the user's own accounts and are left out of
income and expense figures.
"""

from collections import defaultdict
from typing import Dict, Iterable, List


def totals(transactions: Iterable) -> Dict[str, float]:
    income = expenses = 0.0
    for t in transactions:
        if t.type == "income":
            income += t.amount
        elif t.type == "expense":
            expenses += t.amount
    return {"income": income, "expenses": expenses}


def savings_rate(income: float, expenses: float) -> float:
    if income <= 0:
        return 0.0
    return round((income - expenses) / income * 100, 2)


def by_category(transactions: Iterable, type_: str) -> List[Dict]:
    """Per-category sums for one transaction type, largest first."""
    sums = defaultdict(float)
    for t in transactions:
        if t.type == type_:
            sums[t.category] += t.amount
    rows = [{"category": c, "amount": round(a, 2)} for c, a in sums.items()]
    rows.sort(key=lambda r: (-r["amount"], r["category"]))
    return rows


def monthly_trends(transactions: Iterable) -> List[Dict]:
    buckets = {}
    for t in transactions:
        if t.type not in ("income", "expense"):
            continue
        month = t.date.strftime("%Y-%m")
        bucket = buckets.setdefault(month, {"month": month, "income": 0.0, "expenses": 0.0})
        if t.type == "income":
            bucket["income"] += t.amount
        else:
            bucket["expenses"] += t.amount
    return [
        {"month": b["month"], "income": round(b["income"], 2), "expenses": round(b["expenses"], 2)}
        for b in sorted(buckets.values(), key=lambda b: b["month"])
    ]


def overview(transactions: List, accounts: Iterable) -> Dict:
    sums = totals(transactions)
    income, expenses = sums["income"], sums["expenses"]
    return {
        "total_income": round(income, 2),
        "total_expenses": round(expenses, 2),
        "total_savings": round(income - expenses, 2),
        "savings_rate": savings_rate(income, expenses),
        "account_balances": [{"name": a.name, "balance": a.balance} for a in accounts],
        "income_by_category": by_category(transactions, "income"),
        "expenses_by_category": by_category(transactions, "expense"),
        "monthly_trends": monthly_trends(transactions),
    }

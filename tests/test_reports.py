from datetime import date
from types import SimpleNamespace

import reporting


def tx(type_, amount, category, day):
    return SimpleNamespace(type=type_, amount=amount, category=category, date=day)


SAMPLE = [
    tx("income", 3000, "Salary", date(2024, 1, 31)),
    tx("expense", 200, "Food", date(2024, 1, 10)),
    tx("expense", 800, "Bills", date(2024, 1, 15)),
    tx("transfer", 500, "Savings", date(2024, 1, 20)),
    tx("income", 400, "Freelance", date(2024, 2, 3)),
    tx("expense", 100, "Food", date(2024, 2, 4)),
]


def test_totals_ignore_transfers():
    assert reporting.totals(SAMPLE) == {"income": 3400, "expenses": 1100}


def test_savings_rate():
    assert reporting.savings_rate(3400, 1100) == 67.65
    assert reporting.savings_rate(0, 50) == 0


def test_by_category_sorted_by_amount():
    assert reporting.by_category(SAMPLE, "expense") == [
        {"category": "Bills", "amount": 800},
        {"category": "Food", "amount": 300},
    ]


def test_monthly_trends():
    assert reporting.monthly_trends(SAMPLE) == [
        {"month": "2024-01", "income": 3000, "expenses": 1000},
        {"month": "2024-02", "income": 400, "expenses": 100},
    ]


def test_overview_endpoint(api):
    checking = api.account(name="Checking", balance=1000)
    savings = api.account(name="Savings", type="savings", balance=0)
    api.transaction(checking["id"], type="income", amount=2000, category="Salary", date="2024-05-01")
    api.transaction(checking["id"], amount=500, category="Bills", date="2024-05-03")
    api.transaction(checking["id"], amount=100, category="Food", date="2024-06-02")
    api.transaction(
        checking["id"], type="transfer", amount=300, category="Savings", to_account_id=savings["id"], date="2024-06-05"
    )

    data = api.get("/reports/overview").json()["data"]
    assert data["total_income"] == 2000
    assert data["total_expenses"] == 600
    assert data["total_savings"] == 1400
    assert data["savings_rate"] == 70
    assert data["account_balances"] == [{"name": "Checking", "balance": 2100}, {"name": "Savings", "balance": 300}]
    assert data["expenses_by_category"][0] == {"category": "Bills", "amount": 500}
    assert [m["month"] for m in data["monthly_trends"]] == ["2024-05", "2024-06"]

    june = api.get("/reports/overview", params={"start_date": "2024-06-01", "end_date": "2024-06-30"}).json()["data"]
    assert june["total_income"] == 0
    assert june["savings_rate"] == 0
    assert june["total_expenses"] == 100


def test_summary_endpoint(api):
    account = api.account(balance=0)
    api.transaction(account["id"], type="income", amount=1000, category="Salary", date="2024-01-31")
    api.transaction(account["id"], amount=250, category="Food", date="2024-01-02")
    api.transaction(account["id"], amount=40, category="Food", date="2024-02-14")

    monthly = api.get("/reports/summary").json()["data"]
    assert monthly == [
        {"label": "2024-01", "income": 1000, "expense": 250, "balance": 750},
        {"label": "2024-02", "income": 0, "expense": 40, "balance": -40},
    ]

    yearly = api.get("/reports/summary", params={"period": "yearly"}).json()["data"]
    assert yearly == [{"label": "2024", "income": 1000, "expense": 290, "balance": 710}]

    daily = api.get("/reports/summary", params={"period": "daily", "from_date": "2024-01-15"}).json()["data"]
    assert [d["label"] for d in daily] == ["2024-01-31", "2024-02-14"]

    assert api.get("/reports/summary", params={"period": "weekly"}).status_code == 400

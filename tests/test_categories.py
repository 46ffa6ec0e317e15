from datetime import date, timedelta

from models import SYSTEM_CATEGORIES


def make_category(api, name, type="expense", **extra):
    resp = api.post("/categories", {"name": name, "type": type, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def by_name(listing):
    return {c["name"]: c for c in listing["data"]}


def test_system_categories_are_listed_for_everyone(api, other_api):
    listing = api.get("/categories").json()
    assert listing["count"] == len(SYSTEM_CATEGORIES)
    food = by_name(listing)["Food"]
    assert food["is_custom"] is False
    assert food["stats"] == {"total_amount": 0, "count": 0, "avg_amount": 0}

    make_category(api, "Coffee")
    assert "Coffee" in by_name(api.get("/categories").json())
    assert "Coffee" not in by_name(other_api.get("/categories").json())

    incomes = api.get("/categories", params={"type": "income"}).json()
    assert {c["type"] for c in incomes["data"]} == {"income"}


def test_usage_stats_cover_last_thirty_days(api):
    account = api.account(balance=500)
    api.transaction(account["id"], amount=10, category="Food")
    api.transaction(account["id"], amount=30, category="Food")
    api.transaction(account["id"], amount=99, category="Food", date=(date.today() - timedelta(days=45)).isoformat())

    stats = by_name(api.get("/categories").json())["Food"]["stats"]
    assert stats == {"total_amount": 40, "count": 2, "avg_amount": 20}


def test_name_clash_with_system_or_own_category(api):
    resp = api.post("/categories", {"name": "Food", "type": "expense"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Category with this name already exists"

    make_category(api, "Pets")
    assert api.post("/categories", {"name": "Pets", "type": "expense"}).status_code == 400


def test_system_category_cannot_be_changed(api):
    food = by_name(api.get("/categories").json())["Food"]
    resp = api.put(f"/categories/{food['id']}", {"name": "Groceries"})
    assert resp.status_code == 404
    assert resp.json()["error"] == "Category not found or cannot be modified"

    resp = api.delete(f"/categories/{food['id']}")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Category not found or cannot be deleted"


def test_delete_refuses_categories_in_use(api):
    account = api.account(balance=100)
    used = make_category(api, "Gym")
    unused = make_category(api, "Books")
    api.transaction(account["id"], amount=25, category="Gym")

    resp = api.delete(f"/categories/{used['id']}")
    assert resp.status_code == 400
    assert resp.json()["error"].startswith("Cannot delete category with existing transactions")

    assert api.delete(f"/categories/{unused['id']}").status_code == 200
    assert api.get(f"/categories/{unused['id']}").status_code == 404


def test_subcategories_are_two_tiers_deep(api):
    food = by_name(api.get("/categories").json())["Food"]
    restaurants = make_category(api, "Restaurants", parent_id=food["id"])
    make_category(api, "Groceries", parent_id=food["id"])

    children = api.get(f"/categories/{food['id']}/subcategories").json()
    assert [c["name"] for c in children["data"]] == ["Groceries", "Restaurants"]

    resp = api.post("/categories", {"name": "Sushi", "type": "expense", "parent_id": restaurants["id"]})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid parent category"

    own_parent = make_category(api, "Hobbies")
    resp = api.put(f"/categories/{own_parent['id']}", {"parent_id": own_parent["id"]})
    assert resp.status_code == 400


def test_parent_with_children_cannot_become_a_child(api):
    parent = make_category(api, "Home")
    make_category(api, "Furniture", parent_id=parent["id"])
    other = make_category(api, "Garden")

    resp = api.put(f"/categories/{parent['id']}", {"parent_id": other["id"]})
    assert resp.status_code == 400


def test_deleting_parent_orphans_children(api):
    parent = make_category(api, "Travel")
    child = make_category(api, "Flights", parent_id=parent["id"])

    assert api.delete(f"/categories/{parent['id']}").status_code == 200
    assert api.get(f"/categories/{child['id']}").json()["data"]["parent_id"] is None


def test_rename_updates_transactions_and_budgets(api):
    account = api.account(balance=100)
    category = make_category(api, "Snacks")
    tx = api.transaction(account["id"], amount=5, category="Snacks")
    today = date.today().isoformat()
    budget = api.post(
        "/budgets",
        {"category": "Snacks", "limit": 50, "period": "daily", "start_date": today, "end_date": today},
    ).json()["data"]

    resp = api.put(f"/categories/{category['id']}", {"name": "Treats", "color": "#ff0000"})
    assert resp.status_code == 200
    assert resp.json()["data"]["name"] == "Treats"
    assert resp.json()["data"]["color"] == "#ff0000"

    assert api.get(f"/transactions/{tx['id']}").json()["data"]["category"] == "Treats"
    renamed = api.get(f"/budgets/{budget['id']}").json()["data"]
    assert renamed["category"] == "Treats"
    assert renamed["spent"] == 5


def test_category_detail(api):
    account = api.account(balance=1000)
    api.transaction(account["id"], amount=10, category="Transport", date="2024-01-05")
    api.transaction(account["id"], amount=30, category="Transport", date="2024-01-20")
    api.transaction(account["id"], amount=50, category="Transport", date="2024-02-02")
    api.transaction(account["id"], amount=70, category="Food", date="2024-02-03")

    transport = by_name(api.get("/categories").json())["Transport"]
    detail = api.get(f"/categories/{transport['id']}").json()["data"]
    assert detail["name"] == "Transport"
    assert detail["monthly_stats"] == [
        {"year": 2024, "month": 2, "total_amount": 50, "count": 1, "avg_amount": 50},
        {"year": 2024, "month": 1, "total_amount": 40, "count": 2, "avg_amount": 20},
    ]
    assert [t["amount"] for t in detail["recent_transactions"]] == [50, 30, 10]


def test_category_stats(api):
    account = api.account(balance=1000)
    api.transaction(account["id"], amount=10, category="Bills", date="2024-03-01")
    api.transaction(account["id"], amount=90, category="Bills", date="2024-03-09")
    api.transaction(account["id"], amount=20, category="Food", date="2024-03-05")
    api.transaction(account["id"], type="income", amount=400, category="Salary", date="2024-03-02")

    stats = api.get("/categories/stats", params={"type": "expense"}).json()["data"]
    assert [s["category"] for s in stats] == ["Bills", "Food"]
    bills = stats[0]
    assert bills["total_amount"] == 100
    assert (bills["min_amount"], bills["max_amount"]) == (10, 90)
    assert (bills["first_transaction"], bills["last_transaction"]) == ("2024-03-01", "2024-03-09")

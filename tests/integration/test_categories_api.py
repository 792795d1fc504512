"""Integration tests for categories and manual transaction categorization."""
from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient

from banksync.models import Category, Transaction


@pytest.fixture
async def transaction(db_session, household, account) -> Transaction:
    txn = Transaction(
        household_id=household.id,
        account_id=account.id,
        date=date(2024, 6, 10),
        description="AROMA ESPRESSO BAR - TEL AVIV",
        merchant="AROMA ESPRESSO BAR",
        amount=Decimal("18.00"),
        direction="expense",
        external_id="12-345-678_55",
        dedup_hash="00aa11bb22cc33dd",
    )
    db_session.add(txn)
    await db_session.commit()
    await db_session.refresh(txn)
    return txn


async def _create(client, headers, **payload):
    response = await client.post("/api/v1/categories", json=payload, headers=headers)
    return response


class TestCategoryTree:
    async def test_one_level_of_nesting(self, client: AsyncClient, household_headers):
        food = (await _create(client, household_headers, name="Food", type="expense")).json()
        child = await _create(
            client, household_headers, name="Groceries", type="expense", parent_id=food["id"]
        )
        assert child.status_code == 201

        grandchild = await _create(
            client,
            household_headers,
            name="Vegetables",
            type="expense",
            parent_id=child.json()["id"],
        )
        assert grandchild.status_code == 400
        assert grandchild.json()["error_code"] == "VAL_001"

        tree = (await client.get("/api/v1/categories", headers=household_headers)).json()
        assert [(n["name"], [c["name"] for c in n["children"]]) for n in tree] == [
            ("Food", ["Groceries"])
        ]

    async def test_child_type_must_match(self, client: AsyncClient, household_headers):
        salary = (await _create(client, household_headers, name="Salary", type="income")).json()

        response = await _create(
            client, household_headers, name="Rent", type="expense", parent_id=salary["id"]
        )

        assert response.status_code == 400

    async def test_delete_removes_children(self, client: AsyncClient, household_headers):
        food = (await _create(client, household_headers, name="Food", type="expense")).json()
        await _create(client, household_headers, name="Groceries", type="expense", parent_id=food["id"])

        response = await client.delete(f"/api/v1/categories/{food['id']}", headers=household_headers)

        assert response.json() == {"deleted": 2}
        assert (await client.get("/api/v1/categories", headers=household_headers)).json() == []

    async def test_delete_unknown(self, client: AsyncClient, household_headers, other_household, db_session):
        foreign = Category(household_id=other_household.id, name="Fuel", type="expense")
        db_session.add(foreign)
        await db_session.commit()

        response = await client.delete(f"/api/v1/categories/{foreign.id}", headers=household_headers)

        assert response.status_code == 404


class TestManualCategorization:
    async def test_assign_without_rule(
        self, client: AsyncClient, household_headers, transaction, coffee
    ):
        response = await client.put(
            f"/api/v1/transactions/{transaction.id}/category",
            json={"category_id": str(coffee.id)},
            headers=household_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["category_id"] == str(coffee.id)
        assert data["categorization_source"] == "manual"
        assert data["created_rule_id"] is None
        assert (await client.get("/api/v1/rules", headers=household_headers)).json() == []

    async def test_assign_with_rule(self, client: AsyncClient, household_headers, transaction, coffee):
        response = await client.put(
            f"/api/v1/transactions/{transaction.id}/category",
            json={"category_id": str(coffee.id), "create_rule": True},
            headers=household_headers,
        )

        data = response.json()
        assert data["created_rule_id"] is not None

        [rule] = (await client.get("/api/v1/rules", headers=household_headers)).json()
        assert rule["id"] == data["created_rule_id"]
        assert rule["type"] == "merchant"
        assert rule["created_from"] == "manual_categorization"

    async def test_other_household_transaction(
        self, client: AsyncClient, transaction, other_household
    ):
        response = await client.put(
            f"/api/v1/transactions/{transaction.id}/category",
            json={"category_id": str(transaction.id)},
            headers={"X-Household-ID": str(other_household.id)},
        )

        assert response.status_code == 404

"""Tests for the sync orchestrator.

Scrapers are fakes; everything else (vault, mapper, dedup, repositories,
categorization) runs for real against the test database.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from banksync.core.exceptions import (
    ConfigurationError,
    PersistenceError,
    ScraperError,
    SyncInProgressError,
)
from banksync.core.vault import CredentialVault
from banksync.models import BankConnection, Category, CategoryRule, SyncJob, Transaction
from banksync.repositories.sync_job import SyncJobRepository
from banksync.repositories.transaction import TransactionRepository
from banksync.scraper.registry import ScraperRegistry
from banksync.services.sync import ALREADY_SYNCING, ConnectionLockRegistry, SyncOrchestrator

ONEZERO_CREDS = {"email": "dana@example.com", "password": "pw", "phone_number": "+972501234567"}


def _txn(identifier, description, amount, **extra):
    record = {
        "type": "normal",
        "identifier": identifier,
        "date": "2024-06-10T00:00:00.000Z",
        "processedDate": "2024-06-12T00:00:00.000Z",
        "originalAmount": amount,
        "originalCurrency": "ILS",
        "chargedAmount": amount,
        "description": description,
        "status": "completed",
    }
    record.update(extra)
    return record


THREE_RECORDS = [
    {
        "accountNumber": "1234",
        "txns": [
            _txn(1, "Shufersal Deal - Tel Aviv", -250.5),
            _txn(2, "Cafe Nimrod", -42, category="Restaurants"),
            _txn(3, "Salary", 15000),
        ],
    }
]


class FakeScraper:
    def __init__(self, provider="isracard", accounts=None, error=None, delay=0.0):
        self.provider = provider
        self.accounts = accounts if accounts is not None else THREE_RECORDS
        self.error = error
        self.delay = delay
        self.calls = []

    async def scrape(self, credentials, start_date, long_term_token=None):
        self.calls.append((credentials, start_date, long_term_token))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.accounts


@pytest.fixture
def build_orchestrator(session_factory, vault, metrics):
    def _build(*scrapers, **kwargs):
        kwargs.setdefault("vault", vault)
        kwargs.setdefault("metrics", metrics)
        kwargs.setdefault("max_concurrency", 1)
        return SyncOrchestrator(session_factory, ScraperRegistry(list(scrapers)), **kwargs)

    return _build


async def _rows(session_factory, model, *criteria):
    async with session_factory() as db:
        result = await db.execute(select(model).where(*criteria))
        return list(result.scalars().all())


class TestSyncHousehold:
    async def test_syncs_new_transactions(
        self, build_orchestrator, make_connection, household, session_factory, metrics
    ):
        connection = await make_connection(household.id)
        scraper = FakeScraper()

        result = await build_orchestrator(scraper).sync_household(household.id)

        assert result.success is True
        assert result.synced_connections == 1
        assert result.total_transactions_found == 3
        assert result.total_transactions_new == 3
        assert result.errors == []
        assert result.message == "Synced 1/1 connections"

        credentials = scraper.calls[0][0]
        assert credentials.card6_digits == "123456"

        rows = await _rows(session_factory, Transaction, Transaction.household_id == household.id)
        assert {r.external_id for r in rows} == {"1234_1", "1234_2", "1234_3"}

        jobs = await _rows(session_factory, SyncJob, SyncJob.connection_id == connection.id)
        assert [(j.status, j.transactions_found, j.transactions_new) for j in jobs] == [
            ("succeeded", 3, 3)
        ]

        [stored] = await _rows(session_factory, BankConnection, BankConnection.id == connection.id)
        assert stored.last_sync_status == "succeeded"
        assert stored.last_sync_at is not None
        assert "1234" in stored.account_mappings

        assert metrics.counters["sync.connection.succeeded"] == 1
        assert metrics.counters["sync.transactions.new"] == 3

    @pytest.mark.parametrize("failing_first", [True, False])
    async def test_failure_is_isolated(
        self, build_orchestrator, make_connection, household, session_factory, failing_first
    ):
        if failing_first:
            await make_connection(household.id, "Bank B", "onezero", credentials=ONEZERO_CREDS)
            await make_connection(household.id, "Bank A")
        else:
            await make_connection(household.id, "Bank A")
            await make_connection(household.id, "Bank B", "onezero", credentials=ONEZERO_CREDS)

        orchestrator = build_orchestrator(
            FakeScraper("isracard"),
            FakeScraper("onezero", error=ScraperError("Bank website unavailable")),
        )
        result = await orchestrator.sync_household(household.id)

        assert result.success is True
        assert result.is_partial is True
        assert result.synced_connections == 1
        assert result.total_connections == 2
        assert result.total_transactions_new == 3
        assert result.errors == ["Bank B: Bank website unavailable"]

        rows = await _rows(session_factory, Transaction, Transaction.household_id == household.id)
        assert len(rows) == 3

    async def test_all_failing_is_unsuccessful(self, build_orchestrator, make_connection, household):
        await make_connection(household.id)

        result = await build_orchestrator(
            FakeScraper(error=RuntimeError("boom"))
        ).sync_household(household.id)

        assert result.success is False
        assert result.synced_connections == 0
        assert result.errors == ["Isracard: boom"]

    async def test_no_connections(self, build_orchestrator, household):
        result = await build_orchestrator().sync_household(household.id)

        assert result.success is True
        assert result.total_connections == 0
        assert result.message == "Synced 0/0 connections"

    async def test_second_sync_inserts_nothing(
        self, build_orchestrator, make_connection, household, session_factory
    ):
        await make_connection(household.id)
        orchestrator = build_orchestrator(FakeScraper())

        await orchestrator.sync_household(household.id)
        result = await orchestrator.sync_household(household.id)

        assert result.total_transactions_found == 3
        assert result.total_transactions_new == 0
        rows = await _rows(session_factory, Transaction, Transaction.household_id == household.id)
        assert len(rows) == 3

    async def test_hash_id_replaced_by_real_id_is_flagged(
        self, build_orchestrator, make_connection, household, session_factory
    ):
        await make_connection(household.id)
        scraper = FakeScraper(accounts=[{"accountNumber": "1234", "txns": [_txn(None, "IKEA", -300)]}])
        orchestrator = build_orchestrator(scraper)
        await orchestrator.sync_household(household.id)

        scraper.accounts = [{"accountNumber": "1234", "txns": [_txn("A-77", "IKEA", -300)]}]
        result = await orchestrator.sync_household(household.id)

        assert result.total_transactions_new == 1
        assert result.details[0].needs_review == 1
        rows = await _rows(session_factory, Transaction, Transaction.household_id == household.id)
        assert len(rows) == 2
        flagged = [r for r in rows if r.needs_review]
        assert [r.external_id for r in flagged] == ["1234_A-77"]

    async def test_existing_account_is_reused(
        self, build_orchestrator, make_connection, household, account, session_factory
    ):
        await make_connection(household.id)
        scraper = FakeScraper(
            accounts=[{"accountNumber": "12-345-678", "txns": [_txn(9, "Rami Levy", -80)]}]
        )

        await build_orchestrator(scraper).sync_household(household.id)

        [row] = await _rows(session_factory, Transaction, Transaction.household_id == household.id)
        assert row.account_id == account.id

    async def test_new_rows_are_categorized(
        self, build_orchestrator, make_connection, household, groceries, db_session, session_factory
    ):
        db_session.add(
            CategoryRule(
                household_id=household.id,
                type="merchant",
                pattern="shufersal",
                category_id=groceries.id,
                priority=10,
            )
        )
        await db_session.commit()
        await make_connection(household.id)

        await build_orchestrator(FakeScraper()).sync_household(household.id)

        rows = {
            r.external_id: r
            for r in await _rows(
                session_factory, Transaction, Transaction.household_id == household.id
            )
        }
        assert rows["1234_1"].category_id == groceries.id
        assert rows["1234_1"].categorization_source == "rule_merchant"
        assert rows["1234_2"].categorization_source == "imported"
        assert rows["1234_3"].category_id is None
        assert rows["1234_3"].categorization_source == "none"

        [restaurants] = await _rows(session_factory, Category, Category.name == "Restaurants")
        assert rows["1234_2"].category_id == restaurants.id

    async def test_bank_category_on_income_creates_income_category(
        self, build_orchestrator, make_connection, household, session_factory
    ):
        await make_connection(household.id)
        scraper = FakeScraper(
            accounts=[{"accountNumber": "1234", "txns": [_txn(4, "Tax refund", 900, category="Refunds")]}]
        )

        await build_orchestrator(scraper).sync_household(household.id)

        [refunds] = await _rows(session_factory, Category, Category.name == "Refunds")
        assert refunds.type == "income"
        [row] = await _rows(session_factory, Transaction, Transaction.household_id == household.id)
        assert row.category_id == refunds.id

    async def test_single_connection(self, build_orchestrator, make_connection, household):
        first = await make_connection(household.id, "Bank A")
        await make_connection(household.id, "Bank B")
        scraper = FakeScraper()

        result = await build_orchestrator(scraper).sync_household(household.id, first.id)

        assert result.total_connections == 1
        assert result.details[0].connection_id == first.id
        assert len(scraper.calls) == 1

    async def test_connection_of_other_household_is_not_found(
        self, build_orchestrator, make_connection, household, other_household
    ):
        foreign = await make_connection(other_household.id)
        scraper = FakeScraper()

        result = await build_orchestrator(scraper).sync_household(household.id, foreign.id)

        assert result.success is False
        assert result.errors == ["Connection not found"]
        assert scraper.calls == []

    async def test_unknown_connection(self, build_orchestrator, household):
        result = await build_orchestrator().sync_household(household.id, uuid4())

        assert result.success is False
        assert result.message == "Connection not found"


class TestSyncFailures:
    async def test_missing_secret_aborts_cycle(
        self, build_orchestrator, make_connection, household, session_factory
    ):
        await make_connection(household.id)
        scraper = FakeScraper()
        orchestrator = build_orchestrator(scraper, vault=CredentialVault(None))

        with pytest.raises(ConfigurationError):
            await orchestrator.sync_household(household.id)

        assert scraper.calls == []
        assert await _rows(session_factory, SyncJob) == []

    async def test_busy_connection_is_rejected(
        self, build_orchestrator, make_connection, household, session_factory
    ):
        connection = await make_connection(household.id)
        locks = ConnectionLockRegistry()
        assert locks.try_acquire(connection.id)
        scraper = FakeScraper()

        result = await build_orchestrator(scraper, locks=locks).sync_household(household.id)

        assert result.success is False
        assert result.total_connections == 1
        assert result.errors == [f"Isracard: {ALREADY_SYNCING}"]
        assert scraper.calls == []
        assert await _rows(session_factory, SyncJob) == []
        assert locks.is_syncing(connection.id)

    async def test_busy_requested_connection_raises(
        self, build_orchestrator, make_connection, household
    ):
        connection = await make_connection(household.id)
        locks = ConnectionLockRegistry()
        locks.try_acquire(connection.id)

        with pytest.raises(SyncInProgressError):
            await build_orchestrator(FakeScraper(), locks=locks).sync_household(
                household.id, connection.id
            )

    async def test_concurrent_requests_for_one_connection(
        self, build_orchestrator, make_connection, household
    ):
        connection = await make_connection(household.id)
        scraper = FakeScraper(delay=0.2)
        orchestrator = build_orchestrator(scraper)

        outcomes = await asyncio.gather(
            orchestrator.sync_household(household.id, connection.id),
            orchestrator.sync_household(household.id, connection.id),
            return_exceptions=True,
        )

        assert len(scraper.calls) == 1
        [error] = [o for o in outcomes if isinstance(o, Exception)]
        [result] = [o for o in outcomes if not isinstance(o, Exception)]
        assert isinstance(error, SyncInProgressError)
        assert result.synced_connections == 1
        assert not orchestrator.locks.is_syncing(connection.id)

    async def test_lock_is_released_when_connection_not_found(
        self, build_orchestrator, household
    ):
        orchestrator = build_orchestrator()
        missing = uuid4()

        await orchestrator.sync_household(household.id, missing)

        assert not orchestrator.locks.is_syncing(missing)

    async def test_lock_is_released_after_sync(self, build_orchestrator, make_connection, household):
        connection = await make_connection(household.id)
        locks = ConnectionLockRegistry()

        await build_orchestrator(FakeScraper(error=RuntimeError("x")), locks=locks).sync_household(
            household.id
        )

        assert not locks.is_syncing(connection.id)

    async def test_concurrent_cycles_sync_once(
        self, build_orchestrator, make_connection, household
    ):
        await make_connection(household.id)
        scraper = FakeScraper(delay=0.2)
        orchestrator = build_orchestrator(scraper)

        first, second = await asyncio.gather(
            orchestrator.sync_household(household.id),
            orchestrator.sync_household(household.id),
        )

        assert len(scraper.calls) == 1
        assert sorted([first.synced_connections, second.synced_connections]) == [0, 1]

    async def test_timeout_marks_job_failed(
        self, build_orchestrator, make_connection, household, session_factory, metrics
    ):
        connection = await make_connection(household.id)
        orchestrator = build_orchestrator(FakeScraper(delay=10), timeout_seconds=0.5)

        result = await orchestrator.sync_household(household.id)

        assert result.success is False
        assert "timed out" in result.errors[0]

        [job] = await _rows(session_factory, SyncJob, SyncJob.connection_id == connection.id)
        assert job.status == "failed"
        assert "timed out" in job.error_message
        [stored] = await _rows(session_factory, BankConnection, BankConnection.id == connection.id)
        assert stored.last_sync_status == "failed"
        assert metrics.counters["sync.connection.failed"] == 1

    async def test_expired_login_requires_reauthentication(
        self, build_orchestrator, make_connection, household, session_factory
    ):
        connection = await make_connection(household.id)

        result = await build_orchestrator(
            FakeScraper(error=ScraperError("Session expired"))
        ).sync_household(household.id)

        assert result.errors == ["Isracard: Session expired"]
        [stored] = await _rows(session_factory, BankConnection, BankConnection.id == connection.id)
        assert stored.last_sync_status == "auth_required"
        [job] = await _rows(session_factory, SyncJob, SyncJob.connection_id == connection.id)
        assert job.status == "failed"
        assert job.error_message == "Session expired"

    async def test_error_messages_are_filtered(self, build_orchestrator, make_connection, household):
        await make_connection(household.id)

        result = await build_orchestrator(
            FakeScraper(error=ScraperError("Login rejected password=s3cret"))
        ).sync_household(household.id)

        assert "s3cret" not in result.errors[0]

    async def test_credentials_for_wrong_provider(
        self, build_orchestrator, make_connection, household
    ):
        await make_connection(household.id, credentials=ONEZERO_CREDS)
        scraper = FakeScraper()

        result = await build_orchestrator(scraper).sync_household(household.id)

        assert result.errors == ["Isracard: Stored credentials do not match the provider"]
        assert scraper.calls == []

    async def test_corrupted_credentials(self, build_orchestrator, make_connection, household):
        await make_connection(household.id)
        other = CredentialVault("another-secret").encrypt({"id": "1"})

        await make_connection(household.id, "Tampered", encrypted_creds=other)
        result = await build_orchestrator(FakeScraper()).sync_household(household.id)

        assert result.synced_connections == 1
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Tampered: ")

    async def test_provider_without_scraper(self, build_orchestrator, make_connection, household):
        await make_connection(household.id)

        result = await build_orchestrator().sync_household(household.id)

        assert result.success is False
        assert result.errors == ["Isracard: No scraper registered for provider: isracard"]


TWO_ACCOUNTS = [
    {"accountNumber": "1111", "txns": [_txn(1, "Cafe Nimrod", -42)]},
    {"accountNumber": "2222", "txns": [_txn(1, "Cafe Xoho", -38)]},
]


class TestStoreFailures:
    async def test_failure_opening_job_is_isolated(
        self, build_orchestrator, make_connection, household, session_factory, monkeypatch
    ):
        await make_connection(household.id, "Bank A")
        broken = await make_connection(household.id, "Bank B", "onezero", credentials=ONEZERO_CREDS)
        start = SyncJobRepository.start

        async def start_or_fail(self, household_id, connection_id):
            if connection_id == broken.id:
                raise OperationalError("INSERT INTO sync_jobs", {}, Exception("db down"))
            return await start(self, household_id, connection_id)

        monkeypatch.setattr(SyncJobRepository, "start", start_or_fail)
        onezero = FakeScraper("onezero")

        result = await build_orchestrator(FakeScraper("isracard"), onezero).sync_household(
            household.id
        )

        assert result.success is True
        assert result.synced_connections == 1
        assert result.total_transactions_new == 3
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Bank B: ")
        assert onezero.calls == []

        assert await _rows(session_factory, SyncJob, SyncJob.connection_id == broken.id) == []
        [stored] = await _rows(session_factory, BankConnection, BankConnection.id == broken.id)
        assert stored.last_sync_status == "failed"

    async def test_crashed_connection_task_is_reported(
        self, build_orchestrator, make_connection, household, metrics, monkeypatch
    ):
        await make_connection(household.id, "Bank A")
        broken = await make_connection(household.id, "Bank B")
        orchestrator = build_orchestrator(FakeScraper())
        sync_connection = orchestrator._sync_connection

        async def crash_or_sync(conn, job_ids):
            if conn.id == broken.id:
                raise RuntimeError("boom")
            return await sync_connection(conn, job_ids)

        monkeypatch.setattr(orchestrator, "_sync_connection", crash_or_sync)

        result = await orchestrator.sync_household(household.id)

        assert result.synced_connections == 1
        assert result.errors == ["Bank B: boom"]
        assert metrics.counters["sync.connection.failed"] == 1
        assert not orchestrator.locks.is_syncing(broken.id)

    async def test_committed_groups_survive_a_later_group_failure(
        self, build_orchestrator, make_connection, household, groceries, db_session, session_factory,
        monkeypatch,
    ):
        db_session.add(
            CategoryRule(
                household_id=household.id,
                type="keyword",
                pattern="cafe",
                category_id=groceries.id,
                priority=5,
            )
        )
        await db_session.commit()
        connection = await make_connection(household.id)
        insert_group = TransactionRepository.insert_group

        async def insert_or_fail(self, rows):
            if rows[0].external_id.startswith("2222_"):
                raise PersistenceError("Failed to store transactions")
            return await insert_group(self, rows)

        monkeypatch.setattr(TransactionRepository, "insert_group", insert_or_fail)
        orchestrator = build_orchestrator(FakeScraper(accounts=TWO_ACCOUNTS))

        result = await orchestrator.sync_household(household.id)

        [detail] = result.details
        assert detail.success is False
        assert detail.error == "Failed to store transactions"
        assert detail.transactions_found == 2
        assert detail.transactions_new == 1
        assert result.total_transactions_new == 1

        [row] = await _rows(session_factory, Transaction, Transaction.household_id == household.id)
        assert row.external_id == "1111_1"
        assert row.category_id == groceries.id
        assert row.categorization_source == "rule_keyword"

        [job] = await _rows(session_factory, SyncJob, SyncJob.connection_id == connection.id)
        assert (job.status, job.transactions_found, job.transactions_new) == ("failed", 2, 1)

        monkeypatch.setattr(TransactionRepository, "insert_group", insert_group)
        retry = await orchestrator.sync_household(household.id)

        assert retry.success is True
        assert retry.total_transactions_new == 1
        rows = await _rows(session_factory, Transaction, Transaction.household_id == household.id)
        assert {r.external_id for r in rows} == {"1111_1", "2222_1"}
        assert all(r.category_id == groceries.id for r in rows)

    async def test_store_failure_keeps_sibling_results(
        self, build_orchestrator, make_connection, household, session_factory, monkeypatch
    ):
        await make_connection(household.id, "Bank A")
        await make_connection(household.id, "Bank B", "onezero", credentials=ONEZERO_CREDS)
        insert_group = TransactionRepository.insert_group

        async def insert_or_fail(self, rows):
            if rows[0].external_id.startswith("2222_"):
                raise PersistenceError("Failed to store transactions")
            return await insert_group(self, rows)

        monkeypatch.setattr(TransactionRepository, "insert_group", insert_or_fail)
        orchestrator = build_orchestrator(
            FakeScraper("isracard"),
            FakeScraper("onezero", accounts=[{"accountNumber": "2222", "txns": [_txn(5, "Wolt", -60)]}]),
        )

        result = await orchestrator.sync_household(household.id)

        assert result.success is True
        assert result.synced_connections == 1
        assert result.total_transactions_new == 3
        assert result.errors == ["Bank B: Failed to store transactions"]
        rows = await _rows(session_factory, Transaction, Transaction.household_id == household.id)
        assert len(rows) == 3


class TestScheduledSync:
    async def test_sync_all_active_skips_inactive(
        self, build_orchestrator, make_connection, household, other_household
    ):
        await make_connection(household.id, "Active")
        await make_connection(household.id, "Disabled", is_active=False)
        await make_connection(other_household.id, "Neighbour")

        result = await build_orchestrator(FakeScraper()).sync_all_active()

        assert result.total_connections == 2
        assert {d.display_name for d in result.details} == {"Active", "Neighbour"}

    async def test_stale_only(self, build_orchestrator, make_connection, household):
        now = datetime.now(timezone.utc)
        await make_connection(household.id, "Fresh", last_sync_at=now - timedelta(hours=1))
        await make_connection(household.id, "Stale", last_sync_at=now - timedelta(days=2))
        await make_connection(household.id, "Never")

        result = await build_orchestrator(FakeScraper()).sync_stale_connections(
            household.id, stale_threshold_hours=12
        )

        assert {d.display_name for d in result.details} == {"Stale", "Never"}

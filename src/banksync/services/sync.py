"""Sync orchestration.

One sync cycle walks a household's bank connections and, per connection:
1. Opens a sync job (running)
2. Decrypts the stored credentials and parses them into the provider's shape
3. Calls the provider's scraper
4. Normalizes the scraped records
5. Drops records whose external id is already stored
6. Persists the rest, one commit per account
7. Categorizes the new rows
8. Closes the sync job and updates the connection status

A failing connection never affects its siblings; its error is recorded in the
aggregate result. Only a missing master secret aborts the whole cycle, before
any connection is touched.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Iterable
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from banksync.utils.logger import filter_sensitive
from banksync.config import settings
from banksync.core.exceptions import BankSyncError, FormatError, ScraperError, SyncInProgressError
from banksync.core.vault import CredentialVault, get_vault
from banksync.ingest.dedup import filter_new, find_near_duplicates, group_by_account, transaction_hash
from banksync.ingest.mapper import map_account_transactions
from banksync.models.bank_connection import BankConnection
from banksync.models.transaction import Transaction
from banksync.monitoring.metrics import MetricsSink, NullMetricsSink
from banksync.repositories.account import AccountRepository
from banksync.repositories.bank_connection import BankConnectionRepository
from banksync.repositories.sync_job import SyncJobRepository
from banksync.repositories.transaction import TransactionRepository
from banksync.schemas.internal import MappedTransaction
from banksync.schemas.sync import ConnectionSyncDetail, SyncCycleResult
from banksync.scraper.registry import ScraperRegistry
from banksync.scraper.types import ScrapedAccount, parse_credentials
from banksync.services.categorization import CategorizationService

logger = logging.getLogger(__name__)

ALREADY_SYNCING = "Sync already in progress"
CONNECTION_NOT_FOUND = "Connection not found"
UNEXPECTED_ERROR = "Unexpected error during sync"


class ConnectionLockRegistry:
    """At most one in-flight sync per connection id.

    ``try_acquire`` never waits: a second trigger for a busy connection is
    rejected. Both methods run without awaiting, so check-and-set is atomic on
    the event loop.
    """

    def __init__(self):
        self._in_flight: set[UUID] = set()

    def try_acquire(self, connection_id: UUID) -> bool:
        if connection_id in self._in_flight:
            return False
        self._in_flight.add(connection_id)
        return True

    def release(self, connection_id: UUID) -> None:
        self._in_flight.discard(connection_id)

    def is_syncing(self, connection_id: UUID) -> bool:
        return connection_id in self._in_flight


@dataclass(frozen=True)
class _ConnectionRef:
    """Plain copy of the connection fields a sync needs."""

    id: UUID
    household_id: UUID
    provider: str
    display_name: str
    encrypted_creds: str
    long_term_token: str | None
    account_mappings: dict = field(default_factory=dict)

    @classmethod
    def from_model(cls, connection: BankConnection) -> "_ConnectionRef":
        return cls(
            id=connection.id,
            household_id=connection.household_id,
            provider=connection.provider,
            display_name=connection.display_name,
            encrypted_creds=connection.encrypted_creds,
            long_term_token=connection.long_term_token,
            account_mappings=dict(connection.account_mappings or {}),
        )


@dataclass
class _SyncProgress:
    """What one connection sync has committed so far.

    Rows are committed per account, so this outlives a failure part way through
    and still reports (and categorizes) what was stored.
    """

    account_mappings: dict
    found: int = 0
    new_ids: list[UUID] = field(default_factory=list)
    needs_review: int = 0
    categorized: bool = False


class SyncOrchestrator:
    """Runs sync cycles with bounded parallelism and a cycle timeout.

    Example:
        >>> orchestrator = SyncOrchestrator(AsyncSessionLocal, ScraperRegistry([scraper]))
        >>> result = await orchestrator.sync_household(household_id)
        >>> result.synced_connections
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        scrapers: ScraperRegistry,
        vault: CredentialVault | None = None,
        metrics: MetricsSink | None = None,
        locks: ConnectionLockRegistry | None = None,
        max_concurrency: int | None = None,
        timeout_seconds: float | None = None,
        lookback_days: int | None = None,
        base_currency: str | None = None,
    ):
        self.session_factory = session_factory
        self.scrapers = scrapers
        self.vault = vault or get_vault()
        self.metrics = metrics or NullMetricsSink()
        self.locks = locks or ConnectionLockRegistry()
        self.max_concurrency = max_concurrency or settings.sync_max_concurrency
        self.timeout_seconds = timeout_seconds or settings.sync_timeout_seconds
        self.lookback_days = lookback_days or settings.sync_lookback_days
        self.base_currency = base_currency or settings.base_currency

    async def sync_household(
        self, household_id: UUID, connection_id: UUID | None = None
    ) -> SyncCycleResult:
        """Sync one connection, or every active connection of the household.

        Raises:
            ConfigurationError: If no master secret is configured
            SyncInProgressError: If the requested connection is already syncing
        """
        start_time = time.time()
        self.vault.ensure_configured()
        if connection_id is None:
            return await self._sync_household_connections(household_id, start_time)

        # Held for the whole cycle so a concurrent request for the same
        # connection is rejected here rather than inside the cycle.
        if not self.locks.try_acquire(connection_id):
            raise SyncInProgressError(ALREADY_SYNCING)
        try:
            async with self.session_factory() as db:
                connection = await BankConnectionRepository(db).get_scoped(
                    household_id, connection_id
                )
                ref = _ConnectionRef.from_model(connection) if connection else None

            if ref is None:
                return SyncCycleResult(
                    success=False,
                    message=CONNECTION_NOT_FOUND,
                    errors=[CONNECTION_NOT_FOUND],
                    duration_ms=int((time.time() - start_time) * 1000),
                )
            return await self._run_cycle([ref], start_time, held=frozenset({connection_id}))
        finally:
            self.locks.release(connection_id)

    async def _sync_household_connections(
        self, household_id: UUID, start_time: float
    ) -> SyncCycleResult:
        async with self.session_factory() as db:
            connections = await BankConnectionRepository(db).get_active(household_id)
            refs = [_ConnectionRef.from_model(c) for c in connections]

        return await self._run_cycle(refs, start_time)

    async def sync_stale_connections(
        self, household_id: UUID, stale_threshold_hours: int | None = None
    ) -> SyncCycleResult:
        """Sync active connections never synced or not synced recently."""
        start_time = time.time()
        self.vault.ensure_configured()

        hours = stale_threshold_hours or settings.stale_sync_threshold_hours
        synced_before = datetime.now(timezone.utc) - timedelta(hours=hours)
        async with self.session_factory() as db:
            connections = await BankConnectionRepository(db).get_stale(household_id, synced_before)
            refs = [_ConnectionRef.from_model(c) for c in connections]

        return await self._run_cycle(refs, start_time)

    async def sync_all_active(self) -> SyncCycleResult:
        """Scheduled entry point: every active connection of every household."""
        start_time = time.time()
        self.vault.ensure_configured()

        async with self.session_factory() as db:
            connections = await BankConnectionRepository(db).get_active()
            refs = [_ConnectionRef.from_model(c) for c in connections]

        return await self._run_cycle(refs, start_time)

    async def _run_cycle(
        self,
        connections: list[_ConnectionRef],
        start_time: float,
        held: frozenset[UUID] = frozenset(),
    ) -> SyncCycleResult:
        """Sync ``connections`` concurrently; ``held`` are already locked by the caller."""
        semaphore = asyncio.Semaphore(self.max_concurrency)
        job_ids: dict[UUID, UUID] = {}

        tasks = [
            (
                conn,
                asyncio.create_task(
                    self._sync_guarded(conn, semaphore, job_ids, lock_held=conn.id in held)
                ),
            )
            for conn in connections
        ]

        pending: set[asyncio.Task] = set()
        if tasks:
            _, pending = await asyncio.wait(
                [task for _, task in tasks], timeout=self.timeout_seconds
            )
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        timeout_reason = f"Sync timed out after {int(self.timeout_seconds)}s"
        details: list[ConnectionSyncDetail] = []
        timed_out: list[_ConnectionRef] = []
        for conn, task in tasks:
            if task in pending or task.cancelled():
                timed_out.append(conn)
                details.append(self._failure_detail(conn, timeout_reason))
            elif task.exception() is not None:
                details.append(self._crashed_detail(conn, task.exception()))
            else:
                details.append(task.result())

        if timed_out:
            await self._record_timeouts(timed_out, job_ids, timeout_reason)

        return self._aggregate(details, start_time)

    async def _sync_guarded(
        self,
        conn: _ConnectionRef,
        semaphore: asyncio.Semaphore,
        job_ids: dict[UUID, UUID],
        lock_held: bool = False,
    ) -> ConnectionSyncDetail:
        if lock_held:
            async with semaphore:
                return await self._sync_connection(conn, job_ids)

        if not self.locks.try_acquire(conn.id):
            logger.warning(
                "Connection is already syncing",
                extra={"connection_id": conn.id, "household_id": conn.household_id},
            )
            self.metrics.increment("sync.connection.already_syncing")
            return self._failure_detail(conn, ALREADY_SYNCING)

        try:
            async with semaphore:
                return await self._sync_connection(conn, job_ids)
        finally:
            self.locks.release(conn.id)

    async def _sync_connection(
        self, conn: _ConnectionRef, job_ids: dict[UUID, UUID]
    ) -> ConnectionSyncDetail:
        start_time = time.time()
        progress = _SyncProgress(account_mappings=dict(conn.account_mappings))
        job_id: UUID | None = None

        async with self.session_factory() as db:
            jobs = SyncJobRepository(db)
            try:
                job = await jobs.start(conn.household_id, conn.id)
                job_id = job.id
                job_ids[conn.id] = job_id

                accounts = await self._scrape(conn)
                mapped = map_account_transactions(accounts, self.base_currency)
                progress.found = len(mapped)

                await self._persist(db, conn, mapped, progress)
                if progress.new_ids:
                    progress.categorized = True
                    await CategorizationService(db).categorize_transactions(
                        conn.household_id, progress.new_ids
                    )

                await jobs.finish(job_id, "succeeded", progress.found, len(progress.new_ids))
                await BankConnectionRepository(db).mark_synced(
                    conn.id,
                    "succeeded",
                    datetime.now(timezone.utc),
                    account_mappings=progress.account_mappings,
                )
            except Exception as e:
                await db.rollback()
                if progress.new_ids and not progress.categorized:
                    await self._categorize_committed(db, conn, progress)
                return await self._record_failure(db, conn, job_id, e, progress, start_time)

        new = len(progress.new_ids)
        duration_ms = (time.time() - start_time) * 1000
        self.metrics.increment("sync.connection.succeeded", provider=conn.provider)
        self.metrics.increment("sync.transactions.new", new)
        if progress.needs_review:
            self.metrics.increment("sync.transactions.needs_review", progress.needs_review)
        self.metrics.timing("sync.connection.duration", duration_ms, provider=conn.provider)
        logger.info(
            "Connection synced",
            extra={
                "connection_id": conn.id,
                "household_id": conn.household_id,
                "transactions_found": progress.found,
                "transactions_new": new,
                "duration_ms": int(duration_ms),
            },
        )

        return ConnectionSyncDetail(
            connection_id=conn.id,
            display_name=conn.display_name,
            success=True,
            transactions_found=progress.found,
            transactions_new=new,
            needs_review=progress.needs_review,
        )

    async def _scrape(self, conn: _ConnectionRef) -> list[ScrapedAccount]:
        scraper = self.scrapers.get(conn.provider)

        payload = self.vault.decrypt(conn.encrypted_creds)
        if not isinstance(payload, dict):
            raise FormatError("Stored credentials are not an object")
        try:
            credentials = parse_credentials(conn.provider, payload)
        except PydanticValidationError:
            raise FormatError("Stored credentials do not match the provider") from None

        token = (
            self.vault.decrypt_token(conn.long_term_token) if conn.long_term_token else None
        )
        start_date = date.today() - timedelta(days=self.lookback_days)

        accounts = await scraper.scrape(credentials, start_date, token)
        try:
            return [
                a if isinstance(a, ScrapedAccount) else ScrapedAccount.model_validate(a)
                for a in accounts or []
            ]
        except PydanticValidationError as e:
            raise FormatError(
                "Scraper returned malformed accounts", details={"errors": e.error_count()}
            ) from None

    async def _persist(
        self,
        db: AsyncSession,
        conn: _ConnectionRef,
        mapped: list[MappedTransaction],
        progress: _SyncProgress,
    ) -> None:
        """Store the records not seen before, one commit per account.

        ``progress`` is updated after every committed group, so it is accurate
        even when a later group raises.
        """
        transaction_repo = TransactionRepository(db)
        account_repo = AccountRepository(db)

        existing = await transaction_repo.get_existing_external_ids(
            conn.household_id, (m.external_id for m in mapped)
        )
        fresh = filter_new(mapped, existing)
        if not fresh:
            return

        hashes = {m.external_id: transaction_hash(m) for m in fresh}
        stored = await transaction_repo.get_external_ids_by_hash(
            conn.household_id, hashes.values()
        )
        flagged = {txn.external_id for txn, _ in find_near_duplicates(fresh, stored)}
        if flagged:
            logger.warning(
                "Possible duplicates under new external ids",
                extra={"connection_id": conn.id, "count": len(flagged)},
            )

        for account_number, txns in group_by_account(fresh).items():
            account_id = await self._resolve_account(
                account_repo, conn, account_number, progress.account_mappings
            )
            rows = [
                Transaction(
                    household_id=conn.household_id,
                    account_id=account_id,
                    date=m.date,
                    description=m.description,
                    merchant=m.merchant,
                    amount=m.amount,
                    direction=m.direction.value,
                    notes=m.notes,
                    external_id=m.external_id,
                    external_category=m.external_category,
                    dedup_hash=hashes[m.external_id],
                    needs_review=m.external_id in flagged,
                )
                for m in txns
            ]
            progress.new_ids.extend(await transaction_repo.insert_group(rows))
            progress.needs_review += sum(1 for m in txns if m.external_id in flagged)

    async def _resolve_account(
        self,
        account_repo: AccountRepository,
        conn: _ConnectionRef,
        account_number: str,
        mappings: dict,
    ) -> UUID:
        mapped_id = mappings.get(account_number)
        if mapped_id:
            return UUID(str(mapped_id))
        account = await account_repo.get_or_create_imported(
            conn.household_id, conn.id, account_number
        )
        mappings[account_number] = str(account.id)
        return account.id

    async def _categorize_committed(
        self, db: AsyncSession, conn: _ConnectionRef, progress: _SyncProgress
    ) -> None:
        """Categorize rows a failed sync already committed.

        The next sync skips them as known external ids, so this is their only
        pass through the rules.
        """
        try:
            await CategorizationService(db).categorize_transactions(
                conn.household_id, progress.new_ids
            )
        except (BankSyncError, SQLAlchemyError):
            await db.rollback()
            logger.exception(
                "Could not categorize partially synced transactions",
                extra={"connection_id": conn.id, "household_id": conn.household_id},
            )

    async def _record_failure(
        self,
        db: AsyncSession,
        conn: _ConnectionRef,
        job_id: UUID | None,
        error: Exception,
        progress: _SyncProgress,
        start_time: float,
    ) -> ConnectionSyncDetail:
        message = self._error_message(error)
        new = len(progress.new_ids)
        status = "failed"
        if isinstance(error, ScraperError) and error.requires_reauthentication:
            status = "auth_required"

        log_extra = {
            "connection_id": conn.id,
            "household_id": conn.household_id,
            "error_code": getattr(error, "error_code", None),
            "error_type": type(error).__name__,
            "transactions_new": new,
            "duration_ms": int((time.time() - start_time) * 1000),
        }
        if isinstance(error, BankSyncError):
            logger.warning("Connection sync failed: %s", message, extra=log_extra)
        else:
            logger.exception("Connection sync failed unexpectedly", extra=log_extra)

        self.metrics.increment(
            "sync.connection.failed", provider=conn.provider, error_type=type(error).__name__
        )
        if new:
            self.metrics.increment("sync.transactions.new", new)

        try:
            # No job id when the store failed while opening the job
            if job_id is not None:
                await SyncJobRepository(db).finish(
                    job_id, "failed", progress.found, new, message
                )
            await BankConnectionRepository(db).mark_synced(
                conn.id,
                status,
                datetime.now(timezone.utc),
                account_mappings=progress.account_mappings,
            )
        except SQLAlchemyError:
            logger.exception(
                "Could not record sync failure", extra={"connection_id": conn.id}
            )

        return self._failure_detail(conn, message, found=progress.found, new=new)

    async def _record_timeouts(
        self, timed_out: list[_ConnectionRef], job_ids: dict[UUID, UUID], reason: str
    ) -> None:
        for conn in timed_out:
            logger.warning(
                "Connection sync timed out",
                extra={"connection_id": conn.id, "household_id": conn.household_id},
            )
            self.metrics.increment("sync.connection.failed", provider=conn.provider, error_type="timeout")

        try:
            async with self.session_factory() as db:
                await SyncJobRepository(db).fail_running(
                    (job_ids[c.id] for c in timed_out if c.id in job_ids), reason
                )
                connections = BankConnectionRepository(db)
                now = datetime.now(timezone.utc)
                for conn in timed_out:
                    await connections.mark_synced(conn.id, "failed", now)
        except SQLAlchemyError:
            logger.exception("Could not record sync timeouts")

    @staticmethod
    def _error_message(error: Exception) -> str:
        if isinstance(error, BankSyncError):
            return filter_sensitive(error.message)
        return filter_sensitive(str(error)) or UNEXPECTED_ERROR

    @staticmethod
    def _failure_detail(
        conn: _ConnectionRef, error: str, found: int = 0, new: int = 0
    ) -> ConnectionSyncDetail:
        return ConnectionSyncDetail(
            connection_id=conn.id,
            display_name=conn.display_name,
            success=False,
            transactions_found=found,
            transactions_new=new,
            error=error,
        )

    def _crashed_detail(self, conn: _ConnectionRef, error: BaseException) -> ConnectionSyncDetail:
        """Failure detail for an exception that escaped the per-connection handling."""
        logger.error(
            "Connection sync crashed",
            exc_info=(type(error), error, error.__traceback__),
            extra={"connection_id": conn.id, "household_id": conn.household_id},
        )
        self.metrics.increment(
            "sync.connection.failed", provider=conn.provider, error_type=type(error).__name__
        )
        message = self._error_message(error) if isinstance(error, Exception) else UNEXPECTED_ERROR
        return self._failure_detail(conn, message)

    def _aggregate(
        self, details: Iterable[ConnectionSyncDetail], start_time: float
    ) -> SyncCycleResult:
        details = list(details)
        succeeded = [d for d in details if d.success]
        errors = [f"{d.display_name}: {d.error}" for d in details if not d.success]
        total_new = sum(d.transactions_new for d in details)
        total_found = sum(d.transactions_found for d in details)
        duration_ms = int((time.time() - start_time) * 1000)

        self.metrics.timing("sync.cycle.duration", duration_ms)

        result = SyncCycleResult(
            success=bool(succeeded) or not details,
            message=f"Synced {len(succeeded)}/{len(details)} connections",
            synced_connections=len(succeeded),
            total_connections=len(details),
            total_transactions_found=total_found,
            total_transactions_new=total_new,
            errors=errors,
            details=details,
            duration_ms=duration_ms,
        )
        logger.info(
            result.message,
            extra={"transactions_new": total_new, "duration_ms": duration_ms},
        )
        return result

"""Bank connection registration.

Credentials are validated against the provider's shape and encrypted before
they reach the database. Plaintext is never stored or logged.
"""

import logging
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from banksync.core.exceptions import NotFoundError, ValidationError
from banksync.core.vault import CredentialVault, get_vault
from banksync.models.bank_connection import BankConnection
from banksync.models.sync_job import SyncJob
from banksync.repositories.bank_connection import BankConnectionRepository
from banksync.repositories.sync_job import SyncJobRepository
from banksync.scraper.types import parse_credentials
from banksync.schemas.connection import ConnectionCreateRequest

logger = logging.getLogger(__name__)


class ConnectionService:
    def __init__(self, db: AsyncSession, vault: CredentialVault | None = None):
        self.db = db
        self.vault = vault or get_vault()
        self.connection_repo = BankConnectionRepository(db)

    async def register(self, household_id: UUID, request: ConnectionCreateRequest) -> BankConnection:
        """Store a new connection with encrypted credentials.

        Raises:
            ConfigurationError: If no master secret is configured
            ValidationError: If the credentials do not fit the provider
        """
        self.vault.ensure_configured()

        try:
            credentials = parse_credentials(request.provider, request.credentials)
        except PydanticValidationError as e:
            # Field names only; the input values are credentials.
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            raise ValidationError(
                f"Invalid credentials for provider {request.provider.value}",
                details={"fields": fields},
            ) from None

        payload = credentials.model_dump(exclude={"provider"})
        connection = BankConnection(
            household_id=household_id,
            provider=request.provider.value,
            display_name=request.display_name,
            encrypted_creds=self.vault.encrypt(payload),
            long_term_token=(
                self.vault.encrypt_token(request.long_term_token)
                if request.long_term_token
                else None
            ),
            account_mappings={},
        )
        connection = await self.connection_repo.create(connection)
        logger.info(
            "Registered bank connection",
            extra={"household_id": household_id, "connection_id": connection.id},
        )
        return connection

    async def list_connections(self, household_id: UUID) -> list[BankConnection]:
        return await self.connection_repo.get_active(household_id)

    async def get_sync_history(
        self, household_id: UUID, connection_id: UUID, limit: int = 20
    ) -> list[SyncJob]:
        """Most recent sync jobs of one connection, newest first.

        Raises:
            NotFoundError: If the connection is not in the household
        """
        connection = await self.connection_repo.get_scoped(household_id, connection_id)
        if connection is None:
            raise NotFoundError("Connection not found")
        return await SyncJobRepository(self.db).get_for_connection(connection.id, limit)

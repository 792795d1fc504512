"""Scraper collaborator contract and provider registry.

The scraper that talks to bank websites is an opaque capability: given the
decrypted credentials of one connection it returns raw scraped accounts or
raises. Retry and 2FA handling live inside the collaborator.
"""

import logging
from datetime import date
from typing import Protocol, runtime_checkable

from banksync.core.exceptions import ScraperError
from banksync.scraper.types import BankProvider, ProviderCredentials, ScrapedAccount

logger = logging.getLogger(__name__)


@runtime_checkable
class BankScraper(Protocol):
    """Capability that fetches raw transactions for one provider."""

    provider: BankProvider

    async def scrape(
        self,
        credentials: ProviderCredentials,
        start_date: date,
        long_term_token: str | None = None,
    ) -> list[ScrapedAccount]:
        """Fetch accounts with transactions since ``start_date``.

        Raises:
            ScraperError: (or any exception) when the scrape fails
        """
        ...


class ScraperRegistry:
    """Routes a connection's provider to its scraper.

    Example:
        >>> registry = ScraperRegistry()
        >>> registry.register(my_isracard_scraper)
        >>> scraper = registry.get("isracard")
    """

    def __init__(self, scrapers: list[BankScraper] | None = None):
        # Format: {BankProvider: scraper}
        self._scrapers: dict[BankProvider, BankScraper] = {}
        for scraper in scrapers or []:
            self.register(scraper)

    def register(self, scraper: BankScraper) -> None:
        provider = BankProvider(scraper.provider)
        if provider in self._scrapers:
            logger.warning("Replacing scraper registration", extra={"provider": provider.value})
        self._scrapers[provider] = scraper

    def get(self, provider: BankProvider | str) -> BankScraper:
        """Return the scraper for ``provider``.

        Raises:
            ScraperError: If the provider is unknown or has no scraper
        """
        try:
            key = BankProvider(provider)
        except ValueError as e:
            raise ScraperError(
                f"Unsupported bank provider: {provider}", error_code="SCRAPE_002"
            ) from e

        scraper = self._scrapers.get(key)
        if scraper is None:
            raise ScraperError(
                f"No scraper registered for provider: {key.value}", error_code="SCRAPE_002"
            )
        return scraper

    @property
    def providers(self) -> list[BankProvider]:
        return list(self._scrapers)

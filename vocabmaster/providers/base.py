"""Base provider class and the query object handed to every tier."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from ..config import Config
from ..exceptions import ProviderMiss
from ..models import InputType, WordRecord

logger = logging.getLogger(__name__)


@dataclass
class LookupQuery:
    """
    One lookup as seen by the tiers.

    ``text`` is what the tier should look up (the trimmed input, or the
    English lemma for bridged Chinese input); ``display_word`` is what the
    user typed. ``translation`` is filled once the translation fetch has
    been joined.
    """

    text: str
    display_word: str
    input_type: InputType
    translation: Optional[str] = None
    auth_failed: bool = False


class BaseProvider(ABC):
    """
    Abstract base class for all lookup tiers.

    Provides lifecycle management and async context manager support.
    Subclasses implement ``try_resolve`` and raise ``ProviderMiss`` (or
    return None) when they have nothing; any other exception is treated as
    a miss by the resolver as well.
    """

    #: Short tag recorded as LookupResult.source_tag when this tier wins
    tag: str = "base"

    #: Tiers that need the joined translation run after the join
    requires_translation: bool = False

    @abstractmethod
    async def try_resolve(self, query: LookupQuery) -> Optional[WordRecord]:
        """
        Resolve the query to a record.

        Args:
            query: The lookup query

        Returns:
            A non-empty record, or None on a miss
        """
        pass

    async def close(self) -> None:
        """
        Close any open resources (sessions, connections, etc.).

        Subclasses should override this to clean up their resources.
        """
        pass

    async def __aenter__(self) -> "BaseProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - ensure resources are closed."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} tag={self.tag!r}>"


class JSONClient:
    """Shared aiohttp session handling for JSON HTTP APIs."""

    tag: str = "http"

    def __init__(self, base_url: str, timeout: int = Config.TIMEOUT,
                 session: Optional[aiohttp.ClientSession] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def get_json(self, url: str, params: Optional[dict] = None) -> Any:
        """
        GET a JSON document.

        Raises:
            ProviderMiss: On 404, any non-200 status, transport errors,
                timeouts and unparsable bodies alike
        """
        session = await self._get_session()
        try:
            async with session.get(url, params=params) as response:
                if response.status == 404:
                    raise ProviderMiss(f"{self.tag}: not found")
                if response.status != 200:
                    raise ProviderMiss(f"{self.tag}: HTTP {response.status}")
                return await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise ProviderMiss(f"{self.tag}: timeout") from e
        except aiohttp.ClientError as e:
            logger.warning("%s request failed: %s", self.tag, e)
            raise ProviderMiss(f"{self.tag}: {e}") from e
        except ValueError as e:
            raise ProviderMiss(f"{self.tag}: unparsable payload") from e

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class HTTPProvider(JSONClient, BaseProvider):
    """Base for tiers backed by a JSON HTTP API."""

"""
Asset embedding for frozen snapshots.

AssetCache memoizes URL -> data URL conversions for one session; the
actual fetch is an injected coroutine so the cache does not care whether
bytes come straight from the network or are relayed through the page.
"""

import asyncio
import base64
from typing import Awaitable, Callable, Dict, Optional, Set

import aiohttp
from aiohttp import ClientTimeout, ClientError

from ..utils.log import get_logger
from ..utils.constants import DEFAULT_USER_AGENT, DEFAULT_TIMEOUT, DEFAULT_CONCURRENCY


# fetch(url) -> data URL, or None when no embedding is available
FetchFn = Callable[[str], Awaitable[Optional[str]]]


class AssetCache:
    """
    Session-scoped map from external URL to its embedded representation.

    Concurrent requests for the same URL share one fetch. Failures are
    remembered for the rest of the session and reported as None.
    """

    def __init__(self, fetch: FetchFn):
        """
        Initialize the cache.

        Args:
            fetch: Coroutine function resolving a URL to a data URL or None
        """
        self._fetch = fetch
        self.logger = get_logger("assets")

        self._embedded: Dict[str, str] = {}
        self._failed: Set[str] = set()
        self._in_flight: Dict[str, asyncio.Future] = {}

        # Number of fetches actually started
        self.fetch_count = 0

    def __len__(self) -> int:
        return len(self._embedded)

    def __contains__(self, url: str) -> bool:
        return url in self._embedded

    @property
    def failed(self) -> Set[str]:
        """URLs whose fetch failed during this session."""
        return self._failed.copy()

    def peek(self, url: str) -> Optional[str]:
        """Return the embedded form if it is already known, without fetching."""
        if url and url.startswith('data:'):
            return url
        return self._embedded.get(url)

    async def get_or_fetch(self, url: Optional[str]) -> Optional[str]:
        """
        Resolve a URL to its embedded form.

        Args:
            url: Absolute URL (data: URLs are returned unchanged)

        Returns:
            Data URL, or None when no embedding is available
        """
        if not url:
            return None
        if url.startswith('data:'):
            return url
        if url in self._embedded:
            return self._embedded[url]
        if url in self._failed:
            return None

        pending = self._in_flight.get(url)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch_and_store(url))
            self._in_flight[url] = pending
        return await asyncio.shield(pending)

    async def _fetch_and_store(self, url: str) -> Optional[str]:
        self.fetch_count += 1
        try:
            result = await self._fetch(url)
        except Exception as e:
            self.logger.debug(f"Embedding failed for {url}: {e}")
            result = None
        finally:
            self._in_flight.pop(url, None)

        if result:
            self._embedded[url] = result
        else:
            self._failed.add(url)
            self.logger.debug(f"No embedding available for {url}")
        return result

    def clear(self) -> None:
        """Forget every cached and failed URL."""
        self._embedded.clear()
        self._failed.clear()


def to_data_url(content: bytes, content_type: Optional[str]) -> str:
    """Encode raw bytes as a base64 data URL."""
    mime = (content_type or 'application/octet-stream').split(';', 1)[0].strip()
    encoded = base64.b64encode(content).decode('ascii')
    return f"data:{mime};base64,{encoded}"


class AssetFetcher:
    """
    Fetches assets over HTTP with aiohttp and encodes them as data URLs.

    ``blob:`` URLs only exist inside the page that created them, so they
    are handed to an optional resolver (normally the browser host).
    """

    def __init__(
        self,
        timeout: int = DEFAULT_TIMEOUT,
        concurrency: int = DEFAULT_CONCURRENCY,
        user_agent: str = DEFAULT_USER_AGENT,
        blob_resolver: Optional[FetchFn] = None
    ):
        """
        Initialize the fetcher.

        Args:
            timeout: Request timeout in seconds
            concurrency: Maximum concurrent requests
            user_agent: User agent string for requests
            blob_resolver: Coroutine resolving blob: URLs in the page
        """
        self.timeout = ClientTimeout(total=timeout)
        self.user_agent = user_agent
        self.blob_resolver = blob_resolver
        self.logger = get_logger("assets")

        self._session: Optional[aiohttp.ClientSession] = None
        self._semaphore = asyncio.Semaphore(concurrency)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent}
            )
        return self._session

    async def __call__(self, url: str) -> Optional[str]:
        """
        Fetch one asset.

        Args:
            url: Absolute http(s) or blob URL

        Returns:
            Data URL, or None on any failure
        """
        if url.startswith('blob:'):
            if self.blob_resolver is None:
                return None
            return await self.blob_resolver(url)

        if not url.startswith(('http://', 'https://')):
            return None

        async with self._semaphore:
            try:
                session = await self._get_session()
                async with session.get(url, allow_redirects=True) as response:
                    if response.status != 200:
                        self.logger.debug(f"HTTP {response.status} for asset: {url}")
                        return None
                    content = await response.read()
                    return to_data_url(content, response.headers.get('Content-Type'))

            except ClientError as e:
                self.logger.debug(f"Client error fetching {url}: {e}")
                return None
            except asyncio.TimeoutError:
                self.logger.debug(f"Timeout fetching {url}")
                return None
            except Exception as e:
                self.logger.debug(f"Error fetching {url}: {e}")
                return None

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

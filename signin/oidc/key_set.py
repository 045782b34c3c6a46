"""IdP key set fetching with bounded retry and an optional short-TTL cache."""

import asyncio
import logging
import time

import backoff
import httpx

from signin.core.errors import TransientError, VerificationError
from signin.crypto.types import KeySet

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_DEFAULT = 10.0
MAX_TRIES_DEFAULT = 3
MIN_REFRESH_INTERVAL_DEFAULT = 10.0


class KeySetFetcher:
    """Fetches the IdP JWKS.

    With ``cache_ttl > 0`` a successful fetch is reused until it expires.
    Failures are never cached and an expired entry is never served. One
    refresh runs at a time; concurrent callers wait for it. A forced refresh
    is answered from the cache when the cached set is younger than
    ``min_refresh_interval`` seconds.
    """

    def __init__(
        self,
        keys_url: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = HTTP_TIMEOUT_DEFAULT,
        cache_ttl: float = 0,
        max_tries: int = MAX_TRIES_DEFAULT,
        min_refresh_interval: float = MIN_REFRESH_INTERVAL_DEFAULT,
    ) -> None:
        self._keys_url = keys_url
        self._http_client = http_client
        self._timeout = timeout
        self._cache_ttl = cache_ttl
        self._max_tries = max(1, max_tries)
        self._min_refresh_interval = min_refresh_interval
        self._cached: KeySet | None = None
        self._fetched_at = 0.0
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    def _cache_hit(self, force: bool) -> KeySet | None:
        now = time.monotonic()
        if self._cached is None or now >= self._expires_at:
            return None
        if force and now - self._fetched_at >= self._min_refresh_interval:
            return None
        return self._cached

    async def fetch(self, *, force: bool = False) -> KeySet:
        """Return the current key set, fetching it if not cached.

        ``force`` skips a cached set older than the minimum refresh interval.
        Raises VerificationError once every attempt has failed.
        """
        cached = self._cache_hit(force)
        if cached is not None:
            logger.debug("JWKS cache hit", extra={"forced": force})
            return cached

        async with self._lock:
            cached = self._cache_hit(force)
            if cached is not None:
                return cached

            try:
                key_set = await self._fetch_with_retry()
            except TransientError as exc:
                raise VerificationError(
                    "Unable to fetch the IdP key set; token cannot be verified"
                ) from exc

            if self._cache_ttl > 0:
                self._cached = key_set
                self._fetched_at = time.monotonic()
                self._expires_at = self._fetched_at + self._cache_ttl
            return key_set

    def clear(self) -> None:
        self._cached = None
        self._fetched_at = 0.0
        self._expires_at = 0.0

    async def _fetch_with_retry(self) -> KeySet:
        @backoff.on_exception(
            backoff.expo,
            TransientError,
            max_tries=self._max_tries,
            max_time=self._timeout * self._max_tries,
            factor=0.5,
        )
        async def _attempt() -> KeySet:
            return await self._fetch_once()

        return await _attempt()

    async def _fetch_once(self) -> KeySet:
        client = self._http_client or httpx.AsyncClient()
        try:
            response = await client.get(self._keys_url, timeout=self._timeout)
            response.raise_for_status()
            key_set = KeySet.model_validate(response.json())
        except httpx.HTTPError as exc:
            logger.warning(
                "JWKS fetch failed", extra={"url": self._keys_url, "error": str(exc)}
            )
            raise TransientError(f"JWKS fetch from {self._keys_url} failed") from exc
        except ValueError as exc:  # undecodable JSON or a ValidationError
            logger.warning("JWKS response malformed", extra={"url": self._keys_url})
            raise TransientError(f"JWKS from {self._keys_url} is malformed") from exc
        finally:
            if self._http_client is None:
                await client.aclose()

        if not key_set.keys:
            raise TransientError(f"JWKS from {self._keys_url} has no keys")
        logger.info("JWKS fetched", extra={"key_count": len(key_set.keys)})
        return key_set

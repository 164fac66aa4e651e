"""
HTTP transport adapter.

Maps HTTP status codes and aiohttp / standard-library transport exceptions
into the ErrorKind taxonomy so the retry classifier only ever sees tagged
errors.
"""

import asyncio
from contextlib import contextmanager
from typing import Iterator, Mapping, Optional

import aiohttp

from numerai_resilience.core import get_logger
from numerai_resilience.core.exceptions import (
    ClientError,
    ConnectionFailureError,
    ErrorKind,
    RateLimitedError,
    ResilienceError,
    ServerError,
    TransportTimeoutError,
)

logger = get_logger(__name__)


def parse_retry_after(headers: Optional[Mapping[str, str]]) -> Optional[float]:
    """Read a numeric Retry-After header, ignoring HTTP-date values."""
    if not headers:
        return None
    value = headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def error_for_status(
    status: int,
    message: str = "",
    retry_after: Optional[float] = None,
) -> Optional[ResilienceError]:
    """
    Build the taxonomy exception for an HTTP status.

    Args:
        status: HTTP status code
        message: Response text or reason
        retry_after: Seconds from a Retry-After header

    Returns:
        RateLimitedError for 429, ClientError for other 4xx, ServerError for
        5xx, None for anything below 400
    """
    if status < 400:
        return None

    text = message or f"HTTP {status}"
    if status == 429:
        return RateLimitedError(text, retry_after=retry_after, code=str(status))
    if status < 500:
        return ClientError(text, status=status, code=str(status))
    return ServerError(text, status=status, code=str(status))


def raise_for_status(
    status: int,
    message: str = "",
    retry_after: Optional[float] = None,
) -> None:
    """Raise the taxonomy exception for a failing HTTP status."""
    error = error_for_status(status, message, retry_after)
    if error is not None:
        raise error


async def check_response(response: aiohttp.ClientResponse) -> aiohttp.ClientResponse:
    """
    Raise the taxonomy exception for a failing aiohttp response.

    Example:
        >>> async with session.post(url, json=payload) as resp:
        ...     await check_response(resp)
        ...     data = await resp.json()
    """
    status = response.status
    if status < 400:
        return response

    text = await response.text()
    logger.debug(f"HTTP {status} from {response.url}: {text[:200]}")
    raise_for_status(
        status,
        f"HTTP {status}: {text}" if text else "",
        parse_retry_after(response.headers),
    )
    return response


def translate_exception(exc: BaseException) -> BaseException:
    """
    Map a transport exception to its taxonomy equivalent.

    Already-tagged exceptions and exceptions that are not transport related
    are returned unchanged. Translated exceptions chain the original as
    ``__cause__``.
    """
    if isinstance(getattr(exc, "kind", None), ErrorKind):
        return exc

    translated: Optional[ResilienceError] = None

    if isinstance(exc, aiohttp.ClientResponseError):
        translated = error_for_status(
            exc.status,
            f"HTTP {exc.status}: {exc.message}",
            parse_retry_after(exc.headers),
        )
    elif isinstance(exc, (aiohttp.ServerTimeoutError, asyncio.TimeoutError, TimeoutError)):
        translated = TransportTimeoutError(str(exc) or None)
    elif isinstance(exc, (aiohttp.ClientConnectionError, ConnectionError)):
        translated = ConnectionFailureError(str(exc) or None)

    if translated is None:
        return exc

    translated.__cause__ = exc
    return translated


@contextmanager
def transport_errors() -> Iterator[None]:
    """
    Re-raise transport exceptions as taxonomy exceptions.

    Example:
        >>> async def fetch():
        ...     with transport_errors():
        ...         async with session.get(url) as resp:
        ...             await check_response(resp)
        ...             return await resp.read()
    """
    try:
        yield
    except Exception as e:
        translated = translate_exception(e)
        if translated is e:
            raise
        raise translated from e

"""
HTTP client factories shared by the show source and the chat transport
"""
import aiohttp
import httpx
import logging

from tvreminder import __version__

logger = logging.getLogger(__name__)

USER_AGENT = f"tvreminder/{__version__}"


def create_aiohttp_session(timeout: float = 10.0, **kwargs) -> aiohttp.ClientSession:
    """
    Create an aiohttp ClientSession with a total request timeout.

    Args:
        timeout: Total timeout in seconds for each request
        **kwargs: Additional arguments for ClientSession
    """
    headers = kwargs.pop("headers", {})
    headers.setdefault("User-Agent", USER_AGENT)
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
        headers=headers,
        **kwargs,
    )


def create_httpx_client(timeout: float = 10.0, **kwargs) -> httpx.AsyncClient:
    """
    Create an httpx AsyncClient.

    Args:
        timeout: Timeout in seconds
        **kwargs: Additional arguments for AsyncClient
    """
    headers = kwargs.pop("headers", {})
    headers.setdefault("User-Agent", USER_AGENT)
    return httpx.AsyncClient(timeout=timeout, headers=headers, **kwargs)

"""
HTTP side of a server-loader cycle: send the GET, check the response
headers, and collect the body as UTF-8 text.

Keeps network code separate from the cycle orchestration in service.py.
"""

import logging
from typing import Dict, Optional, Tuple

import httpx

from . import USER_AGENT
from .errors import BodyReadError, EncodingError, RequestConstructionError, TransportError

logger = logging.getLogger(__name__)

# Never trust Content-Length for more than this when pre-sizing the buffer
MAX_PREALLOCATE = 1024 * 1024


def parse_content_type(value: str) -> Tuple[str, Dict[str, str]]:
    """Split a Content-Type header into its lowercased media type and params.

    Raises:
        ValueError: the value is not of the form "type/subtype[; k=v]*".
    """
    parts = value.split(';')
    media_type = parts[0].strip().lower()
    main, slash, sub = media_type.partition('/')
    if not slash or not main or not sub or ' ' in media_type:
        raise ValueError(f"not a media type: {value!r}")

    params = {}
    for part in parts[1:]:
        part = part.strip()
        if not part:
            continue
        key, eq, val = part.partition('=')
        if not eq or not key.strip():
            raise ValueError(f"malformed parameter {part!r}")
        params[key.strip().lower()] = val.strip().strip('"')
    return media_type, params


def check_content_type(response: httpx.Response, url: str) -> bool:
    """Advisory SIP008 check for "application/json; charset=utf-8".

    Any deviation is logged as a warning and reported as False; the caller
    carries on either way because plenty of publishers get this header wrong.
    """
    header = response.headers.get('content-type')
    if header is None:
        logger.warning(f"Missing Content-Type in SIP008 response from {url}")
        return False

    try:
        media_type, params = parse_content_type(header)
    except ValueError as e:
        logger.warning(f"Content-Type parse failed, value: {header!r}, error: {e}")
        return False

    charset = params.get('charset', '').lower()
    if media_type == 'application/json' and charset == 'utf-8':
        logger.debug(f"Checked Content-Type: {header!r}")
        return True

    logger.warning(
        f"Content-Type is not \"application/json; charset=utf-8\", "
        f"which is mandatory in standard SIP008. found {header!r}"
    )
    return False


def content_length_hint(headers: httpx.Headers) -> Optional[int]:
    """Declared Content-Length if it is a non-negative integer, else None."""
    value = headers.get('content-length')
    if value is None:
        return None
    try:
        length = int(value.strip())
    except ValueError:
        return None
    return length if length >= 0 else None


class ConfigFetcher:
    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0):
        """Wrap a shared client, or create one owned by this fetcher.

        Args:
            client: Client shared with other loaders. Its lifetime is the
                caller's business.
            timeout: Per-operation timeout of the client created when
                `client` is None.
        """
        self._owns_client = client is None
        if client is None:
            client = httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                follow_redirects=True,
                max_redirects=5,
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            )
        self._client = client

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    def build_request(self, url: str) -> httpx.Request:
        try:
            request = self._client.build_request('GET', url, headers={'User-Agent': USER_AGENT})
        except (httpx.InvalidURL, ValueError, TypeError) as e:
            raise RequestConstructionError(f"cannot build request for {url!r}: {e}") from e

        if request.url.scheme not in ('http', 'https') or not request.url.host:
            raise RequestConstructionError(f"not an http(s) URL: {url!r}")
        return request

    async def send(self, url: str) -> httpx.Response:
        """Issue one GET and return the streaming response.

        Any status code is returned as-is; the body is left unread.
        """
        request = self.build_request(url)
        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as e:
            raise TransportError(f"failed to get {url}: {e!r}") from e

        if not response.is_success:
            logger.warning(f"Got HTTP {response.status_code} from {url}, reading body anyway")
        return response

    async def collect_body(self, response: httpx.Response, url: str) -> str:
        """Read the whole body and decode it as strict UTF-8.

        The response is closed whatever happens. Partial data is dropped on
        any read error.
        """
        hint = content_length_hint(response.headers)
        buffer = bytearray(min(hint, MAX_PREALLOCATE)) if hint else bytearray()
        size = 0

        try:
            async for chunk in response.aiter_bytes():
                # Slice assignment overwrites the pre-sized area and grows past it
                buffer[size:size + len(chunk)] = chunk
                size += len(chunk)
        except (httpx.RequestError, httpx.StreamError) as e:
            raise BodyReadError(f"failed to read body from {url}: {e!r}") from e
        finally:
            await response.aclose()

        del buffer[size:]
        if hint is not None and hint != size:
            logger.debug(f"Content-Length {hint} from {url} did not match {size} bytes read")

        try:
            return buffer.decode('utf-8')
        except UnicodeDecodeError as e:
            raise EncodingError(f"body from {url} contains non-utf8 bytes: {e}") from e

"""
Transport boundary of the pagination engine.

The engine only needs ``execute(url) -> HttpResponse`` and ``close()``.
``HttpxTransport`` is the default implementation on top of ``httpx.Client``;
authentication, proxies and client certificates are configured by whoever
builds the client and are never inspected here.
"""

from typing import Dict, Iterator, Optional

import httpx

from core.config import settings
from core.exceptions import TransportError
import logging

logger = logging.getLogger(__name__)


class HttpResponse:
    """
    A single fetch attempt's response.

    The body is read lazily and cached, so a page can be built from it and
    pagination strategies can still look at it afterwards. ``close()``
    releases the underlying stream.
    """

    def __init__(
        self,
        status_code: int,
        headers=None,
        content: Optional[bytes] = None,
        raw: Optional[httpx.Response] = None
    ):
        self.status_code = status_code
        self.headers = httpx.Headers(headers or {})
        self._content = content
        self._raw = raw
        self.closed = False

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> "HttpResponse":
        return cls(response.status_code, response.headers.multi_items(), raw=response)

    @property
    def content(self) -> bytes:
        if self._content is None:
            if self._raw is None:
                self._content = b""
            else:
                self._content = self._raw.read()
        return self._content

    def read(self) -> bytes:
        """Read the whole body now. Raises httpx errors if the stream breaks."""
        return self.content

    @property
    def body(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    def get_header(self, name: str) -> Optional[str]:
        """First value of a header, case-insensitive"""
        values = self.headers.get_list(name)
        return values[0] if values else None

    def header_dict(self) -> Dict[str, str]:
        return {key: value for key, value in self.headers.items()}

    def iter_lines(self) -> Iterator[str]:
        for line in self.body.splitlines():
            yield line

    def close(self):
        if self.closed:
            return
        self.closed = True
        if self._raw is not None:
            self._raw.close()

    def __repr__(self):
        return f"HttpResponse(status_code={self.status_code})"


class ErrorHttpResponse(HttpResponse):
    """Stands in for a response when the transport raised"""

    def __init__(self, status_code: int, error: Optional[Exception] = None):
        super().__init__(status_code, content=str(error or "").encode("utf-8"))
        self.error = error


class HttpxTransport:
    """
    Execute page requests with an ``httpx.Client``.

    Features:
    - Configured HTTP method, headers and request body
    - Connect/read timeouts
    - HTTPS verification toggle
    - Any httpx transport error is raised as TransportError
    """

    def __init__(
        self,
        http_method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        request_body: Optional[str] = None,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        verify_https: bool = True,
        client: Optional[httpx.Client] = None
    ):
        self.http_method = http_method.upper()
        self.headers = headers or {}
        self.request_body = request_body

        if client is None:
            timeout = httpx.Timeout(
                read_timeout if read_timeout is not None else settings.HTTP_READ_TIMEOUT,
                connect=connect_timeout if connect_timeout is not None else settings.HTTP_CONNECT_TIMEOUT,
            )
            client = httpx.Client(timeout=timeout, verify=verify_https, follow_redirects=True)
        self.client = client

    @classmethod
    def from_config(cls, config, client: Optional[httpx.Client] = None) -> "HttpxTransport":
        """Build a transport from an HttpSourceConfig"""
        return cls(
            http_method=config.http_method,
            headers=config.headers,
            request_body=config.request_body,
            connect_timeout=config.connect_timeout,
            read_timeout=config.read_timeout,
            verify_https=config.verify_https,
            client=client,
        )

    def execute(self, url: str) -> HttpResponse:
        """
        Send one request.

        Raises:
            TransportError: If no HTTP response was received
        """
        logger.debug(f"{self.http_method} {url}")
        request = self.client.build_request(
            self.http_method,
            url,
            headers=self.headers,
            content=self.request_body.encode("utf-8") if self.request_body else None,
        )
        try:
            response = self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise TransportError(
                f"Request to '{url}' failed",
                context={"url": url, "http_method": self.http_method},
                original_exception=e
            )
        return HttpResponse.from_httpx(response)

    def close(self):
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

"""External call adapter: one outbound HTTP request per interaction.

No retries. A timeout is the only abort mechanism; every failure surfaces
as an UpstreamError with a ``kind`` the handler can describe to the user.
"""

from __future__ import annotations

import logging

import httpx

from src.models import HttpMethod, RawResponse, RelayRequest
from src.relay.errors import UpstreamError

logger = logging.getLogger(__name__)

_MAX_BODY_BYTES = 5 * 1024 * 1024
_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class UpstreamClient:
    """Issues a single request to the configured upstream endpoint."""

    def __init__(
        self,
        transport: httpx.AsyncBaseTransport | None = None,
        max_body_bytes: int = _MAX_BODY_BYTES,
    ) -> None:
        self._transport = transport
        self._max_body_bytes = max_body_bytes

    async def call(self, request: RelayRequest) -> RawResponse:
        """Perform the request and return the decoded body.

        GET sends params as a query string, POST sends them as a JSON body.
        The body is streamed so an oversized response is abandoned early.
        """
        kwargs: dict[str, object] = {}
        if request.method == HttpMethod.POST:
            kwargs["json"] = request.params
        else:
            kwargs["params"] = request.params

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=request.timeout_seconds,
                follow_redirects=True,
                headers={"User-Agent": _USER_AGENT},
            ) as client:
                async with client.stream(
                    request.method.value, request.endpoint, **kwargs,
                ) as resp:
                    if resp.status_code >= 400:
                        raise UpstreamError(
                            "status",
                            f"upstream returned HTTP {resp.status_code}",
                            status_code=resp.status_code,
                        )
                    body = await self._read_capped(resp)
                    return RawResponse(
                        status_code=resp.status_code,
                        content_type=resp.headers.get("content-type", ""),
                        url=str(resp.url),
                        text=body.decode(resp.encoding or "utf-8", errors="replace"),
                    )
        except httpx.TimeoutException as exc:
            logger.warning("Upstream timeout for %s: %s", request.endpoint, exc)
            raise UpstreamError("timeout", "upstream timed out", str(exc)) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Upstream transport error for %s: %s", request.endpoint, exc)
            raise UpstreamError("network", "upstream unreachable", str(exc)) from exc

    async def _read_capped(self, resp: httpx.Response) -> bytes:
        chunks: list[bytes] = []
        total = 0
        async for chunk in resp.aiter_bytes():
            total += len(chunk)
            if total > self._max_body_bytes:
                raise UpstreamError(
                    "too_large",
                    "upstream response too large",
                    f"more than {self._max_body_bytes} bytes",
                )
            chunks.append(chunk)
        return b"".join(chunks)

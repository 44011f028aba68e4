"""
带重试的 HTTP 客户端
对限流 / 服务端临时错误做指数退避重试，重试耗尽后原样返回最后一次响应。
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from alpha_service.exceptions import FailureKind, ProviderError

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


class ResilientHttpClient:
    """在 httpx.AsyncClient 之上封装重试与失败分类"""

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_retries: int = 2,
        backoff_base: float = 0.25,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._client = client
        self._max_retries = max_retries
        self._backoff_base = backoff_base
        self._sleep = sleep

    async def request(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        source: str = "http",
    ) -> httpx.Response:
        """
        发起 GET 请求，状态码属于 RETRYABLE_STATUS 时按 base * 2^attempt 退避重试

        连接失败 / 超时不重试，直接抛出 FailureKind.NETWORK。
        """
        attempt = 0
        while True:
            try:
                response = await self._client.get(url, params=params, headers=headers)
            except httpx.HTTPError as exc:
                raise ProviderError(
                    FailureKind.NETWORK, source, f"{source} request failed: {exc}"
                ) from exc

            if response.status_code not in RETRYABLE_STATUS or attempt >= self._max_retries:
                return response

            delay = self._backoff_base * 2 ** attempt
            logger.warning(
                f"{source} 返回 {response.status_code}，{delay:.2f}s 后第 {attempt + 1} 次重试"
            )
            await self._sleep(delay)
            attempt += 1

    async def get_json(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        source: str = "http",
    ) -> Any:
        response = await self.request(url, params=params, headers=headers, source=source)
        raise_for_status(response, source)
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                FailureKind.MALFORMED, source, f"{source} returned invalid JSON"
            ) from exc

    async def get_text(
        self,
        url: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        source: str = "http",
    ) -> str:
        response = await self.request(url, params=params, headers=headers, source=source)
        raise_for_status(response, source)
        return response.text

    async def aclose(self) -> None:
        await self._client.aclose()


def raise_for_status(response: httpx.Response, source: str) -> None:
    """非 2xx 转换为 ProviderError，403 单独标记为 ACCESS_DENIED"""
    if response.is_success:
        return
    kind = FailureKind.ACCESS_DENIED if response.status_code == 403 else FailureKind.HTTP
    raise ProviderError(
        kind,
        source,
        f"{source} request failed ({response.status_code}): {response.text}",
        status=response.status_code,
    )

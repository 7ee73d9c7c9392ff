"""流式补全 API 客户端。

本模块负责：

1. 接收统一的 CompletionRequest 与频道配置 ChannelProfile。
2. 以 POST 方式向频道配置的端点发起流式请求（仅在配置了令牌时附带 Bearer 认证）。
3. 把连接失败、上游错误状态统一包装为 RequestDispatchError。
4. 把响应体按行交给调用方，读取或解码响应体时的任何 httpx 错误都包装为 StreamReadError。

逐行解码与刷新节奏由 agents.reply_engine 负责，这里只处理 HTTP 层。
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx

from relay_core.config.settings import ChannelProfile
from relay_core.domain.exceptions import RequestDispatchError, StreamReadError
from relay_core.domain.models import CompletionRequest


class ChatStreamClient:
    """Ollama 风格 /api/chat 端点的流式客户端。"""

    name = "chat-stream"

    def __init__(self, settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        # Settings 里只用到 http_timeout；transport 供测试注入 httpx.MockTransport
        self._settings = settings
        self._transport = transport

    @asynccontextmanager
    async def open_stream(
        self, profile: ChannelProfile, req: CompletionRequest
    ) -> AsyncIterator[AsyncIterator[str]]:
        """建立连接并返回逐行迭代器；离开上下文时关闭响应。"""

        headers = self._build_headers(profile)
        async with httpx.AsyncClient(
            timeout=self._settings.http_timeout,
            trust_env=False,
            transport=self._transport,
        ) as client:
            request = client.build_request("POST", profile.endpoint, json=req.to_payload(), headers=headers)
            try:
                resp = await client.send(request, stream=True)
            except httpx.RequestError as e:
                # 网络错误：DNS 失败、连接被拒绝、连接超时等
                raise RequestDispatchError(code="NETWORK_ERROR", message=str(e), endpoint=profile.endpoint)
            try:
                if resp.status_code >= 400:
                    try:
                        await resp.aread()
                        detail = resp.text
                    except (httpx.HTTPError, httpx.StreamError) as e:
                        detail = f"HTTP {resp.status_code} (body unreadable: {e})"
                    raise RequestDispatchError(
                        code="API_ERROR",
                        message=detail,
                        http_status=resp.status_code,
                        endpoint=profile.endpoint,
                    )
                yield self._iter_lines(resp)
            finally:
                await resp.aclose()

    @staticmethod
    def _build_headers(profile: ChannelProfile) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if profile.auth_token:
            headers["Authorization"] = f"Bearer {profile.auth_token}"
        return headers

    @staticmethod
    async def _iter_lines(resp: httpx.Response) -> AsyncIterator[str]:
        try:
            async for line in resp.aiter_lines():
                if not line.strip():
                    continue
                yield line
        except (httpx.HTTPError, httpx.StreamError) as e:
            # 传输中断、内容编码损坏（DecodingError）等都视为读取失败
            raise StreamReadError(code="STREAM_READ_ERROR", message=str(e))

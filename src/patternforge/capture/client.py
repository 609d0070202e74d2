"""IngestClient -- 事件上报 HTTP 客户端

POST {ingest_url}/api/events，请求体 {"events": [...]}。
连接类错误统一转换为 IngestUnreachableError，非 2xx 响应转换为 IngestRejectedError，
由 EventBuffer 根据 recoverable 决定重新入队还是丢弃。
"""

import time

import httpx
import structlog
from pydantic import BaseModel, Field

from .exceptions import CaptureError, IngestRejectedError, IngestUnreachableError

log = structlog.get_logger()

# 健康检查超时（应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5


class IngestResult(BaseModel):
    """上报结果"""

    accepted: int = Field(default=0, description="接受的事件数（含重复）")
    rejected: int = Field(default=0, description="被拒绝的事件数")
    duplicates: int = Field(default=0, description="已存在而被忽略的事件数")
    errors: list[dict] = Field(default_factory=list, description="逐条拒绝原因")


class IngestClient:
    """事件上报客户端"""

    def __init__(
        self,
        ingest_url: str = "http://localhost:8000",
        timeout_s: float = 10.0,
        client_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化上报客户端

        Args:
            ingest_url: 上报服务基础 URL
            timeout_s: 请求超时（秒）
            client_id: 调用方标识，写入 X-Client-Id 供服务端限流
            transport: 自定义传输层（测试注入 httpx.MockTransport）
        """
        self._ingest_url = ingest_url.rstrip("/")
        self._timeout_s = timeout_s
        self._headers = {"X-Client-Id": client_id} if client_id else {}
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._ingest_url,
            timeout=timeout,
            headers=self._headers,
            transport=self._transport,
        )

    async def submit_batch(self, events: list[dict]) -> IngestResult:
        """上报一批事件

        Raises:
            IngestUnreachableError: 连接失败或超时
            IngestRejectedError: 服务端返回非 2xx
        """
        start_time = time.monotonic()
        try:
            async with self._client(self._timeout_s) as http_client:
                resp = await http_client.post("/api/events", json={"events": events})
        except httpx.TransportError as e:
            log.warning(
                "ingest_submit_failed",
                url=self._ingest_url,
                error=str(e),
                error_type=type(e).__name__,
                event_count=len(events),
            )
            raise IngestUnreachableError(self._ingest_url, e) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if resp.status_code >= 400:
            log.warning(
                "ingest_submit_rejected",
                status_code=resp.status_code,
                event_count=len(events),
                duration_ms=duration_ms,
            )
            raise IngestRejectedError(resp.status_code, resp.text)

        try:
            result = IngestResult.model_validate(resp.json())
        except ValueError as e:
            raise CaptureError(f"上报响应无法解析: {e}", recoverable=False) from e

        log.debug(
            "ingest_submit_completed",
            accepted=result.accepted,
            rejected=result.rejected,
            duplicates=result.duplicates,
            duration_ms=duration_ms,
        )
        return result

    async def health_check(self) -> bool:
        """检查上报服务可达性

        Returns:
            True 如果 GET /health 返回 200，其余情况 False

        注意: 此方法不抛出异常。
        """
        try:
            async with self._client(HEALTH_CHECK_TIMEOUT_S) as http_client:
                resp = await http_client.get("/health")
                return resp.status_code == 200
        except Exception as e:
            log.debug("ingest_health_check_failed", url=self._ingest_url, error=str(e))
            return False

"""Capture 异常体系"""


class CaptureError(Exception):
    """Capture 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 批次能否放回队列稍后重发
        """
        super().__init__(message)
        self.recoverable = recoverable


class IngestUnreachableError(CaptureError):
    """上报服务不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, ingest_url: str, original_error: Exception) -> None:
        """
        Args:
            ingest_url: 尝试连接的上报地址
            original_error: 原始异常
        """
        super().__init__(
            f"上报服务不可达: {ingest_url} -- {original_error}",
            recoverable=True,
        )
        self.ingest_url = ingest_url
        self.original_error = original_error


class IngestRejectedError(CaptureError):
    """上报服务拒绝批次

    5xx 与 429 可重试；其余 4xx 说明批次本身不合法，重发无意义。
    """

    def __init__(self, status_code: int, body: str = "") -> None:
        recoverable = status_code >= 500 or status_code == 429
        super().__init__(f"上报被拒绝: HTTP {status_code} {body[:200]}", recoverable=recoverable)
        self.status_code = status_code
        self.body = body

"""流水线异常体系

所有阶段共享同一基类，recoverable 标记调用方是否可以原样重试。
code 与 HTTP 状态码供 gateway 统一渲染错误响应。
"""


class PipelineError(Exception):
    """流水线基础异常"""

    code = "PIPELINE_ERROR"
    status_code = 500

    def __init__(self, message: str, recoverable: bool = False) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class ValidationFailedError(PipelineError):
    """输入校验失败"""

    code = "VALIDATION_FAILED"
    status_code = 422


class NotFoundError(PipelineError):
    """资源不存在"""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, resource_id: str) -> None:
        super().__init__(f"{resource} with id {resource_id} does not exist")
        self.code = f"{resource.upper()}_NOT_FOUND"
        self.resource = resource
        self.resource_id = resource_id


class NoPatternsError(PipelineError):
    """合成输入为空"""

    code = "NO_PATTERNS"
    status_code = 400

    def __init__(self, message: str = "No patterns available for synthesis") -> None:
        super().__init__(message)


class UnsupportedTargetError(PipelineError):
    """未知的代码生成目标"""

    code = "UNSUPPORTED_TARGET"
    status_code = 400

    def __init__(self, target: str, supported: list[str]) -> None:
        super().__init__(
            f"Unsupported target profile {target!r}; supported: {', '.join(supported)}"
        )
        self.target = target
        self.supported = supported


class StorageUnavailableError(PipelineError):
    """存储不可用，整批失败，调用方应重试"""

    code = "STORAGE_UNAVAILABLE"
    status_code = 503

    def __init__(self, original_error: Exception) -> None:
        """
        Args:
            original_error: 原始数据库异常
        """
        super().__init__(f"Storage unavailable: {original_error}", recoverable=True)
        self.original_error = original_error


class DefinitionExistsError(PipelineError):
    """同 ID 的模式定义已存在"""

    code = "DEFINITION_EXISTS"
    status_code = 409

    def __init__(self, definition_id: str) -> None:
        super().__init__(f"pattern definition {definition_id} already exists")
        self.definition_id = definition_id

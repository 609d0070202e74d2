"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 与服务实例

实例通过 app.state 管理，在 lifespan（或测试中的 init_app_state）中初始化。
"""

from fastapi import Request
from patternforge.core.store import StoreGroup

from .services.definition_service import DefinitionService
from .services.generation_service import GenerationService
from .services.ingest_service import IngestService
from .services.model_service import ModelService
from .services.recognition_service import RecognitionService
from .services.session_service import SessionService
from .services.sse_hub import SSEHub


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_sse_hub(request: Request) -> SSEHub:
    """从 app.state 获取 SSEHub 实例"""
    return request.app.state.sse_hub


def get_ingest_service(request: Request) -> IngestService:
    state = request.app.state
    return IngestService(state.store_group, state.session_locks, state.sse_hub)


def get_recognition_service(request: Request) -> RecognitionService:
    return request.app.state.recognition_service


def get_definition_service(request: Request) -> DefinitionService:
    return DefinitionService(request.app.state.store_group)


def get_model_service(request: Request) -> ModelService:
    return ModelService(request.app.state.store_group)


def get_generation_service(request: Request) -> GenerationService:
    return request.app.state.generation_service


def get_session_service(request: Request) -> SessionService:
    state = request.app.state
    return SessionService(state.store_group, state.session_locks, state.sse_hub)

"""代码生成路由

GET /api/generate/targets: 已注册的目标配置。
POST /api/generate: 生成产物，只返回 path / type / size_bytes。
POST /api/generate/preview: 同一计算，返回完整 content。
POST /api/generate/export: 打包为 zip 下载。
"""

from fastapi import APIRouter, Depends
from patternforge.engine import export_zip
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import Response

from ..deps import get_generation_service
from ..services.generation_service import GenerationService

router = APIRouter()


class GenerateRequest(BaseModel):
    """生成请求体"""

    model_config = ConfigDict(protected_namespaces=())

    model_id: str = Field(description="应用模型 ID")
    target: str | None = Field(default=None, description="目标配置，缺省使用默认目标")
    file_types: list[str] | None = Field(default=None, description="只返回这些产物类型")


@router.get("/api/generate/targets")
async def list_targets(service: GenerationService = Depends(get_generation_service)):
    return {"targets": service.list_targets()}


@router.post("/api/generate")
async def generate(
    body: GenerateRequest,
    service: GenerationService = Depends(get_generation_service),
):
    model, target, artifacts = await service.generate(body.model_id, body.target, body.file_types)
    return {
        "model_id": model.model_id,
        "version": model.version,
        "target": target,
        "files": [
            {"path": a.path, "type": a.type.value, "size_bytes": a.size_bytes}
            for a in artifacts
        ],
    }


@router.post("/api/generate/preview")
async def preview(
    body: GenerateRequest,
    service: GenerationService = Depends(get_generation_service),
):
    model, target, artifacts = await service.generate(body.model_id, body.target, body.file_types)
    return {
        "model_id": model.model_id,
        "version": model.version,
        "target": target,
        "files": [a.model_dump(mode="json") for a in artifacts],
    }


@router.post("/api/generate/export")
async def export(
    body: GenerateRequest,
    service: GenerationService = Depends(get_generation_service),
):
    model, target, artifacts = await service.generate(body.model_id, body.target, body.file_types)
    filename = f"{model.model_id}-{model.version}-{target}.zip"
    return Response(
        content=export_zip(artifacts),
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

"""代码生成 API 测试

测试内容：
1. 目标配置列表
2. 生成只返回元数据，预览返回完整内容
3. file_types 过滤
4. 未知目标 400、未知模型 404
5. zip 导出
"""

import io
import zipfile

import pytest_asyncio
from httpx import AsyncClient


@pytest_asyncio.fixture
async def model_id(client: AsyncClient, s1_raw_events) -> str:
    await client.post("/api/events", json={"events": s1_raw_events})
    await client.post("/api/sessions/S1/recognize")
    resp = await client.post("/api/models/synthesize", json={"session_id": "S1"})
    return resp.json()["model_id"]


class TestGenerateApi:
    async def test_targets(self, client: AsyncClient):
        data = (await client.get("/api/generate/targets")).json()
        names = [t["name"] for t in data["targets"]]
        assert names == ["api-only", "nextjs-app", "react-spa"]
        surfaces = {t["name"]: t["surface"] for t in data["targets"]}
        assert surfaces == {"api-only": "api", "nextjs-app": "api", "react-spa": "store"}

    async def test_generate_metadata_only(self, client: AsyncClient, model_id: str):
        resp = await client.post("/api/generate", json={"model_id": model_id})
        assert resp.status_code == 200
        data = resp.json()

        assert data["model_id"] == model_id
        assert data["version"] == "1.0.0"
        assert data["target"] == "nextjs-app"
        paths = [f["path"] for f in data["files"]]
        assert "types/order.ts" in paths
        assert "lib/api/orderApi.ts" in paths
        assert "components/Navigation.tsx" in paths
        assert all("content" not in f for f in data["files"])
        assert all(f["size_bytes"] > 0 for f in data["files"])

    async def test_preview_includes_content(self, client: AsyncClient, model_id: str):
        resp = await client.post(
            "/api/generate/preview", json={"model_id": model_id, "target": "react-spa"}
        )
        data = resp.json()
        assert data["target"] == "react-spa"
        store = next(f for f in data["files"] if f["path"] == "src/store/orderStore.ts")
        assert store["type"] == "store"
        assert "createOrder" in store["content"]

    async def test_s1_page_renders_inferred_form(self, client: AsyncClient, model_id: str):
        data = (await client.post("/api/generate/preview", json={"model_id": model_id})).json()
        page = next(f for f in data["files"] if f["path"] == "app/orders/page.tsx")
        assert "import { Form } from '@/components/universal';" in page["content"]
        assert "<Form />" in page["content"]
        assert "No components recorded" not in page["content"]

    async def test_preview_is_deterministic(self, client: AsyncClient, model_id: str):
        first = (await client.post("/api/generate/preview", json={"model_id": model_id})).json()
        second = (await client.post("/api/generate/preview", json={"model_id": model_id})).json()
        assert first == second

    async def test_file_types_filter(self, client: AsyncClient, model_id: str):
        resp = await client.post(
            "/api/generate", json={"model_id": model_id, "file_types": ["page"]}
        )
        files = resp.json()["files"]
        assert files
        assert {f["type"] for f in files} == {"page"}

    async def test_unsupported_target(self, client: AsyncClient, model_id: str):
        resp = await client.post("/api/generate", json={"model_id": model_id, "target": "vue"})
        assert resp.status_code == 400
        error = resp.json()["error"]
        assert error["code"] == "UNSUPPORTED_TARGET"
        assert "nextjs-app" in error["message"]

    async def test_unknown_model(self, client: AsyncClient):
        resp = await client.post("/api/generate", json={"model_id": "nope"})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "MODEL_NOT_FOUND"

    async def test_unsupported_target_checked_before_model(self, client: AsyncClient):
        resp = await client.post("/api/generate", json={"model_id": "nope", "target": "vue"})
        assert resp.status_code == 400

    async def test_export_zip(self, client: AsyncClient, model_id: str):
        resp = await client.post("/api/generate/export", json={"model_id": model_id})
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/zip"
        assert (
            resp.headers["content-disposition"]
            == f'attachment; filename="{model_id}-1.0.0-nextjs-app.zip"'
        )

        listed = (await client.post("/api/generate", json={"model_id": model_id})).json()
        with zipfile.ZipFile(io.BytesIO(resp.content)) as archive:
            assert archive.namelist() == [f["path"] for f in listed["files"]]

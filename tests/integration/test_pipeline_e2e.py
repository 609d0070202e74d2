"""端到端流水线测试：上报 -> 识别 -> 合成 -> 生成

两个会话：
- S1: 导航到 /orders，点击 New Order，提交 orderForm（order 实体可创建）
- S2: 导航到 /products，连续点击三行表格（product 实体只读列表）
"""

import io
import zipfile

from httpx import AsyncClient

PRODUCTS_TS = 1_700_000_100_000


def _s2_raw_events() -> list[dict]:
    events = [
        {
            "id": "p-nav",
            "sessionId": "S2",
            "userId": "u1",
            "type": "navigation",
            "timestamp": PRODUCTS_TS,
            "metadata": {"from": "/orders", "to": "/products"},
        }
    ]
    for i in range(3):
        events.append(
            {
                "id": f"p-row{i}",
                "sessionId": "S2",
                "userId": "u1",
                "type": "interaction",
                "timestamp": PRODUCTS_TS + 1000 * (i + 1),
                "metadata": {
                    "screen": "/products",
                    "interactionType": "click",
                    "componentName": "ProductTable",
                    "elementType": "tr",
                },
            }
        )
    events.append(
        {
            "id": "p-end",
            "sessionId": "S2",
            "type": "system",
            "timestamp": PRODUCTS_TS + 5000,
            "metadata": {"action": "session_end"},
        }
    )
    return events


class TestPipelineEndToEnd:
    async def test_full_pipeline(self, client: AsyncClient, s1_raw_events):
        # 1. 上报
        resp = await client.post("/api/events", json={"events": s1_raw_events + _s2_raw_events()})
        assert resp.json()["accepted"] == 8

        s2 = (await client.get("/api/sessions/S2")).json()["session"]
        assert s2["active"] is False

        # 2. 识别
        for session_id in ("S1", "S2"):
            resp = await client.post(f"/api/sessions/{session_id}/recognize")
            assert resp.status_code == 200
            assert resp.json()["patterns"]

        patterns = (await client.get("/api/patterns", params={"limit": 500})).json()["patterns"]
        types = {p["pattern_type"] for p in patterns}
        assert {"navigation", "crud_create", "form_submission", "list_view"} <= types
        assert all(p["confidence"] >= 0.3 for p in patterns)

        # 3. 合成
        resp = await client.post(
            "/api/models/synthesize",
            json={"pattern_ids": [p["pattern_id"] for p in patterns], "name": "Shop"},
        )
        assert resp.status_code == 201
        model = resp.json()
        entities = {e["name"]: e["operations"] for e in model["entities"]}
        assert "create" in entities["order"]
        assert entities["product"] == ["list"]
        assert {s["path"] for s in model["screens"]} >= {"/orders", "/products"}

        # 4. 生成
        preview = (
            await client.post("/api/generate/preview", json={"model_id": model["model_id"]})
        ).json()
        files = {f["path"]: f for f in preview["files"]}

        order_api = files["lib/api/orderApi.ts"]["content"]
        assert "export function createOrder(" in order_api
        assert "deleteOrder" not in order_api

        product_api = files["lib/api/productApi.ts"]["content"]
        assert "export function listProducts(" in product_api
        assert "createProduct" not in product_api
        assert "deleteProduct" not in product_api

        nav = files["components/Navigation.tsx"]["content"]
        assert "/orders" in nav
        assert "/products" in nav

        # 5. 编辑模型后重新生成，产物反映新版本
        resp = await client.patch(
            f"/api/models/{model['model_id']}",
            json={
                "entities": [
                    *model["entities"],
                    {"name": "invoice", "fields": ["total"], "operations": ["read"]},
                ]
            },
        )
        assert resp.json()["version"] == "1.0.1"

        resp = await client.post("/api/generate/export", json={"model_id": model["model_id"]})
        assert f"{model['model_id']}-1.0.1-nextjs-app.zip" in resp.headers["content-disposition"]
        with zipfile.ZipFile(io.BytesIO(resp.content)) as archive:
            names = archive.namelist()
            invoice_api = archive.read("lib/api/invoiceApi.ts").decode("utf-8")
        assert "types/invoice.ts" in names
        assert "export function getInvoice(" in invoice_api
        assert "deleteInvoice" not in invoice_api

    async def test_pipeline_is_deterministic(self, client: AsyncClient, s1_raw_events):
        """同一批事件重复上报与识别，产物逐字节一致"""
        await client.post("/api/events", json={"events": s1_raw_events})
        first = (await client.post("/api/sessions/S1/recognize")).json()["patterns"]
        await client.post("/api/events", json={"events": s1_raw_events})
        second = (await client.post("/api/sessions/S1/recognize")).json()["patterns"]
        assert first == second

        model_ids = []
        for _ in range(2):
            resp = await client.post("/api/models/synthesize", json={"session_id": "S1", "name": "Same"})
            model_ids.append(resp.json()["model_id"])
        assert model_ids[0] != model_ids[1]

        exports = [
            (await client.post("/api/generate/preview", json={"model_id": m})).json()["files"]
            for m in model_ids
        ]
        assert exports[0] == exports[1]

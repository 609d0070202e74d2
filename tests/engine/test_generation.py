"""代码生成测试

测试内容：
1. 只读实体不生成删除/创建/更新接口
2. 同一模型两次生成逐字节一致，zip 导出一致
3. 未知目标抛出 UnsupportedTargetError，且不返回部分结果
4. 路径冲突加后缀、未知组件渲染为占位
5. react-spa 目标生成 store，按产物类型过滤
6. api-only 目标生成 Express routes / controllers / models，不生成页面
7. 数字开头的实体名与工作流名生成合法标识符
"""

import io
import zipfile
from datetime import UTC, datetime

import pytest
from patternforge.core.exceptions import UnsupportedTargetError
from patternforge.core.models import (
    ApplicationModel,
    ArtifactType,
    CrudOperation,
    EntitySpec,
    PatternType,
    ScreenSpec,
    WorkflowSpec,
)
from patternforge.engine import CodeGenerator, export_zip, filter_artifacts
from patternforge.engine.generation import field_type

NOW = datetime(2026, 1, 1, tzinfo=UTC)


def _model(**overrides) -> ApplicationModel:
    data = {
        "model_id": "01HZX0000000000000000000AB",
        "name": "Shop",
        "entities": [
            EntitySpec(
                name="order",
                fields=["customer", "total", "isPaid"],
                operations=list(CrudOperation),
            ),
            EntitySpec(name="invoice", operations=[CrudOperation.READ]),
        ],
        "screens": [
            ScreenSpec(
                path="/orders",
                components=["DataTable", "FancyWidget"],
                actions=[PatternType.NAVIGATION, PatternType.LIST_VIEW],
            ),
            ScreenSpec(path="/orders/123", actions=[PatternType.DETAIL_VIEW]),
        ],
        "workflows": [
            WorkflowSpec(
                workflow_id="pat_1", name="checkout", steps=["cart", "payment"], duration_ms=4200
            )
        ],
        "confidence": 0.7,
        "created_at": NOW,
        "updated_at": NOW,
    }
    data.update(overrides)
    return ApplicationModel(**data)


def _by_path(artifacts):
    return {a.path: a for a in artifacts}


class TestNextjsTarget:
    def test_file_layout(self):
        artifacts = CodeGenerator().generate(_model(), "nextjs-app")
        paths = [a.path for a in artifacts]

        assert paths == [
            "types/order.ts",
            "types/invoice.ts",
            "types/index.ts",
            "lib/api/orderApi.ts",
            "lib/api/invoiceApi.ts",
            "app/orders/page.tsx",
            "app/orders/[id]/page.tsx",
            "lib/workflows/checkout.ts",
            "components/Navigation.tsx",
        ]
        types = {a.path: a.type for a in artifacts}
        assert types["lib/api/orderApi.ts"] == ArtifactType.API
        assert types["app/orders/page.tsx"] == ArtifactType.PAGE
        assert types["lib/workflows/checkout.ts"] == ArtifactType.OTHER
        assert types["components/Navigation.tsx"] == ArtifactType.COMPONENT

    def test_read_only_entity_has_no_write_operations(self):
        client = _by_path(CodeGenerator().generate(_model(), "nextjs-app"))["lib/api/invoiceApi.ts"]
        assert "export function getInvoice(" in client.content
        assert "deleteInvoice" not in client.content
        assert "DELETE" not in client.content
        assert "createInvoice" not in client.content
        assert "updateInvoice" not in client.content
        assert "listInvoices" not in client.content

    def test_full_crud_entity(self):
        client = _by_path(CodeGenerator().generate(_model(), "nextjs-app"))["lib/api/orderApi.ts"]
        for name in ("listOrders", "getOrder", "createOrder", "updateOrder", "deleteOrder"):
            assert f"export function {name}(" in client.content
        assert "const BASE_URL = '/api/orders';" in client.content

    def test_entity_without_operations_has_no_surface(self):
        model = _model(entities=[EntitySpec(name="note")])
        paths = [a.path for a in CodeGenerator().generate(model, "nextjs-app")]
        assert "types/note.ts" in paths
        assert not any(p.startswith("lib/api/") for p in paths)

    def test_entity_type_fields(self):
        order_type = _by_path(CodeGenerator().generate(_model(), "nextjs-app"))["types/order.ts"]
        assert "export interface Order {" in order_type.content
        assert "  total?: number;" in order_type.content
        assert "  isPaid?: boolean;" in order_type.content
        assert "  customer?: string;" in order_type.content

    def test_unknown_component_placeholder(self):
        page = _by_path(CodeGenerator().generate(_model(), "nextjs-app"))["app/orders/page.tsx"]
        assert "import { DataTable } from '@/components/universal';" in page.content
        assert "<DataTable />" in page.content
        assert '<div data-placeholder="FancyWidget" />' in page.content
        assert "FancyWidget }" not in page.content

    def test_workflow_steps_in_order(self):
        workflow = _by_path(CodeGenerator().generate(_model(), "nextjs-app"))[
            "lib/workflows/checkout.ts"
        ]
        assert workflow.content.index("'cart'") < workflow.content.index("'payment'")
        assert "checkoutObservedDurationMs = 4200" in workflow.content

    def test_navigation_skips_detail_screens(self):
        nav = _by_path(CodeGenerator().generate(_model(), "nextjs-app"))["components/Navigation.tsx"]
        assert "href: '/orders'" in nav.content
        assert "/orders/123" not in nav.content
        assert "export const NAV_LAYOUT = 'tabs';" in nav.content

    def test_many_screens_use_sidebar(self):
        model = _model(screens=[ScreenSpec(path=f"/section{i}") for i in range(6)])
        nav = _by_path(CodeGenerator().generate(model, "nextjs-app"))["components/Navigation.tsx"]
        assert "export const NAV_LAYOUT = 'sidebar';" in nav.content

    def test_path_collision_gets_suffix(self):
        model = _model(screens=[ScreenSpec(path="/orders"), ScreenSpec(path="/orders/")])
        paths = [a.path for a in CodeGenerator().generate(model, "nextjs-app")]
        assert "app/orders/page.tsx" in paths
        assert "app/orders/page-2.tsx" in paths
        assert len(paths) == len(set(paths))

    def test_root_screen(self):
        model = _model(screens=[ScreenSpec(path="/")])
        paths = [a.path for a in CodeGenerator().generate(model, "nextjs-app")]
        assert "app/page.tsx" in paths


class TestReactSpaTarget:
    def test_store_surface(self):
        artifacts = _by_path(CodeGenerator().generate(_model(), "react-spa"))

        store = artifacts["src/store/orderStore.ts"]
        assert store.type == ArtifactType.STORE
        assert "deleteOrder(id: string)" in store.content

        read_only = artifacts["src/store/invoiceStore.ts"]
        assert "getInvoice(id: string)" in read_only.content
        assert "deleteInvoice" not in read_only.content
        assert "createInvoice" not in read_only.content
        assert "let nextId" not in read_only.content

        assert "src/pages/OrdersPage.tsx" in artifacts
        assert "src/pages/OrdersDetailPage.tsx" in artifacts
        assert "src/types/index.ts" in artifacts


class TestApiOnlyTarget:
    def test_file_layout(self):
        artifacts = CodeGenerator().generate(_model(), "api-only")
        paths = [a.path for a in artifacts]

        assert paths == [
            "src/types/order.ts",
            "src/types/invoice.ts",
            "src/types/index.ts",
            "src/models/orderModel.ts",
            "src/controllers/orderController.ts",
            "src/routes/orderRoutes.ts",
            "src/models/invoiceModel.ts",
            "src/controllers/invoiceController.ts",
            "src/routes/invoiceRoutes.ts",
            "src/routes/index.ts",
            "src/workflows/checkout.ts",
        ]
        assert {a.type for a in artifacts} == {
            ArtifactType.TYPE,
            ArtifactType.STORE,
            ArtifactType.API,
            ArtifactType.OTHER,
        }

    def test_routes_follow_recorded_operations(self):
        artifacts = _by_path(CodeGenerator().generate(_model(), "api-only"))

        order_routes = artifacts["src/routes/orderRoutes.ts"].content
        assert "orderRouter.get('/', controller.listOrders);" in order_routes
        assert "orderRouter.delete('/:id', controller.deleteOrder);" in order_routes

        invoice_routes = artifacts["src/routes/invoiceRoutes.ts"].content
        assert "invoiceRouter.get('/:id', controller.getInvoice);" in invoice_routes
        assert "post(" not in invoice_routes
        assert "delete(" not in invoice_routes

        controller = artifacts["src/controllers/invoiceController.ts"].content
        assert "export function getInvoice(req: Request, res: Response): void {" in controller
        assert "res.status(404)" in controller
        assert "createInvoice" not in controller

        index = artifacts["src/routes/index.ts"].content
        assert "apiRouter.use('/orders', orderRouter);" in index
        assert "apiRouter.use('/invoices', invoiceRouter);" in index


class TestIdentifierNames:
    def test_leading_digit_names(self):
        model = _model(
            entities=[EntitySpec(name="2fa_token", operations=[CrudOperation.READ])],
            workflows=[WorkflowSpec(workflow_id="pat_2", name="3-step checkout", steps=["a"])],
        )
        artifacts = _by_path(CodeGenerator().generate(model, "nextjs-app"))

        assert "export interface _2FaToken {" in artifacts["types/_2FaToken.ts"].content
        assert "export function get_2FaToken(" in artifacts["lib/api/_2FaTokenApi.ts"].content
        workflow = artifacts["lib/workflows/_3StepCheckout.ts"].content
        assert "export const _3StepCheckoutSteps = [" in workflow
        assert "export function next_3StepCheckoutStep(" in workflow


class TestDeterminismAndErrors:
    def test_byte_identical(self):
        generator = CodeGenerator()
        first = generator.generate(_model(), "nextjs-app")
        second = generator.generate(_model(), "nextjs-app")
        assert [(a.path, a.content) for a in first] == [(a.path, a.content) for a in second]

    def test_model_id_not_embedded(self):
        """输出只依赖模型内容，不包含 model_id 与时间戳"""
        a = CodeGenerator().generate(_model(), "nextjs-app")
        b = CodeGenerator().generate(_model(model_id="01HZX0000000000000000000ZZ"), "nextjs-app")
        assert [x.content for x in a] == [x.content for x in b]

    def test_unsupported_target(self):
        with pytest.raises(UnsupportedTargetError) as exc_info:
            CodeGenerator().generate(_model(), "vue-app")
        assert exc_info.value.status_code == 400
        assert exc_info.value.supported == ["api-only", "nextjs-app", "react-spa"]

    def test_export_zip_deterministic(self):
        artifacts = CodeGenerator().generate(_model(), "nextjs-app")
        first = export_zip(artifacts)
        second = export_zip(artifacts)
        assert first == second

        with zipfile.ZipFile(io.BytesIO(first)) as archive:
            assert archive.namelist() == [a.path for a in artifacts]
            assert archive.read("types/index.ts").decode() == _by_path(artifacts)["types/index.ts"].content

    def test_filter_artifacts(self):
        artifacts = CodeGenerator().generate(_model(), "nextjs-app")
        pages = filter_artifacts(artifacts, ["page"])
        assert {a.type for a in pages} == {ArtifactType.PAGE}
        assert filter_artifacts(artifacts, None) == artifacts
        assert filter_artifacts(artifacts, []) == artifacts


class TestFieldType:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("price", "number"),
            ("totalAmount", "number"),
            ("isPaid", "boolean"),
            ("active", "boolean"),
            ("createdAt", "string"),
            ("customerId", "string"),
            ("name", "string"),
        ],
    )
    def test_field_type(self, name, expected):
        assert field_type(name) == expected

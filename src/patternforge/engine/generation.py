"""代码生成 -- ApplicationModel + 目标配置 -> GeneratedArtifact 列表

纯函数：输出只依赖模型内容与目标配置，不嵌入时间戳、随机数或 model_id，
同一输入两次生成逐字节一致。

目标配置（TARGET_PROFILES）:
- nextjs-app: App Router 页面 + lib/api 客户端 CRUD 接口
- react-spa:  src/pages 页面 + src/store 状态绑定
- api-only:   Express REST 服务端：routes + controllers + models + types，不生成页面
"""

import io
import re
import zipfile
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from ..core.exceptions import UnsupportedTargetError
from ..core.models.app_model import ApplicationModel, EntitySpec, ScreenSpec, WorkflowSpec
from ..core.models.artifact import GeneratedArtifact
from ..core.models.enums import ArtifactType, CrudOperation
from ..core.naming import pluralize, split_words, to_camel, to_kebab, to_pascal

# 通用组件库中可直接导入的组件，其余组件渲染为占位
KNOWN_COMPONENTS: frozenset[str] = frozenset(
    {
        "Alert",
        "Breadcrumbs",
        "Button",
        "Calendar",
        "Card",
        "Chart",
        "DataGrid",
        "DataTable",
        "DatePicker",
        "FileUpload",
        "FilterPanel",
        "Form",
        "FormField",
        "List",
        "Modal",
        "Pagination",
        "SearchBar",
        "SearchInput",
        "Select",
        "Stepper",
        "Tabs",
        "Toast",
    }
)

# 字段名 -> TypeScript 类型
_NUMBER_WORDS = {"count", "quantity", "qty", "price", "amount", "total", "age", "number", "size", "score"}
_BOOLEAN_PREFIXES = ("is", "has", "can", "should")
_BOOLEAN_WORDS = {"enabled", "active", "visible", "completed", "paid"}
_DATE_WORDS = {"at", "date", "time", "timestamp"}

_ROUTE_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_\-\[\]]")
_ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)
# 导航项超过该数量时改用侧边栏
_TABS_MAX = 5


@dataclass(frozen=True, slots=True)
class TargetProfile:
    """生成目标：文件布局与 CRUD 接口形态"""

    name: str
    description: str
    surface_type: ArtifactType
    surface_template: str
    types_dir: str
    components_dir: str
    workflows_dir: str
    component_import: str
    types_import: str
    server: bool = False

    def page_path(self, screen: str) -> str:
        if self.name == "nextjs-app":
            route = _next_route(screen)
            return f"app/{route}/page.tsx" if route else "app/page.tsx"
        return f"src/pages/{_page_name(screen)}.tsx"

    def surface_path(self, entity: str) -> str:
        return self.surface_template.format(name=to_camel(entity))


TARGET_PROFILES: dict[str, TargetProfile] = {
    "nextjs-app": TargetProfile(
        name="nextjs-app",
        description="Next.js App Router pages with a fetch-based API client per entity",
        surface_type=ArtifactType.API,
        surface_template="lib/api/{name}Api.ts",
        types_dir="types",
        components_dir="components",
        workflows_dir="lib/workflows",
        component_import="@/components/universal",
        types_import="@/types",
    ),
    "react-spa": TargetProfile(
        name="react-spa",
        description="React single-page app with page components and a store per entity",
        surface_type=ArtifactType.STORE,
        surface_template="src/store/{name}Store.ts",
        types_dir="src/types",
        components_dir="src/components",
        workflows_dir="src/workflows",
        component_import="../components/universal",
        types_import="../types",
    ),
    "api-only": TargetProfile(
        name="api-only",
        description="Express REST API with a router, controller and in-memory model per entity",
        surface_type=ArtifactType.API,
        surface_template="src/controllers/{name}Controller.ts",
        types_dir="src/types",
        components_dir="src/components",
        workflows_dir="src/workflows",
        component_import="../components/universal",
        types_import="../types",
        server=True,
    ),
}


def _id_like(segment: str) -> bool:
    return segment.isdigit() or segment.startswith((":", "[", "{")) or len(segment) >= 20


def _next_route(screen: str) -> str:
    parts = []
    for segment in screen.split("?", 1)[0].split("/"):
        if not segment:
            continue
        if _id_like(segment):
            parts.append("[id]")
        else:
            parts.append(_ROUTE_UNSAFE_RE.sub("-", segment))
    return "/".join(parts)


def _page_name(screen: str) -> str:
    words = [s for s in screen.split("?", 1)[0].split("/") if s and not _id_like(s)]
    detail = any(_id_like(s) for s in screen.split("/") if s)
    base = to_pascal(" ".join(words)) if words else "Home"
    return f"{base}{'Detail' if detail else ''}Page"


def field_type(field_name: str) -> str:
    """按字段名推断 TypeScript 类型"""
    words = split_words(field_name)
    if not words:
        return "string"
    if words[-1] in _DATE_WORDS or words[-1] == "id":
        return "string"
    if words[-1] in _NUMBER_WORDS:
        return "number"
    if (words[0] in _BOOLEAN_PREFIXES and len(words) > 1) or words[-1] in _BOOLEAN_WORDS:
        return "boolean"
    return "string"


def _ts_key(field_name: str) -> str:
    return to_camel(field_name) if split_words(field_name) else "field"


class CodeGenerator:
    """应用模型 -> 源码产物"""

    def __init__(self, profiles: dict[str, TargetProfile] | None = None) -> None:
        self.profiles = profiles if profiles is not None else TARGET_PROFILES

    def get_profile(self, target: str) -> TargetProfile:
        """
        Raises:
            UnsupportedTargetError: 未注册的目标
        """
        profile = self.profiles.get(target)
        if profile is None:
            raise UnsupportedTargetError(target, sorted(self.profiles))
        return profile

    def generate(self, model: ApplicationModel, target: str) -> list[GeneratedArtifact]:
        """生成全部产物

        目标校验在渲染任何产物之前完成，不会返回部分结果。
        """
        profile = self.get_profile(target)
        used: set[str] = set()
        artifacts: list[GeneratedArtifact] = []

        def emit(path: str, artifact_type: ArtifactType, content: str) -> None:
            artifacts.append(
                GeneratedArtifact(
                    path=_unique_path(path, used), type=artifact_type, content=content
                )
            )

        for entity in model.entities:
            emit(
                f"{profile.types_dir}/{to_camel(entity.name)}.ts",
                ArtifactType.TYPE,
                render_entity_type(entity),
            )
        emit(f"{profile.types_dir}/index.ts", ArtifactType.TYPE, render_types_index(model.entities))

        served = [entity for entity in model.entities if entity.operations]
        for entity in served:
            if profile.server:
                name = to_camel(entity.name)
                emit(
                    f"src/models/{name}Model.ts",
                    ArtifactType.STORE,
                    render_server_model(entity, profile),
                )
                emit(profile.surface_path(entity.name), ArtifactType.API, render_controller(entity))
                emit(f"src/routes/{name}Routes.ts", ArtifactType.API, render_router(entity))
                continue
            if profile.surface_type == ArtifactType.API:
                content = render_api_client(entity, profile)
            else:
                content = render_store(entity, profile)
            emit(profile.surface_path(entity.name), profile.surface_type, content)

        if profile.server:
            emit("src/routes/index.ts", ArtifactType.API, render_routes_index(served))
        else:
            for screen in model.screens:
                emit(profile.page_path(screen.path), ArtifactType.PAGE, render_page(screen, profile))

        for workflow in model.workflows:
            emit(
                f"{profile.workflows_dir}/{to_camel(workflow.name)}.ts",
                ArtifactType.OTHER,
                render_workflow(workflow),
            )

        if not profile.server:
            emit(
                f"{profile.components_dir}/Navigation.tsx",
                ArtifactType.COMPONENT,
                render_navigation(model.screens),
            )
        return artifacts


def _unique_path(path: str, used: set[str]) -> str:
    """路径冲突时在扩展名前追加 -2、-3 ..."""
    if path not in used:
        used.add(path)
        return path
    stem, dot, ext = path.rpartition(".")
    if not dot:
        stem, ext = path, ""
    n = 2
    while True:
        candidate = f"{stem}-{n}.{ext}" if ext else f"{stem}-{n}"
        if candidate not in used:
            used.add(candidate)
            return candidate
        n += 1


def filter_artifacts(
    artifacts: Sequence[GeneratedArtifact],
    file_types: Iterable[str] | None,
) -> list[GeneratedArtifact]:
    """按产物类型过滤，file_types 为空时原样返回"""
    if not file_types:
        return list(artifacts)
    wanted = {str(t) for t in file_types}
    return [a for a in artifacts if a.type.value in wanted]


def export_zip(artifacts: Sequence[GeneratedArtifact]) -> bytes:
    """打包为 zip，条目时间固定，相同产物得到相同字节"""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for artifact in artifacts:
            info = zipfile.ZipInfo(artifact.path, date_time=_ZIP_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            archive.writestr(info, artifact.content)
    return buffer.getvalue()


# ---------------------------------------------------------------------------
# 渲染
# ---------------------------------------------------------------------------


def render_entity_type(entity: EntitySpec) -> str:
    type_name = to_pascal(entity.name)
    lines = [
        f"export interface {type_name} {{",
        "  id: string;",
        "  createdAt: string;",
        "  updatedAt: string;",
    ]
    reserved = {"id", "createdAt", "updatedAt"}
    for name in entity.fields:
        key = _ts_key(name)
        if key in reserved:
            continue
        reserved.add(key)
        lines.append(f"  {key}?: {field_type(name)};")
    lines.append("}")
    lines.append("")
    lines.append(f"export type {type_name}Input = Omit<{type_name}, 'id' | 'createdAt' | 'updatedAt'>;")
    return "\n".join(lines) + "\n"


def render_types_index(entities: Sequence[EntitySpec]) -> str:
    if not entities:
        return "export {};\n"
    return "".join(f"export * from './{to_camel(e.name)}';\n" for e in entities)


def _resource(entity: EntitySpec) -> str:
    return to_kebab(pluralize(entity.name))


def render_api_client(entity: EntitySpec, profile: TargetProfile) -> str:
    """fetch 客户端：只导出记录到的操作"""
    t = to_pascal(entity.name)
    plural = to_pascal(pluralize(entity.name))
    ops = set(entity.operations)
    lines = [
        f"import type {{ {t}, {t}Input }} from '{profile.types_import}';",
        "",
        f"const BASE_URL = '/api/{_resource(entity)}';",
        "",
        "async function request<T>(url: string, init?: RequestInit): Promise<T> {",
        "  const res = await fetch(url, {",
        "    headers: { 'Content-Type': 'application/json' },",
        "    ...init,",
        "  });",
        "  if (!res.ok) {",
        "    throw new Error(`${init?.method ?? 'GET'} ${url} failed: ${res.status}`);",
        "  }",
        "  return (res.status === 204 ? undefined : await res.json()) as T;",
        "}",
    ]
    if CrudOperation.LIST in ops:
        lines += [
            "",
            f"export function list{plural}(): Promise<{t}[]> {{",
            f"  return request<{t}[]>(BASE_URL);",
            "}",
        ]
    if CrudOperation.READ in ops:
        lines += [
            "",
            f"export function get{t}(id: string): Promise<{t}> {{",
            f"  return request<{t}>(`${{BASE_URL}}/${{id}}`);",
            "}",
        ]
    if CrudOperation.CREATE in ops:
        lines += [
            "",
            f"export function create{t}(input: {t}Input): Promise<{t}> {{",
            f"  return request<{t}>(BASE_URL, {{ method: 'POST', body: JSON.stringify(input) }});",
            "}",
        ]
    if CrudOperation.UPDATE in ops:
        lines += [
            "",
            f"export function update{t}(id: string, input: Partial<{t}Input>): Promise<{t}> {{",
            f"  return request<{t}>(`${{BASE_URL}}/${{id}}`, {{",
            "    method: 'PATCH',",
            "    body: JSON.stringify(input),",
            "  });",
            "}",
        ]
    if CrudOperation.DELETE in ops:
        lines += [
            "",
            f"export function delete{t}(id: string): Promise<void> {{",
            f"  return request<void>(`${{BASE_URL}}/${{id}}`, {{ method: 'DELETE' }});",
            "}",
        ]
    return "\n".join(lines) + "\n"


def render_store(entity: EntitySpec, profile: TargetProfile) -> str:
    """内存 store：只暴露记录到的操作"""
    t = to_pascal(entity.name)
    plural = to_pascal(pluralize(entity.name))
    ops = set(entity.operations)

    members: list[str] = []
    if CrudOperation.LIST in ops:
        members += [
            f"  list{plural}(): {t}[] {{",
            "    return [...items.values()];",
            "  },",
        ]
    if CrudOperation.READ in ops:
        members += [
            f"  get{t}(id: string): {t} | undefined {{",
            "    return items.get(id);",
            "  },",
        ]
    if CrudOperation.CREATE in ops:
        members += [
            f"  create{t}(input: {t}Input): {t} {{",
            "    const now = new Date().toISOString();",
            f"    const item: {t} = {{ ...input, id: String(nextId++), createdAt: now, updatedAt: now }};",
            "    items.set(item.id, item);",
            "    notify();",
            "    return item;",
            "  },",
        ]
    if CrudOperation.UPDATE in ops:
        members += [
            f"  update{t}(id: string, input: Partial<{t}Input>): {t} | undefined {{",
            "    const current = items.get(id);",
            "    if (!current) return undefined;",
            f"    const item: {t} = {{ ...current, ...input, updatedAt: new Date().toISOString() }};",
            "    items.set(id, item);",
            "    notify();",
            "    return item;",
            "  },",
        ]
    if CrudOperation.DELETE in ops:
        members += [
            f"  delete{t}(id: string): boolean {{",
            "    const removed = items.delete(id);",
            "    if (removed) notify();",
            "    return removed;",
            "  },",
        ]

    lines = [
        f"import type {{ {t}, {t}Input }} from '{profile.types_import}';",
        "",
        "type Listener = () => void;",
        "",
        f"const items = new Map<string, {t}>();",
        "const listeners = new Set<Listener>();",
        *(["let nextId = 1;"] if CrudOperation.CREATE in ops else []),
        "",
        "function notify(): void {",
        "  listeners.forEach((listener) => listener());",
        "}",
        "",
        f"export const {to_camel(entity.name)}Store = {{",
        "  subscribe(listener: Listener): () => void {",
        "    listeners.add(listener);",
        "    return () => listeners.delete(listener);",
        "  },",
        *members,
        "};",
    ]
    return "\n".join(lines) + "\n"


def render_server_model(entity: EntitySpec, profile: TargetProfile) -> str:
    """服务端内存模型：只导出记录到的操作"""
    t = to_pascal(entity.name)
    plural = to_pascal(pluralize(entity.name))
    ops = set(entity.operations)

    lines = [
        f"import type {{ {t}, {t}Input }} from '{profile.types_import}';",
        "",
        f"const items = new Map<string, {t}>();",
        *(["let nextId = 1;"] if CrudOperation.CREATE in ops else []),
    ]
    if CrudOperation.LIST in ops:
        lines += [
            "",
            f"export function list{plural}(): {t}[] {{",
            "  return [...items.values()];",
            "}",
        ]
    if CrudOperation.READ in ops:
        lines += [
            "",
            f"export function get{t}(id: string): {t} | undefined {{",
            "  return items.get(id);",
            "}",
        ]
    if CrudOperation.CREATE in ops:
        lines += [
            "",
            f"export function create{t}(input: {t}Input): {t} {{",
            "  const now = new Date().toISOString();",
            f"  const item: {t} = {{ ...input, id: String(nextId++), createdAt: now, updatedAt: now }};",
            "  items.set(item.id, item);",
            "  return item;",
            "}",
        ]
    if CrudOperation.UPDATE in ops:
        lines += [
            "",
            f"export function update{t}(id: string, input: Partial<{t}Input>): {t} | undefined {{",
            "  const current = items.get(id);",
            "  if (!current) return undefined;",
            f"  const item: {t} = {{ ...current, ...input, updatedAt: new Date().toISOString() }};",
            "  items.set(id, item);",
            "  return item;",
            "}",
        ]
    if CrudOperation.DELETE in ops:
        lines += [
            "",
            f"export function delete{t}(id: string): boolean {{",
            "  return items.delete(id);",
            "}",
        ]
    return "\n".join(lines) + "\n"


def render_controller(entity: EntitySpec) -> str:
    """Express 控制器：每个记录到的操作一个处理函数，未找到返回 404"""
    t = to_pascal(entity.name)
    plural = to_pascal(pluralize(entity.name))
    model = f"{to_camel(entity.name)}Model"
    ops = set(entity.operations)
    not_found = f"    res.status(404).json({{ error: {_ts_string(f'{t} not found')} }});"

    lines = [
        "import type { Request, Response } from 'express';",
        f"import * as {model} from '../models/{model}';",
    ]
    if CrudOperation.LIST in ops:
        lines += [
            "",
            f"export function list{plural}(_req: Request, res: Response): void {{",
            f"  res.json({model}.list{plural}());",
            "}",
        ]
    if CrudOperation.READ in ops:
        lines += [
            "",
            f"export function get{t}(req: Request, res: Response): void {{",
            f"  const item = {model}.get{t}(req.params.id);",
            "  if (!item) {",
            not_found,
            "    return;",
            "  }",
            "  res.json(item);",
            "}",
        ]
    if CrudOperation.CREATE in ops:
        lines += [
            "",
            f"export function create{t}(req: Request, res: Response): void {{",
            f"  res.status(201).json({model}.create{t}(req.body));",
            "}",
        ]
    if CrudOperation.UPDATE in ops:
        lines += [
            "",
            f"export function update{t}(req: Request, res: Response): void {{",
            f"  const item = {model}.update{t}(req.params.id, req.body);",
            "  if (!item) {",
            not_found,
            "    return;",
            "  }",
            "  res.json(item);",
            "}",
        ]
    if CrudOperation.DELETE in ops:
        lines += [
            "",
            f"export function delete{t}(req: Request, res: Response): void {{",
            f"  if (!{model}.delete{t}(req.params.id)) {{",
            not_found,
            "    return;",
            "  }",
            "  res.status(204).end();",
            "}",
        ]
    return "\n".join(lines) + "\n"


def render_router(entity: EntitySpec) -> str:
    t = to_pascal(entity.name)
    plural = to_pascal(pluralize(entity.name))
    router = f"{to_camel(entity.name)}Router"
    ops = set(entity.operations)

    routes: list[str] = []
    if CrudOperation.LIST in ops:
        routes.append(f"{router}.get('/', controller.list{plural});")
    if CrudOperation.READ in ops:
        routes.append(f"{router}.get('/:id', controller.get{t});")
    if CrudOperation.CREATE in ops:
        routes.append(f"{router}.post('/', controller.create{t});")
    if CrudOperation.UPDATE in ops:
        routes.append(f"{router}.patch('/:id', controller.update{t});")
    if CrudOperation.DELETE in ops:
        routes.append(f"{router}.delete('/:id', controller.delete{t});")

    lines = [
        "import { Router } from 'express';",
        f"import * as controller from '../controllers/{to_camel(entity.name)}Controller';",
        "",
        f"export const {router} = Router();",
        "",
        *routes,
    ]
    return "\n".join(lines) + "\n"


def render_routes_index(entities: Sequence[EntitySpec]) -> str:
    """挂载全部实体路由，资源路径与客户端 BASE_URL 一致"""
    lines = ["import { Router } from 'express';"]
    lines += [
        f"import {{ {to_camel(e.name)}Router }} from './{to_camel(e.name)}Routes';" for e in entities
    ]
    lines += ["", "export const apiRouter = Router();"]
    if entities:
        lines.append("")
    lines += [f"apiRouter.use('/{_resource(e)}', {to_camel(e.name)}Router);" for e in entities]
    return "\n".join(lines) + "\n"


def render_page(screen: ScreenSpec, profile: TargetProfile) -> str:
    """页面：已知组件从通用组件库导入，未知组件渲染为占位"""
    known: list[str] = []
    body: list[str] = []
    for component in screen.components:
        name = to_pascal(component)
        if name in KNOWN_COMPONENTS:
            if name not in known:
                known.append(name)
            body.append(f"      <{name} />")
        else:
            safe = component.replace('"', "'")
            body.append(f'      <div data-placeholder="{safe}" />')
    if not body:
        body.append("      <p>No components recorded for this screen.</p>")

    component_name = _page_name(screen.path)
    lines: list[str] = []
    if known:
        lines.append(f"import {{ {', '.join(sorted(known))} }} from '{profile.component_import}';")
        lines.append("")
    actions = ", ".join(str(a) for a in screen.actions) or "none"
    lines += [
        f"// Screen: {screen.path}",
        f"// Observed actions: {actions}",
        f"export default function {component_name}() {{",
        "  return (",
        "    <main>",
        f"      <h1>{screen.path}</h1>",
        *body,
        "    </main>",
        "  );",
        "}",
    ]
    return "\n".join(lines) + "\n"


def render_workflow(workflow: WorkflowSpec) -> str:
    const = to_camel(workflow.name)
    lines = [
        f"export const {const}Steps = [",
        *(f"  {_ts_string(step)}," for step in workflow.steps),
        "] as const;",
        "",
        f"export type {to_pascal(workflow.name)}Step = (typeof {const}Steps)[number];",
        "",
        f"export const {const}ObservedDurationMs = {workflow.duration_ms};",
        "",
        f"export function next{to_pascal(workflow.name)}Step(current: string): string | null {{",
        f"  const index = {const}Steps.indexOf(current as never);",
        f"  return index >= 0 && index < {const}Steps.length - 1 ? {const}Steps[index + 1] : null;",
        "}",
    ]
    return "\n".join(lines) + "\n"


def render_navigation(screens: Sequence[ScreenSpec]) -> str:
    links = [s.path for s in screens if not any(_id_like(p) for p in s.path.split("/") if p)]
    lines = [
        f"export const NAV_LAYOUT = {_ts_string('sidebar' if len(links) > _TABS_MAX else 'tabs')};",
        "",
        "export const NAV_ITEMS = [",
        *(f"  {{ href: {_ts_string(path)}, label: {_ts_string(_nav_label(path))} }}," for path in links),
        "];",
        "",
        "export default function Navigation() {",
        "  return (",
        "    <nav>",
        "      <ul>",
        "        {NAV_ITEMS.map((item) => (",
        "          <li key={item.href}>",
        "            <a href={item.href}>{item.label}</a>",
        "          </li>",
        "        ))}",
        "      </ul>",
        "    </nav>",
        "  );",
        "}",
    ]
    return "\n".join(lines) + "\n"


def _nav_label(path: str) -> str:
    words = split_words(path.rsplit("/", 1)[-1])
    return " ".join(w.capitalize() for w in words) or "Home"


def _ts_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"

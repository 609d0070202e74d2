"""枚举定义

包含 EventType（事件类型封闭集合）、PatternType（模式分类）、
CrudOperation（实体操作集合）、ArtifactType（生成产物类型）、DeviceClass。
"""

from enum import StrEnum


class EventType(StrEnum):
    """事件类型 -- 封闭集合，入库前校验"""

    INTERACTION = "interaction"
    NAVIGATION = "navigation"
    STATE_CHANGE = "state_change"
    FORM = "form"
    WORKFLOW = "workflow"
    ERROR = "error"
    SYSTEM = "system"


class PatternType(StrEnum):
    """模式分类"""

    CRUD_CREATE = "crud_create"
    CRUD_READ = "crud_read"
    CRUD_UPDATE = "crud_update"
    CRUD_DELETE = "crud_delete"
    LIST_VIEW = "list_view"
    DETAIL_VIEW = "detail_view"
    FILTER = "filter"
    SORT = "sort"
    SEARCH = "search"
    NAVIGATION = "navigation"
    FORM_SUBMISSION = "form_submission"
    WORKFLOW_STEP = "workflow_step"
    RELATIONSHIP_MANAGEMENT = "relationship_management"
    BATCH_OPERATION = "batch_operation"
    DATA_EXPORT = "data_export"
    DATA_IMPORT = "data_import"
    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"


class CrudOperation(StrEnum):
    """实体操作，声明顺序即输出顺序"""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    LIST = "list"


# CrudOperation -> 对应的 crud_* 模式
CRUD_PATTERN_BY_OPERATION: dict[CrudOperation, PatternType] = {
    CrudOperation.CREATE: PatternType.CRUD_CREATE,
    CrudOperation.READ: PatternType.CRUD_READ,
    CrudOperation.UPDATE: PatternType.CRUD_UPDATE,
    CrudOperation.DELETE: PatternType.CRUD_DELETE,
    CrudOperation.LIST: PatternType.LIST_VIEW,
}


class ArtifactType(StrEnum):
    """生成产物类型"""

    PAGE = "page"
    COMPONENT = "component"
    TYPE = "type"
    STORE = "store"
    API = "api"
    OTHER = "other"


class ScreenType(StrEnum):
    """页面类型"""

    LIST = "list"
    FORM = "form"
    DETAIL = "detail"
    DASHBOARD = "dashboard"
    CUSTOM = "custom"


class DeviceClass(StrEnum):
    """设备类别"""

    DESKTOP = "desktop"
    TABLET = "tablet"
    MOBILE = "mobile"
    UNKNOWN = "unknown"


def sort_operations(operations) -> list[CrudOperation]:
    """按 CrudOperation 声明顺序去重排序"""
    order = list(CrudOperation)
    return sorted({CrudOperation(op) for op in operations}, key=order.index)

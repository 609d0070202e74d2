"""GeneratedArtifact Domain Model

代码生成产物，纯内存对象，是否落盘由调用方决定。
size_bytes 由 content 的 UTF-8 字节长度计算得到。
"""

from pydantic import BaseModel, Field, computed_field

from .enums import ArtifactType


class GeneratedArtifact(BaseModel):
    """GeneratedArtifact 数据模型

    同一次生成内 path 唯一。
    """

    path: str = Field(description="相对路径")
    type: ArtifactType = Field(description="产物类型")
    content: str = Field(description="文件内容")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def size_bytes(self) -> int:
        return len(self.content.encode("utf-8"))

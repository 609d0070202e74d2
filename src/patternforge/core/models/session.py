"""Session Domain Model

sessions 表是 events 的物化视图（projection），可通过
`python -m patternforge.core rebuild-sessions` 从事件重建。
end_time 为空表示会话仍活跃。
"""

from datetime import datetime

from pydantic import BaseModel, Field

from .enums import DeviceClass


class Viewport(BaseModel):
    """视口尺寸"""

    width: int = Field(ge=0)
    height: int = Field(ge=0)


class SessionMetadata(BaseModel):
    """会话 metadata（设备与环境信息）"""

    device_class: DeviceClass = Field(default=DeviceClass.UNKNOWN, description="设备类别")
    viewport: Viewport | None = Field(default=None, description="视口尺寸")
    locale: str | None = Field(default=None, description="语言区域")
    timezone: str | None = Field(default=None, description="时区")
    user_agent: str | None = Field(default=None, description="UA 字符串")


class Session(BaseModel):
    """Session 数据模型

    不变量：end_time 存在时 end_time >= start_time。
    """

    session_id: str = Field(description="会话 ID（由采集端生成）")
    user_id: str | None = Field(default=None, description="用户 ID")
    start_time: int = Field(description="最早事件时间，epoch 毫秒")
    end_time: int | None = Field(default=None, description="关闭时间，为空表示活跃")
    last_event_time: int = Field(description="最新事件时间，epoch 毫秒")
    event_count: int = Field(default=0, ge=0, description="已入库事件数")
    metadata: SessionMetadata = Field(default_factory=SessionMetadata, description="设备与环境")
    created_at: datetime = Field(description="会话记录创建时间")

    @property
    def active(self) -> bool:
        return self.end_time is None

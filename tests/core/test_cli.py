"""运维 CLI 测试

测试内容：
1. prune-events 删除过期事件并重建会话聚合
2. close-idle 关闭超时会话，新会话保持活跃
3. 未知命令 / 缺少命令时以状态码 1 退出
"""

import sys
import time

import pytest
from patternforge.core.__main__ import close_idle, main, prune_events
from patternforge.core.store import create_store_group
from patternforge.core.store.transaction import append_events_and_update_sessions


@pytest.fixture
def db_path(tmp_path, monkeypatch) -> str:
    path = str(tmp_path / "sqlite" / "cli.db")
    monkeypatch.setenv("PATTERNFORGE_DB_PATH", path)
    return path


async def _seed(db_path: str, events) -> None:
    group = await create_store_group(db_path)
    try:
        await append_events_and_update_sessions(
            group.conn, group.event_store, group.session_store, events
        )
    finally:
        await group.conn.close()


class TestCli:
    async def test_prune_events(self, db_path, make_event, capsys):
        now_ms = int(time.time() * 1000)
        await _seed(
            db_path,
            [
                make_event("old", "navigation", 1_000, session_id="OLD", seq=0, screen="/"),
                make_event("new", "navigation", now_ms, session_id="NEW", seq=0, screen="/"),
            ],
        )

        await prune_events(30)
        assert "已删除 1 条" in capsys.readouterr().out

        group = await create_store_group(db_path)
        try:
            old = await group.session_store.get_session("OLD")
            new = await group.session_store.get_session("NEW")
            assert old.event_count == 0
            assert new.event_count == 1
            assert await group.event_store.get_event("old") is None
        finally:
            await group.conn.close()

    async def test_close_idle(self, db_path, make_event, capsys):
        now_ms = int(time.time() * 1000)
        await _seed(
            db_path,
            [
                make_event("a", "navigation", 1_000, session_id="IDLE", seq=0, screen="/"),
                make_event("b", "navigation", now_ms, session_id="LIVE", seq=0, screen="/"),
            ],
        )

        await close_idle()
        assert "已关闭 1 个" in capsys.readouterr().out

        group = await create_store_group(db_path)
        try:
            idle = await group.session_store.get_session("IDLE")
            live = await group.session_store.get_session("LIVE")
            assert idle.active is False
            assert idle.end_time == 1_000
            assert live.active is True
        finally:
            await group.conn.close()

    @pytest.mark.parametrize("argv", [["patternforge"], ["patternforge", "explode"]])
    def test_bad_command_exits(self, argv, monkeypatch):
        monkeypatch.setattr(sys, "argv", argv)
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1

    def test_prune_invalid_days(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["patternforge", "prune-events", "soon"])
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1

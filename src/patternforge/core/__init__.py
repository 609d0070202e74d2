"""PatternForge Core -- 领域模型、事件规范化、SQLite 存储与运维命令"""

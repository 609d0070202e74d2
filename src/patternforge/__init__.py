"""PatternForge -- 行为埋点 -> 使用模式 -> 应用模型 -> 代码生成"""

__version__ = "0.1.0"

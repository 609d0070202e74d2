"""PatternForge Gateway -- FastAPI 服务入口"""

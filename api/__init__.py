"""
API 層：FastAPI routers（sessions、displays）
"""

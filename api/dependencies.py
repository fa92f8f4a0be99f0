"""
FastAPI dependencies：從 app.state 取出 lifespan 建立的元件
"""
from fastapi import Request

from core.display_sync import InMemoryDisplayBoard
from core.session_manager import AssignmentEngine


def get_engine(request: Request) -> AssignmentEngine:
    return request.app.state.engine


def get_display_board(request: Request) -> InMemoryDisplayBoard:
    return request.app.state.display_board

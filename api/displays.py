"""
Display API Endpoints - 短輪詢版

前端拿到 handle 後定期呼叫 GET /api/displays/{handle} 取得最新的分隊文字；
handle 失效（404）時改用 GET /api/sessions/{scope_id} 重新取得
"""
from fastapi import APIRouter, Depends, HTTPException

from schemas import DisplayResponse
from api.dependencies import get_display_board
from core.display_sync import InMemoryDisplayBoard

router = APIRouter(prefix="/api/displays", tags=["displays"])


@router.get("/{handle}", response_model=DisplayResponse)
def get_display(handle: str, board: InMemoryDisplayBoard = Depends(get_display_board)):
    content = board.get(handle)
    if content is None:
        raise HTTPException(status_code=404, detail="Display not found")
    return DisplayResponse(handle=handle, scope_id=board.owner_of(handle), content=content)

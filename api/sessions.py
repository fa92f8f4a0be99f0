"""
Session API Endpoints

職責：
1. 建立 / 結束 session（organizer endpoint）
2. 成員報名
3. 重新分隊（organizer endpoint）
4. 查詢目前的分隊結果（前端短輪詢）

所有業務邏輯集中在 AssignmentEngine，這裡只負責把異常轉成 HTTP status
"""
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from schemas import (
    SessionCreate,
    MemberJoin,
    ReshuffleRequest,
    PlacementResponse,
    RenderedStateResponse,
    ActionResponse
)
from api.dependencies import get_engine
from core.session_manager import AssignmentEngine
from core.exceptions import (
    SessionNotFound,
    DuplicateRegistration,
    RoleUnavailable,
    Unauthorized,
    InvalidSessionConfig,
    InvalidMemberData,
    InvalidStateTransition,
    SessionBusy
)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])
logger = logging.getLogger(__name__)


@router.post("/{scope_id}", response_model=RenderedStateResponse, status_code=201)
def create_session(
    scope_id: str,
    payload: SessionCreate,
    engine: AssignmentEngine = Depends(get_engine)
):
    """
    建立 session（Organizer endpoint）

    效果：
    - 同一個 scope 的舊 session 被取代（狀態直接丟棄，不合併）

    返回：
        新 session 的分隊結果（空的隊伍）
    """
    try:
        rendered = engine.create_session(
            scope_id,
            payload.team_count,
            payload.capacity_per_team,
            payload.requester_id
        )
        return RenderedStateResponse.from_rendered(rendered)

    except Unauthorized as e:
        raise HTTPException(status_code=403, detail=str(e))
    except InvalidSessionConfig as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionBusy as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to create session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{scope_id}/members", response_model=PlacementResponse, status_code=201)
def register_member(
    scope_id: str,
    payload: MemberJoin,
    engine: AssignmentEngine = Depends(get_engine)
):
    """
    成員報名

    前置條件：
    - session 必須存在
    - 同一個 member_id 只能報名一次
    - 想當 keeper 時必須還有空的 keeper 位置

    返回：
        - team_index: 隊伍（從 0 開始）
        - slot: keeper / field / substitute
        - label: 例如 "1" 或 "substitute@1"
    """
    try:
        placement = engine.register_member(
            scope_id,
            payload.member_id,
            payload.display_name,
            payload.role
        )
        return PlacementResponse.from_placement(payload.member_id.strip(), placement)

    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    except (DuplicateRegistration, RoleUnavailable) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except (InvalidMemberData, InvalidStateTransition) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionBusy as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to register member: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{scope_id}/reshuffle", response_model=RenderedStateResponse)
def reshuffle(
    scope_id: str,
    payload: ReshuffleRequest,
    engine: AssignmentEngine = Depends(get_engine)
):
    """
    重新分隊（Organizer endpoint）

    效果：
    - roster 不變，所有人重新分配位置
    - 可以重複呼叫
    """
    try:
        rendered = engine.reshuffle(scope_id, payload.requester_id)
        return RenderedStateResponse.from_rendered(rendered)

    except Unauthorized as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    except InvalidStateTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionBusy as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to reshuffle: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{scope_id}", response_model=RenderedStateResponse)
def get_session_state(scope_id: str, engine: AssignmentEngine = Depends(get_engine)):
    """
    取得目前的分隊結果

    不取 lock，可能看到剛被取代的舊結果，前端用 revision 判斷是否需要重畫
    """
    try:
        return RenderedStateResponse.from_rendered(engine.get_rendered_state(scope_id))

    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    except Exception as e:
        logger.error(f"Failed to get session state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{scope_id}", response_model=ActionResponse)
def end_session(
    scope_id: str,
    requester_id: str = Query(...),
    engine: AssignmentEngine = Depends(get_engine)
):
    """
    結束 session（Organizer endpoint）

    返回：
        - status: "ok"
    """
    try:
        engine.end_session(scope_id, requester_id)
        return ActionResponse(status="ok")

    except Unauthorized as e:
        raise HTTPException(status_code=403, detail=str(e))
    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    except InvalidStateTransition as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SessionBusy as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to end session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")

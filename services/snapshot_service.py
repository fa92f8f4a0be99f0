"""
快照服務：TeamSession <-> JSON 可序列化的 dict

純計算邏輯。load_session 會完整檢查資料，任何不合法的快照都拋出 ValueError，
由 store 視為「沒有快照」處理，不會讓程式掛掉。

placement 不直接存，載入時由 teams 重建，確保兩者一致。
"""
from datetime import datetime
from typing import Any, Dict

from models import Member, Placement, Role, SessionStatus, Slot, Team, TeamSession

SNAPSHOT_VERSION = 1


def dump_session(session: TeamSession) -> Dict[str, Any]:
    return {
        "version": SNAPSHOT_VERSION,
        "scope_id": session.scope_id,
        "team_count": session.team_count,
        "capacity_per_team": session.capacity_per_team,
        "revision": session.revision,
        "display_handle": session.display_handle,
        "status": session.status.value,
        "created_at": session.created_at.isoformat(),
        "members": [
            {
                "id": member.id,
                "display_name": member.display_name,
                "desired_role": member.desired_role.value,
            }
            for member in session.roster.values()
        ],
        "teams": [
            {
                "keeper_id": team.keeper_id,
                "field_ids": list(team.field_ids),
                "substitute_ids": list(team.substitute_ids),
            }
            for team in session.teams
        ],
    }


def load_session(data: Dict[str, Any]) -> TeamSession:
    """
    從 dict 還原 TeamSession

    異常：
        ValueError: 版本不符、欄位缺漏或型別錯誤、違反 session 不變量
    """
    if not isinstance(data, dict):
        raise ValueError("snapshot must be a JSON object")
    if data.get("version") != SNAPSHOT_VERSION:
        raise ValueError(f"unsupported snapshot version: {data.get('version')!r}")

    try:
        team_count = int(data["team_count"])
        capacity = int(data["capacity_per_team"])
        roster = {}
        for raw in data["members"]:
            member = Member(
                id=str(raw["id"]),
                display_name=str(raw["display_name"]),
                desired_role=Role(raw["desired_role"]),
            )
            if member.id in roster:
                raise ValueError(f"duplicate member {member.id} in roster")
            roster[member.id] = member
        teams = [
            Team(
                keeper_id=raw.get("keeper_id"),
                field_ids=[str(member_id) for member_id in raw["field_ids"]],
                substitute_ids=[str(member_id) for member_id in raw["substitute_ids"]],
            )
            for raw in data["teams"]
        ]
        session = TeamSession(
            scope_id=str(data["scope_id"]),
            team_count=team_count,
            capacity_per_team=capacity,
            teams=teams,
            roster=roster,
            revision=int(data["revision"]),
            display_handle=data.get("display_handle"),
            status=SessionStatus(data.get("status", SessionStatus.OPEN.value)),
            created_at=datetime.fromisoformat(data["created_at"]),
        )
    except (KeyError, TypeError) as e:
        raise ValueError(f"malformed snapshot: {e}") from e

    if not 2 <= team_count <= 4 or capacity < 1 or len(teams) != team_count:
        raise ValueError("snapshot team layout is invalid")

    seen = set()
    for index, team in enumerate(teams):
        if len(team.field_ids) > capacity:
            raise ValueError(f"team {index} exceeds field capacity")
        slots = [(team.keeper_id, Slot.KEEPER)] if team.keeper_id else []
        slots += [(member_id, Slot.FIELD) for member_id in team.field_ids]
        slots += [(member_id, Slot.SUBSTITUTE) for member_id in team.substitute_ids]
        for member_id, slot in slots:
            if member_id in seen or member_id not in roster:
                raise ValueError(f"member {member_id} is duplicated or unknown")
            seen.add(member_id)
            roster[member_id].placement = Placement(team_index=index, slot=slot)

    if seen != set(roster):
        raise ValueError("some roster members have no placement")

    return session

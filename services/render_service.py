"""
顯示服務：把 TeamSession 轉成文字與結構

純函式：同樣的 session 狀態一定產生同樣的結果，與觸發的操作無關
"""
from dataclasses import dataclass, field
from typing import List, Optional

from models import TeamSession


@dataclass(frozen=True)
class TeamView:
    index: int
    keeper: Optional[str]
    field_players: List[str] = field(default_factory=list)
    substitutes: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RenderedState:
    scope_id: str
    revision: int
    team_count: int
    capacity_per_team: int
    member_count: int
    teams: List[TeamView]
    text: str


def render_session(session: TeamSession) -> RenderedState:
    """
    渲染 session

    文字格式：
        Teams for chat-42 (revision 3, 5 players)

        Team 1 | keeper 1/1 | field 2/4 | subs 0
          GK: Alice
          1. Bob
          2. Carol
    """
    def name_of(member_id: str) -> str:
        return session.roster[member_id].display_name

    views: List[TeamView] = []
    lines = [
        f"Teams for {session.scope_id} "
        f"(revision {session.revision}, {len(session.roster)} players)"
    ]

    for index, team in enumerate(session.teams):
        view = TeamView(
            index=index,
            keeper=name_of(team.keeper_id) if team.keeper_id else None,
            field_players=[name_of(member_id) for member_id in team.field_ids],
            substitutes=[name_of(member_id) for member_id in team.substitute_ids],
        )
        views.append(view)

        lines.append("")
        lines.append(
            f"Team {index + 1} | keeper {1 if view.keeper else 0}/1"
            f" | field {len(view.field_players)}/{session.capacity_per_team}"
            f" | subs {len(view.substitutes)}"
        )
        lines.append(f"  GK: {view.keeper or '-'}")
        for position, name in enumerate(view.field_players, start=1):
            lines.append(f"  {position}. {name}")
        if view.substitutes:
            lines.append(f"  Subs: {', '.join(view.substitutes)}")

    return RenderedState(
        scope_id=session.scope_id,
        revision=session.revision,
        team_count=session.team_count,
        capacity_per_team=session.capacity_per_team,
        member_count=len(session.roster),
        teams=views,
        text="\n".join(lines),
    )

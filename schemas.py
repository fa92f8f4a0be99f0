"""
API request / response schemas（pydantic）
"""
from typing import List, Optional

from pydantic import BaseModel, Field

from models import Placement, Role, Slot
from services.render_service import RenderedState


# ============ Requests ============

class SessionCreate(BaseModel):
    team_count: int = Field(..., ge=2, le=4)
    capacity_per_team: Optional[int] = Field(None, ge=1)
    requester_id: str


class MemberJoin(BaseModel):
    member_id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1)
    role: Role = Role.FIELD


class ReshuffleRequest(BaseModel):
    requester_id: str


# ============ Responses ============

class PlacementResponse(BaseModel):
    member_id: str
    team_index: int
    slot: Slot
    label: str

    @classmethod
    def from_placement(cls, member_id: str, placement: Placement) -> "PlacementResponse":
        return cls(
            member_id=member_id,
            team_index=placement.team_index,
            slot=placement.slot,
            label=placement.label,
        )


class TeamResponse(BaseModel):
    index: int
    keeper: Optional[str]
    field_players: List[str]
    substitutes: List[str]


class RenderedStateResponse(BaseModel):
    scope_id: str
    revision: int
    team_count: int
    capacity_per_team: int
    member_count: int
    teams: List[TeamResponse]
    text: str

    @classmethod
    def from_rendered(cls, rendered: RenderedState) -> "RenderedStateResponse":
        return cls(
            scope_id=rendered.scope_id,
            revision=rendered.revision,
            team_count=rendered.team_count,
            capacity_per_team=rendered.capacity_per_team,
            member_count=rendered.member_count,
            teams=[
                TeamResponse(
                    index=team.index,
                    keeper=team.keeper,
                    field_players=list(team.field_players),
                    substitutes=list(team.substitutes),
                )
                for team in rendered.teams
            ],
            text=rendered.text,
        )


class DisplayResponse(BaseModel):
    handle: str
    scope_id: Optional[str]
    content: str


class ActionResponse(BaseModel):
    status: str

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class DashboardFiltersModel(BaseModel):
    selected_sellers: Optional[List[str]] = None
    top_n: int = 15


class SelectionModel(BaseModel):
    selected_sellers: List[str] = Field(default_factory=list)


class GoalModel(BaseModel):
    value: float = Field(ge=0)


class SellerModel(BaseModel):
    name: str


class StateResponse(BaseModel):
    sellers: List[str]
    goal_sellers: List[str]
    selected_sellers: List[str]
    goals: Dict[str, float]
    loading: bool
    error: Optional[str] = None
    rows: int

"""
API Schemas - Pydantic models for request/response validation
"""
from typing import List, Optional
from pydantic import BaseModel, Field


class SwitchResponse(BaseModel):
    id: str
    name: str
    on: bool
    activated: bool
    normally_closed: bool
    stay_on: bool
    timer_persistent: bool
    remember_state: bool
    use_log_file: bool
    keywords: List[str]
    timer_duration_ms: int
    timer_end_time: Optional[int] = None
    timer_remaining_ms: Optional[int] = None
    log_monitoring: Optional[dict] = None


class SwitchOnRequest(BaseModel):
    on: bool = Field(..., description="New exposed value of the switch")


class SwitchOnResponse(BaseModel):
    id: str
    name: str
    on: bool


class TriggerResponse(BaseModel):
    id: str
    name: str
    on: bool
    changed: bool


class ReloadResponse(BaseModel):
    added: List[str]
    updated: List[str]
    removed: List[str]
    errors: List[str]

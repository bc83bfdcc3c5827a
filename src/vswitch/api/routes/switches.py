"""
Switches API Routes - bridge commands and queries for virtual switches

Switches are addressed by identity or by name.
"""
from typing import List
from fastapi import APIRouter, HTTPException, Depends

from vswitch.api import get_daemon_instance
from vswitch.api.schemas import (
    ReloadResponse,
    SwitchOnRequest,
    SwitchOnResponse,
    SwitchResponse,
    TriggerResponse,
)
from vswitch.exceptions import ConfigurationError, SwitchNotFoundError
from vswitch.logic.registry import SwitchRegistry
from vswitch.logic.switch_controller import SwitchController

router = APIRouter()


def get_registry() -> SwitchRegistry:
    daemon = get_daemon_instance()
    if daemon is None or daemon.registry is None:
        raise HTTPException(status_code=503, detail="Switch registry is not running")
    return daemon.registry


def _lookup(registry: SwitchRegistry, key: str) -> SwitchController:
    try:
        return registry.get(key)
    except SwitchNotFoundError:
        raise HTTPException(status_code=404, detail="Switch not found")


def _to_response(registry: SwitchRegistry, controller: SwitchController) -> SwitchResponse:
    config = controller.config
    tail = registry.log_tails.get(controller.switch_id)
    return SwitchResponse(
        id=controller.switch_id,
        name=controller.name,
        on=controller.state,
        activated=controller.activated,
        normally_closed=config.normally_closed,
        stay_on=config.stay_on,
        timer_persistent=config.timer_persistent,
        remember_state=config.remember_state,
        use_log_file=config.use_log_file,
        keywords=list(config.keywords),
        timer_duration_ms=config.timer_duration_ms(),
        timer_end_time=controller.timer_end_time,
        timer_remaining_ms=controller.timer_remaining_ms(),
        log_monitoring=tail.get_statistics() if tail is not None else None,
    )


@router.get("/", response_model=List[SwitchResponse])
async def list_switches(registry: SwitchRegistry = Depends(get_registry)):
    """List all configured switches"""
    return [_to_response(registry, c) for c in registry.controllers.values()]


@router.post("/reload", response_model=ReloadResponse)
async def reload_switches():
    """Re-read the configuration file and reconcile the registry"""
    daemon = get_daemon_instance()
    if daemon is None:
        raise HTTPException(status_code=503, detail="Daemon is not running")
    try:
        summary = await daemon.reload()
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return ReloadResponse(**summary.to_dict())


@router.get("/{key}", response_model=SwitchResponse)
async def get_switch(key: str, registry: SwitchRegistry = Depends(get_registry)):
    """Get a specific switch"""
    return _to_response(registry, _lookup(registry, key))


@router.get("/{key}/on", response_model=SwitchOnResponse)
async def get_switch_on(key: str, registry: SwitchRegistry = Depends(get_registry)):
    """Current exposed value of a switch"""
    controller = _lookup(registry, key)
    return SwitchOnResponse(id=controller.switch_id, name=controller.name, on=controller.get_on())


@router.put("/{key}/on", response_model=SwitchOnResponse)
async def set_switch_on(
    key: str,
    request: SwitchOnRequest,
    registry: SwitchRegistry = Depends(get_registry),
):
    """Set the exposed value of a switch"""
    controller = _lookup(registry, key)
    controller.set_on(request.on)
    return SwitchOnResponse(id=controller.switch_id, name=controller.name, on=controller.get_on())


@router.post("/{key}/trigger", response_model=TriggerResponse)
async def trigger_switch(key: str, registry: SwitchRegistry = Depends(get_registry)):
    """Trigger a switch as if one of its keywords matched"""
    controller = _lookup(registry, key)
    changed = controller.trigger()
    return TriggerResponse(
        id=controller.switch_id,
        name=controller.name,
        on=controller.get_on(),
        changed=changed,
    )

"""Rule management endpoints."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from filterpro.admin.auth import verify_token
from filterpro.console import AuthorityError, RuleConsole

router = APIRouter(prefix="/api", tags=["rules"])


class RuleBody(BaseModel):
    """Rule fields accepted from the console; omitted fields keep their value.

    ``id`` is honoured on create only; updates take the id from the path.
    """
    id: str | None = None
    name: str | None = None
    enabled: bool | None = None
    priority: int | None = None
    action: str | None = None
    target: dict[str, Any] | None = None
    condition: dict[str, Any] | None = None
    response: str | None = None


class ReorderBody(BaseModel):
    ids: list[str]


class ToggleBody(BaseModel):
    enabled: bool


def get_console(request: Request) -> RuleConsole:
    return request.app.state.console


async def _call(console: RuleConsole, event: str, payload: Any, authority: int) -> Any:
    try:
        return await console.dispatch(event, payload, authority=authority)
    except AuthorityError as e:
        raise HTTPException(status_code=403, detail=str(e))


@router.get("/rules")
async def list_rules(
    authority: int = Depends(verify_token),
    console: RuleConsole = Depends(get_console),
):
    """List rules in evaluation order."""
    return await _call(console, "filter-pro/list", None, authority)


@router.get("/targets")
async def list_targets(
    authority: int = Depends(verify_token),
    console: RuleConsole = Depends(get_console),
):
    """List plugins that rules can target."""
    return await _call(console, "filter-pro/targets", None, authority)


@router.get("/commands")
async def list_commands(
    authority: int = Depends(verify_token),
    console: RuleConsole = Depends(get_console),
):
    return await _call(console, "filter-pro/commands", None, authority)


@router.post("/rules", status_code=201)
async def create_rule(
    body: RuleBody,
    authority: int = Depends(verify_token),
    console: RuleConsole = Depends(get_console),
):
    return await _call(console, "filter-pro/create", body.model_dump(exclude_none=True), authority)


@router.post("/rules/reorder")
async def reorder_rules(
    body: ReorderBody,
    authority: int = Depends(verify_token),
    console: RuleConsole = Depends(get_console),
):
    """Reassign priorities in the given order."""
    return await _call(console, "filter-pro/reorder", body.ids, authority)


@router.put("/rules/{rule_id}")
async def update_rule(
    rule_id: str,
    body: RuleBody,
    authority: int = Depends(verify_token),
    console: RuleConsole = Depends(get_console),
):
    payload = {**body.model_dump(exclude_none=True), "id": rule_id}
    rule = await _call(console, "filter-pro/update", payload, authority)
    if rule is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule


@router.delete("/rules/{rule_id}")
async def delete_rule(
    rule_id: str,
    authority: int = Depends(verify_token),
    console: RuleConsole = Depends(get_console),
):
    if not await _call(console, "filter-pro/delete", rule_id, authority):
        raise HTTPException(status_code=404, detail="Rule not found")
    return {"ok": True, "id": rule_id}


@router.post("/rules/{rule_id}/toggle")
async def toggle_rule(
    rule_id: str,
    body: ToggleBody,
    authority: int = Depends(verify_token),
    console: RuleConsole = Depends(get_console),
):
    rule = await _call(console, "filter-pro/toggle", {"id": rule_id, "enabled": body.enabled}, authority)
    if rule is None:
        raise HTTPException(status_code=404, detail="Rule not found")
    return rule

# routers/builder.py — Stateless profile-builder helpers
# The wizard keeps its draft client-side; these endpoints apply the server's
# tier rules (navigation, list caps, completion) to whatever draft is sent.
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, field_validator

import builder
import list_manager
import tiers
from auth import CurrentUser, require_min_role
from models import UserRole

router = APIRouter(prefix="/api/v1/builder", tags=["Profile Builder"])

# Approved nominees and above
builder_user = require_min_role(UserRole.APPLICANT)


class TierScoped(BaseModel):
    tier: str

    @field_validator("tier")
    @classmethod
    def normalize_tier(cls, v):
        try:
            return tiers.normalize_tier(v).value
        except tiers.UnknownTierError as e:
            raise ValueError(str(e))


class NavigateRequest(TierScoped):
    step: builder.BuilderStep
    direction: Literal["next", "previous"]
    content: Dict[str, Any] = Field(default_factory=dict)


class ListOperationRequest(TierScoped):
    operation: Literal["add", "edit", "delete", "reorder", "toggle_visibility"]
    items: List[Dict[str, Any]] = Field(default_factory=list)
    item_id: Optional[str] = None
    item_fields: Dict[str, Any] = Field(default_factory=dict)
    new_index: Optional[int] = None


class CompletionRequest(TierScoped):
    content: Dict[str, Any] = Field(default_factory=dict)


def completion_report(tier, content: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    percentage = builder.completion_percentage(tier, content)
    return {
        "completion": percentage,
        "missing_fields": builder.missing_fields(tier, content),
        "publish_threshold": tiers.PUBLISH_THRESHOLD,
        "can_publish": percentage >= tiers.PUBLISH_THRESHOLD,
    }


@router.get("/config")
async def builder_config(
    tier: Optional[str] = None,
    user: CurrentUser = Depends(builder_user),
):
    """Steps and tier rules; defaults to the caller's assigned tier"""
    tier = tier or user.tier
    if not tier:
        raise HTTPException(status_code=400, detail="No tier assigned to this account")
    try:
        config = tiers.tier_config(tier)
    except tiers.UnknownTierError as e:
        raise HTTPException(status_code=400, detail=str(e))
    config["steps"] = [
        {"key": step.value, "title": builder.STEP_TITLES[step]} for step in builder.STEPS
    ]
    return config


@router.post("/navigate")
async def navigate(data: NavigateRequest, user: CurrentUser = Depends(builder_user)):
    if data.direction == "previous":
        outcome = builder.go_previous(data.step)
    else:
        outcome = builder.go_next(data.step, data.tier, data.content)
    return {"step": outcome.step.value, "moved": outcome.moved, "errors": outcome.errors}


@router.post("/lists/{section}")
async def apply_list_operation(
    section: str,
    data: ListOperationRequest,
    user: CurrentUser = Depends(builder_user),
):
    """Apply one list operation under the tier's cap for that section"""
    if section not in tiers.LIST_SECTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown section: {section}")

    if data.operation != "add" and not data.item_id:
        raise HTTPException(status_code=400, detail="item_id is required for this operation")

    try:
        if data.operation == "add":
            outcome = list_manager.add(data.items, section, data.tier, data.item_fields)
        elif data.operation == "edit":
            outcome = list_manager.edit(data.items, data.item_id, data.item_fields)
        elif data.operation == "delete":
            outcome = list_manager.delete(data.items, data.item_id)
        elif data.operation == "reorder":
            if data.new_index is None:
                raise HTTPException(status_code=400, detail="new_index is required for reorder")
            outcome = list_manager.reorder(data.items, data.item_id, data.new_index)
        else:
            outcome = list_manager.toggle_visibility(data.items, data.item_id)
    except list_manager.ItemNotFoundError:
        raise HTTPException(status_code=404, detail="Item not found")
    except list_manager.InvalidItemError as e:
        raise HTTPException(status_code=400, detail=f"Invalid {e.field_name}: {e.message}")

    return {
        "items": outcome.items,
        "notice": outcome.notice,
        "changed": outcome.changed,
        "limit": tiers.get_limit(data.tier, section),
    }


@router.post("/completion")
async def completion(data: CompletionRequest, user: CurrentUser = Depends(builder_user)):
    return completion_report(data.tier, data.content)

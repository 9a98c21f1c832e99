"""
Runtime configuration endpoints.

GET   /api/admin/config         current settings (credentials redacted)
PUT   /api/admin/config         partial update, persisted as overrides
POST  /api/admin/config/reset   back to environment defaults
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from errors import success_response
from services.app_services import AppServices
from utils.llm import clear_providers

from .dependencies import get_services, verify_admin_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(verify_admin_key)])

REDACTED_FIELDS = ("llm_api_key",)


class ConfigUpdate(BaseModel):
    """Settable fields; omitted or null fields are left alone."""

    mcp_mode: Optional[str] = None
    max_tool_iterations: Optional[int] = None
    enabled_plugins: Optional[str] = None
    allowed_html_tags: Optional[str] = None
    resend_tool_descriptors: Optional[bool] = None
    expose_site_mail: Optional[bool] = None
    context_max_age: Optional[int] = None
    llm_base_url: Optional[str] = None
    model_chat: Optional[str] = None
    llm_timeout: Optional[int] = None
    temperature: Optional[float] = None


def _redacted(config: Dict[str, Any]) -> Dict[str, Any]:
    return {k: ("***" if k in REDACTED_FIELDS and v else v) for k, v in config.items()}


@router.get("/config")
def get_config(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    """Get current runtime configuration."""
    return success_response(config=_redacted(services.config.to_dict()))


@router.put("/config")
def update_config(update: ConfigUpdate, services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    """
    Update runtime configuration.

    Changes take effect on the next request without restart.
    """
    updates = {k: v for k, v in update.model_dump().items() if v is not None}
    if not updates:
        return success_response(updated=[], message="No changes")

    for k, v in updates.items():
        if isinstance(v, str):
            updates[k] = v.strip()

    result = services.config.update(**updates)
    if not result["updated"]:
        raise HTTPException(status_code=400, detail=f"No valid changes: {', '.join(result['ignored'])}")

    if {"llm_base_url", "llm_timeout", "temperature"} & set(result["updated"]):
        clear_providers()
    if {"expose_site_mail", "context_max_age"} & set(result["updated"]):
        services.refresh_context_settings()

    services.config.save_overrides()
    return success_response(result)


@router.post("/config/reset")
def reset_config(services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    """Reset configuration to environment defaults."""
    result = services.config.reset_to_defaults()
    clear_providers()
    services.refresh_context_settings()
    return success_response(changes=result["changes"])

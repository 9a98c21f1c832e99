"""
Context Router - inspect and invalidate collected editor context.

GET  /api/ai-context/context?entity_type=node&entity_id=3
POST /api/ai-context/cache/invalidate  {"tags": ["node:3"]}
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from services.app_services import AppServices

from .dependencies import get_services, verify_admin_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai-context", tags=["context"])


class InvalidateRequest(BaseModel):
    tags: List[str] = []


@router.get("/context")
def get_context(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    prompt: Optional[str] = None,
    services: AppServices = Depends(get_services),
) -> Dict[str, Any]:
    """Collected context map; with a prompt, also the enriched prompt."""
    context = services.context_service.collect_context(
        {"entity_type": entity_type, "entity_id": entity_id}
    )
    result: Dict[str, Any] = {"context": context}
    if prompt:
        result["enriched_prompt"] = services.context_service.enrich_prompt(prompt, context)
    return result


@router.post("/cache/invalidate", dependencies=[Depends(verify_admin_key)])
def invalidate_cache(req: InvalidateRequest, services: AppServices = Depends(get_services)) -> Dict[str, Any]:
    """Drop cached context entries carrying any of the given tags."""
    removed = services.context_service.invalidate_tags(req.tags)
    logger.info(f"Context cache invalidated: tags={req.tags} removed={removed}")
    return {"success": True, "tags": req.tags, "removed": removed}

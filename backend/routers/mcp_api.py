"""
MCP API - tool discovery and execution over HTTP.

Thin layer over the shared ToolRegistry, for MCP server adapters and other
out-of-editor callers. Gated by a static API key (MCP_API_KEY env var). If
unset, all endpoints return 503 (disabled by default).

Auth: X-MCP-Key header checked against MCP_API_KEY.
"""

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from errors import UnknownToolError
from logging_config import log_tool
from services.app_services import AppServices

from .dependencies import get_services, verify_mcp_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mcp", tags=["mcp"])


class ExecuteRequest(BaseModel):
    tool: str
    args: Dict[str, Any] = {}


@router.get("/tools", dependencies=[Depends(verify_mcp_key)])
def mcp_tools(services: AppServices = Depends(get_services)):
    """Ready tools with their input schemas, in MCP discovery shape."""
    tools_list = []
    for descriptor in services.registry.describe_all():
        tool = services.registry.get_tool(descriptor.name)
        tools_list.append({
            "name": descriptor.name,
            "description": descriptor.description,
            "inputSchema": tool.input_schema,
            "plugin": tool.plugin,
            "required": descriptor.required_params,
        })
    return {"tools": tools_list, "count": len(tools_list)}


@router.post("/execute", dependencies=[Depends(verify_mcp_key)])
def mcp_execute(req: ExecuteRequest, services: AppServices = Depends(get_services)):
    """Run one tool by name and return its payload.

    Tool faults come back as ``{"success": false, "error": ...}`` with status
    200, matching what the model sees; only an unknown name is an HTTP error.
    """
    args = req.args

    # Clients with stale schemas may wrap the parameters in a single "kwargs" key
    if list(args.keys()) == ["kwargs"]:
        raw = args["kwargs"]
        if isinstance(raw, str):
            try:
                parsed = json.loads(raw)
                if isinstance(parsed, dict):
                    args = parsed
            except (ValueError, TypeError):
                pass
        elif isinstance(raw, dict):
            args = raw

    try:
        log_tool(logger, req.tool, "start", source="mcp")
        result = services.registry.execute(req.tool, args)
    except UnknownToolError as e:
        raise HTTPException(status_code=404, detail=e.message)
    log_tool(logger, req.tool, "end", success=result.success)

    if result.success:
        return {"success": True, "tool": req.tool, "result": result.data, "text": result.text}
    return {"success": False, "tool": req.tool, "error": result.error}

"""FastAPI dependencies shared by the routers."""

import os

from fastapi import Header, HTTPException, Request

from services.app_services import AppServices


def get_services(request: Request) -> AppServices:
    """The services container built at startup."""
    return request.app.state.services


def _verify_static_key(env_var: str, supplied: str, label: str) -> str:
    configured_key = os.environ.get(env_var, "")
    if not configured_key:
        raise HTTPException(status_code=503, detail=f"{label} is disabled ({env_var} not set)")
    if supplied != configured_key:
        raise HTTPException(status_code=401, detail=f"Invalid {label} key")
    return supplied


def verify_mcp_key(x_mcp_key: str = Header("", alias="X-MCP-Key")) -> str:
    """Validate the tool API key from the request header."""
    return _verify_static_key("MCP_API_KEY", x_mcp_key, "MCP API")


def verify_admin_key(x_admin_key: str = Header("", alias="X-Admin-Key")) -> str:
    """Validate the admin API key from the request header."""
    return _verify_static_key("ADMIN_API_KEY", x_admin_key, "Admin API")

"""
AI Context - editor assistant backend
FastAPI app: site-context enrichment and tool calling for an AI rich-text editor
"""

from contextlib import asynccontextmanager
import asyncio
import logging
import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from config import runtime_config
from errors import ProviderConfigurationError
from logging_config import setup_logging
from middleware import ContextEnrichmentMiddleware
from routers import admin_config, context, editor, mcp_api
from services.app_services import AppServices, build_services

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    services: AppServices = app.state.services
    logger.info(
        f"AI Context backend started: mode={services.config.mode.value}, "
        f"plugins={','.join(services.config.get_enabled_plugins()) or 'none'}, "
        f"tools={len(services.registry)}"
    )
    yield
    logger.info("AI Context backend stopped")


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


def create_app(services: Optional[AppServices] = None) -> FastAPI:
    """Build the application around a services container (built from runtime_config if omitted)."""
    app = FastAPI(
        title="AI Context",
        description="Site context and tool calling for the AI editor",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.services = services or build_services(runtime_config)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(ContextEnrichmentMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(editor.router)
    app.include_router(context.router)
    app.include_router(mcp_api.router)
    app.include_router(admin_config.router)

    @app.get("/health")
    async def health():
        """Health check - chat provider, context cache, search index."""
        services: AppServices = app.state.services
        checks = {}

        try:
            provider = services.chat_provider()
            healthy = await asyncio.to_thread(provider.is_healthy)
            checks["llm"] = "ok" if healthy else "down"
        except ProviderConfigurationError:
            checks["llm"] = "not_configured"
        except Exception:
            checks["llm"] = "down"

        cache_health = await asyncio.to_thread(services.cache.health_check)
        checks["cache"] = "ok" if cache_health.get("status") in ("connected", "fallback") else "down"

        checks["search"] = "ok" if services.search_tool.is_ready() else "down"

        all_ok = all(v == "ok" for v in checks.values())
        return {
            "status": "healthy" if all_ok else "degraded",
            "checks": checks,
            "cache_mode": cache_health.get("mode"),
            "mcp_mode": services.config.mode.value,
            "tools": [d.name for d in services.registry.describe_all()],
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.environ.get("HOST", "0.0.0.0"), port=int(os.environ.get("PORT", "8000")))

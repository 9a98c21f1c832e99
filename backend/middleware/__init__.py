"""
Middleware - request processing ahead of the routers.

- context_enrichment: direct-mode prompt rewriting with site context
"""

from .context_enrichment import ContextEnrichmentMiddleware

__all__ = ["ContextEnrichmentMiddleware"]

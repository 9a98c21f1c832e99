"""
Tests for context collection, caching and prompt enrichment.
"""

import json
from dataclasses import replace
from unittest.mock import MagicMock

import pytest

from services.site_data import SiteUser, coerce_entity_id
from tools.context import ContextService, redact_site_mail


NODE_2 = {"entity_type": "node", "entity_id": 2}


class TestCollectContext:
    def test_site_only_without_entity(self, context_service):
        assert context_service.collect_context() == {
            "site": {
                "name": "Taste Atlas",
                "slogan": "Food stories from around the world",
                "mail": "editors@example.com",
                "front": "/node/1",
            }
        }

    def test_node_metadata_and_terms(self, context_service):
        entity = context_service.collect_context(NODE_2)["entity"]

        assert entity == {
            "type": "node",
            "id": 2,
            "label": "Portuguese Cuisine Basics",
            "bundle": "article",
            "status": "published",
            "created": 2000,
            "changed": 2000,
            "author": "marta",
            "language": "en",
            "taxonomies": {"tags": ["Portuguese", "Seafood"]},
        }

    def test_string_entity_id(self, context_service):
        context = context_service.collect_context({"entity_type": "node", "entity_id": "3"})
        assert context["entity"]["label"] == "Pastel de Nata Recipe"

    def test_taxonomy_term(self, context_service):
        entity = context_service.collect_context({"entity_type": "taxonomy_term", "entity_id": 1})["entity"]
        assert entity == {"type": "taxonomy_term", "id": 1, "label": "Portuguese", "vocabulary": "tags"}

    def test_missing_entity_gives_site_only(self, context_service):
        context = context_service.collect_context({"entity_type": "node", "entity_id": 404})
        assert set(context) == {"site"}

    def test_unsupported_entity_type(self, context_service):
        assert "entity" not in context_service.collect_context({"entity_type": "user", "entity_id": 1})

    def test_non_numeric_id(self, context_service):
        assert "entity" not in context_service.collect_context({"entity_type": "node", "entity_id": "abc"})

    def test_access_denied_gives_no_entity(self, context_service):
        assert "entity" not in context_service.collect_context({"entity_type": "node", "entity_id": 5})

    def test_access_checked_even_when_cached(self, site, context_service):
        """The owner's cached view must not leak to another account."""
        site.account = SiteUser(id=7, name="marta")
        options = {"entity_type": "node", "entity_id": 5}
        assert context_service.collect_context(options)["entity"]["status"] == "unpublished"

        site.account = SiteUser()
        assert "entity" not in context_service.collect_context(options)

    def test_empty_site_config(self, site, config_store, cache):
        config_store.set("system.site", {})
        assert ContextService(site, cache).collect_context() == {}


class TestCaching:
    def test_entity_served_from_cache(self, repository, context_service):
        context_service.collect_context(NODE_2)
        # In-place change without a save: nothing invalidates the entry
        repository.load("node", 2).label = "Renamed"
        assert context_service.collect_context(NODE_2)["entity"]["label"] == "Portuguese Cuisine Basics"

    def test_save_invalidates_entity(self, repository, context_service):
        context_service.collect_context(NODE_2)
        repository.save(replace(repository.load("node", 2), label="Renamed"))
        assert context_service.collect_context(NODE_2)["entity"]["label"] == "Renamed"

    def test_term_save_invalidates_taxonomy(self, repository, context_service):
        context_service.collect_context(NODE_2)
        repository.save(replace(repository.load("taxonomy_term", 3), label="Fish"))
        assert context_service.collect_context(NODE_2)["entity"]["taxonomies"]["tags"] == ["Portuguese", "Fish"]

    def test_config_save_invalidates_site(self, config_store, context_service):
        context_service.collect_context()
        config_store.set("system.site", {"name": "World Kitchen"})
        assert context_service.collect_context()["site"]["name"] == "World Kitchen"

    def test_explicit_tag_invalidation(self, repository, context_service):
        context_service.collect_context(NODE_2)
        repository.load("node", 2).label = "Renamed"
        assert context_service.invalidate_tags(["node:2"]) == 2
        assert context_service.collect_context(NODE_2)["entity"]["label"] == "Renamed"


class TestCachePolicy:
    """Each concern is stored under its own key, tags and max age."""

    @pytest.fixture
    def spied_cache(self):
        cache = MagicMock()
        cache.get.return_value = None
        return cache

    def test_stored_entries(self, site, spied_cache):
        ContextService(site, spied_cache).collect_context(NODE_2)

        stored = {c.args[0]: (tuple(c.kwargs["tags"]), c.kwargs["max_age"]) for c in spied_cache.set.call_args_list}
        assert stored == {
            "ai_context:site": (("config:system.site",), 86400),
            "ai_context:node:2": (("ai_context:node", "node:2"), 3600),
            "ai_context:taxonomy:2": (("ai_context:taxonomy", "node:2", "taxonomy_term_list"), 21600),
        }

    def test_term_entry(self, site, spied_cache):
        ContextService(site, spied_cache).collect_context({"entity_type": "taxonomy_term", "entity_id": 1})

        spied_cache.set.assert_any_call(
            "ai_context:taxonomy_term:1",
            {"type": "taxonomy_term", "id": 1, "label": "Portuguese", "vocabulary": "tags"},
            max_age=3600,
            tags=("ai_context:taxonomy_term", "taxonomy_term:1"),
        )

    def test_entity_max_age_is_configurable(self, site, spied_cache):
        ContextService(site, spied_cache, entity_max_age=60).collect_context(NODE_2)

        ages = {c.args[0]: c.kwargs["max_age"] for c in spied_cache.set.call_args_list}
        assert ages["ai_context:node:2"] == 60
        assert ages["ai_context:taxonomy:2"] == 21600


class TestEntityIds:
    @pytest.mark.parametrize("raw", [float("inf"), float("nan"), "abc", None, True, [2]])
    def test_unusable_ids(self, raw):
        assert coerce_entity_id(raw) is None

    def test_infinite_id_from_json(self, context_service):
        options = json.loads('{"entity_type": "node", "entity_id": Infinity}')
        assert set(context_service.collect_context(options)) == {"site"}


class TestTransforms:
    def test_redact_site_mail(self, site, cache):
        service = ContextService(site, cache, transforms=[redact_site_mail])
        site_context = service.collect_context()["site"]
        assert "mail" not in site_context
        assert site_context["name"] == "Taste Atlas"

    def test_redaction_does_not_touch_cache(self, site, cache):
        ContextService(site, cache, transforms=[redact_site_mail]).collect_context()
        assert cache.get("ai_context:site")["mail"] == "editors@example.com"

    def test_failing_transform_is_skipped(self, site, cache):
        def broken(context, options):
            raise RuntimeError("boom")

        service = ContextService(site, cache, transforms=[broken])
        assert service.collect_context()["site"]["name"] == "Taste Atlas"

    def test_services_follow_expose_site_mail(self, services):
        assert "mail" not in services.context_service.collect_context()["site"]
        services.config.expose_site_mail = True
        services.refresh_context_settings()
        assert services.context_service.collect_context()["site"]["mail"] == "editors@example.com"


class TestEnrichPrompt:
    def test_format(self, context_service):
        context = context_service.collect_context(NODE_2)
        enriched = context_service.enrich_prompt("Write an intro", context)

        assert enriched == (
            "DRUPAL SITE CONTEXT:\n"
            "Site: Taste Atlas\n"
            "Slogan: Food stories from around the world\n"
            "Content: Portuguese Cuisine Basics (node)\n"
            "Type: article\n"
            "Tags: Portuguese, Seafood\n"
            "\n"
            "USER REQUEST:\n"
            "Write an intro"
        )

    def test_context_keys_subset(self, context_service):
        context = context_service.collect_context(NODE_2)
        enriched = context_service.enrich_prompt("Hi", context, context_keys=["site"])
        assert "Content:" not in enriched
        assert enriched.endswith("USER REQUEST:\nHi")

    def test_empty_context_leaves_prompt(self, context_service):
        assert context_service.enrich_prompt("Hi", {}) == "Hi"

    def test_nothing_printable_leaves_prompt(self, context_service):
        assert context_service.enrich_prompt("Hi", {"site": {"mail": "x@example.com"}}) == "Hi"

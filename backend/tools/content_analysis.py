"""
Content Analysis Tools - deterministic heuristics over site content.

- get_related_content: same-type items sharing taxonomy terms with a node
- suggest_internal_links: keyword-seeded title matches for a draft text
- analyze_content_seo: title/meta/length/keyword checks for a draft
- get_content_style: title patterns from recently changed items of a type
"""

import logging
import re
from collections import Counter
from typing import Any, Dict, List, Optional

from errors import NotFoundError, ValidationError, handle_tool_errors
from services.search_index import strip_tags
from services.site_data import NODE, SiteServices
from tools.arguments import bounded_int, optional_int

logger = logging.getLogger(__name__)

# SEO thresholds
TITLE_OPTIMAL = (50, 60)
META_OPTIMAL = (150, 160)
WORDS_GOOD = 500
WORDS_ACCEPTABLE = 300

SEO_STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by",
})

KEYWORD_POOL = 10
LINK_SEEDS = 5
MIN_SEED_LENGTH = 4
SAMPLE_TITLES = 5

_WORD_RE = re.compile(r"[a-z]+(?:['-][a-z]+)*")


def extract_words(text: str) -> List[str]:
    """Lowercase words of the tag-stripped text."""
    return _WORD_RE.findall(strip_tags(text).lower())


def word_count(text: str) -> int:
    return len(re.findall(r"[A-Za-z]+(?:['-][A-Za-z]+)*", text))


def rank_keywords(words: List[str], top: int) -> List[str]:
    """Most frequent words first; ties keep first-seen order."""
    return [word for word, _ in Counter(words).most_common(top)]


def analyze_seo(title: str, body: str, meta_description: str = "") -> Dict[str, Any]:
    """SEO report for a draft. Pure function of its inputs."""
    title = title or ""
    meta_description = meta_description or ""
    body_text = strip_tags(body or "")

    title_length = len(title)
    body_words = word_count(body_text)
    meta_length = len(meta_description)

    if body_words >= WORDS_GOOD:
        quality = "good"
    elif body_words >= WORDS_ACCEPTABLE:
        quality = "acceptable"
    else:
        quality = "short"

    words = [w for w in extract_words(body_text) if w not in SEO_STOP_WORDS]
    counts = Counter(words)
    top_keywords = dict(counts.most_common(KEYWORD_POOL))

    suggestions = []
    if title_length < TITLE_OPTIMAL[0]:
        suggestions.append("Title is too short. Aim for 50-60 characters.")
    elif title_length > TITLE_OPTIMAL[1]:
        suggestions.append("Title is too long. Keep it under 60 characters.")
    if not meta_description:
        suggestions.append("Add a meta description (150-160 characters).")
    if body_words < WORDS_ACCEPTABLE:
        suggestions.append("Content is short. Consider adding more details (aim for 500+ words).")

    return {
        "title": {
            "length": title_length,
            "word_count": word_count(title),
            "optimal": TITLE_OPTIMAL[0] <= title_length <= TITLE_OPTIMAL[1],
        },
        "content": {
            "word_count": body_words,
            "character_count": len(body_text),
            "quality": quality,
        },
        "meta_description": {
            "present": bool(meta_description),
            "length": meta_length,
            "optimal": META_OPTIMAL[0] <= meta_length <= META_OPTIMAL[1],
        },
        "keywords": {
            "top_keywords": top_keywords,
            "total_words": len(words),
            "unique_words": len(counts),
        },
        "suggestions": suggestions,
    }


class ContentAnalysisTools:
    """Site-bound content heuristics exposed as tools."""

    def __init__(self, site: SiteServices):
        self.site = site

    @handle_tool_errors("get_related_content")
    def get_related_content(self, node_id: Any = None, content_type: Optional[str] = None, limit: Any = 5) -> Dict[str, Any]:
        nid = optional_int(node_id, "node_id")
        if nid is None:
            raise ValidationError("node_id parameter is required", parameter="node_id")
        limit = bounded_int(limit, 5, 1, 20, "limit")

        node = self.site.load_visible(NODE, nid)
        if node is None:
            raise NotFoundError("Node not found", resource_type="node", resource_id=nid)

        term_ids = node.referenced_term_ids()
        bundle = content_type or node.bundle

        candidates = self.site.repository.find(
            NODE,
            bundle=bundle,
            published=True,
            exclude_ids=[nid],
            term_ids=term_ids or None,
            sort="changed",
        )
        related = self.site.visible(candidates)[:limit]

        return {
            "related_content": [
                {
                    "id": item.id,
                    "title": item.label,
                    "type": item.bundle,
                    "url": item.url,
                    "changed": item.changed,
                }
                for item in related
            ],
            "count": len(related),
            "based_on": {
                "taxonomies": f"{len(term_ids)} shared terms",
                "content_type": bundle,
            },
        }

    @handle_tool_errors("suggest_internal_links")
    def suggest_internal_links(self, text: str = "", current_node_id: Any = None, max_suggestions: Any = 3) -> Dict[str, Any]:
        if not text or not str(text).strip():
            raise ValidationError("text parameter is required", parameter="text")
        max_suggestions = bounded_int(max_suggestions, 3, 1, 10, "max_suggestions")
        current = optional_int(current_node_id, "current_node_id")

        keywords = rank_keywords(extract_words(str(text)), KEYWORD_POOL)
        seeds = keywords[:LINK_SEEDS]
        usable = [seed for seed in seeds if len(seed) >= MIN_SEED_LENGTH]

        suggestions = []
        if usable:
            matches = self.site.repository.find(
                NODE,
                published=True,
                exclude_ids=[current] if current is not None else (),
                title_contains_any=usable,
                sort="id",
                limit=max_suggestions * 2,
            )
            for node in self.site.visible(matches)[:max_suggestions]:
                suggestions.append({
                    "title": node.label,
                    "url": node.url,
                    "anchor_text_suggestion": node.label,
                    "relevance": "Matched keywords in title",
                    "node_type": node.bundle,
                })

        return {
            "suggestions": suggestions,
            "count": len(suggestions),
            "analyzed_keywords": seeds,
        }

    @handle_tool_errors("analyze_content_seo")
    def analyze_content_seo(self, title: str = "", body: str = "", meta_description: str = "") -> Dict[str, Any]:
        if not title and not body:
            raise ValidationError("title and body parameters are required", parameter="title")
        return analyze_seo(str(title or ""), str(body or ""), str(meta_description or ""))

    @handle_tool_errors("get_content_style")
    def get_content_style(self, content_type: Optional[str] = None, sample_size: Any = 10) -> Dict[str, Any]:
        content_type = content_type or "article"
        sample_size = bounded_int(sample_size, 10, 3, 20, "sample_size")

        recent = self.site.repository.find(NODE, bundle=content_type, published=True, sort="changed")
        samples = self.site.visible(recent)[:sample_size]

        lengths = [len(node.label) for node in samples]
        return {
            "content_type": content_type,
            "sample_size": len(samples),
            "patterns": {
                "average_title_length": sum(lengths) // len(lengths) if lengths else 0,
                "title_range": {
                    "min": min(lengths) if lengths else 0,
                    "max": max(lengths) if lengths else 0,
                },
            },
            "common_topics": [],
            "tone_indicators": [],
            "sample_titles": [node.label for node in samples[:SAMPLE_TITLES]],
        }

"""System prompts and prompt preparation for editor requests."""

import re
from typing import Iterable, Optional

FULL_MODE_SYSTEM_PROMPT = (
    "You are a helpful website assistant for content writing and editing. "
    "When the user asks for content with internal links, you MUST use the search_drupal_content tool "
    "to find real content on the site. "
    "Make comprehensive searches that cover ALL topics mentioned in the user request. "
    'If the user mentions multiple topics (e.g., "Portuguese and French cuisine"), consider making '
    "separate searches for each topic to ensure complete coverage. "
    "Always use the exact URLs returned by the tool - never invent URLs. "
    "Create meaningful anchor text based on the actual article titles returned."
)

DIRECT_MODE_SYSTEM_PROMPT = "You are a helpful website assistant for content writing and editing."

MEDIA_RESTRICTION = "Do not try to use any image, video, or audio tags. Do not use backticks or ```html indicator. "


def parse_allowed_tags(allowed: Optional[str]) -> list:
    """Split a configured tag list ("<p> <a href> <strong>" or "p,a,strong") into tags."""
    if not allowed:
        return []
    if "<" in allowed:
        return re.findall(r"<[^>]+>", allowed)
    return allowed.replace(",", " ").split()


def prepare_prompt(prompt: str, allowed_tags: Iterable[str] = ()) -> str:
    """Prefix the user's prompt with the editor's output-format rules."""
    tags = list(allowed_tags)
    if tags:
        fmt = f"Format the answer using ONLY the following HTML tags: {' '.join(tags)}. "
    else:
        fmt = "Format the answer using basic HTML formatting tags. "
    return MEDIA_RESTRICTION + fmt + prompt

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field


logger = logging.getLogger("monitor-selectors")


# Each list is tried in order; the first hit wins. The platform serves the same
# content under several markups at once, so order encodes preference, not exclusivity.
DEFAULT_CONTAINERS = [
    "div.feed-shared-update-v2",
    "li.profile-creator-shared-feed-update__container",
    "li[data-test-update-container]",
    "div[data-urn*='activity']",
    "div[data-urn]",
    "article.feed-shared-update-v2",
    "article",
    ".occludable-update",
    "[data-id^='urn:li:activity']",
]

DEFAULT_CONTENT = [
    ".feed-shared-update-v2__description",
    ".update-components-text",
    ".feed-shared-inline-show-more-text",
    ".break-words",
    ".feed-shared-text",
    "span[dir='ltr']",
    "div[dir='ltr']",
]

DEFAULT_LOGIN_SIGNALS: Dict[str, List[str]] = {
    "global_nav": ["nav.global-nav", "#global-nav", "header.global-nav"],
    "profile_affordance": [
        "[data-control-name='nav.settings']",
        "button.global-nav__primary-link-me-menu-trigger",
        "img.global-nav__me-photo",
    ],
    "search_control": ["input[placeholder*='Search']", "input.search-global-typeahead__input"],
    "messaging_affordance": ["[data-control-name='nav.messaging']", "a[href*='/messaging/']"],
    "feed_content": [".feed-shared-update-v2", "div[data-urn*='activity']"],
}


class SelectorProfile(BaseModel):
    containers: List[str] = Field(default_factory=lambda: list(DEFAULT_CONTAINERS))
    content: List[str] = Field(default_factory=lambda: list(DEFAULT_CONTENT))
    timestamp: List[str] = Field(default_factory=lambda: ["time[datetime]", "[datetime]", "time"])
    post_links: List[str] = Field(default_factory=lambda: ["a[href*='/posts/']"])
    activity_links: List[str] = Field(
        default_factory=lambda: [
            "a[href*='/feed/update/']",
            "a[href*='activity']",
            "a[data-control-name='update']",
        ]
    )
    reactions: List[str] = Field(
        default_factory=lambda: [
            "button[aria-label*='reaction']",
            "[aria-label*='reactions']",
            ".social-details-social-counts__reactions-count",
        ]
    )
    comments: List[str] = Field(
        default_factory=lambda: [
            "button[aria-label*='comment']",
            "[aria-label*='comment']",
            ".social-details-social-counts__comments",
        ]
    )
    social_counts: List[str] = Field(default_factory=lambda: [".social-details-social-counts"])
    media_images: List[str] = Field(default_factory=lambda: ["img[src*='media']", ".update-components-image img"])
    media_videos: List[str] = Field(default_factory=lambda: ["video"])
    login_signals: Dict[str, List[str]] = Field(default_factory=lambda: {k: list(v) for k, v in DEFAULT_LOGIN_SIGNALS.items()})
    login_identifier: str = "#username"
    login_secret: str = "#password"
    login_submit: str = "button[type='submit']"


def load_selector_profile(path: str = "") -> SelectorProfile:
    """Default profile, with any lists from the JSON file at ``path`` replacing the defaults."""
    if not path:
        return SelectorProfile()
    file_path = Path(path)
    if not file_path.exists():
        logger.warning("Selector profile %s not found, using defaults", file_path)
        return SelectorProfile()
    data = json.loads(file_path.read_text(encoding="utf-8"))
    profile = SelectorProfile.model_validate(data)
    logger.info("Loaded selector profile from %s (%d container selectors)", file_path, len(profile.containers))
    return profile

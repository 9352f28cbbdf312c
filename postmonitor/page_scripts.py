"""In-page scripts, addressed by id.

The pipeline never touches DOM objects directly: every read of the rendered
page goes through ``PageDriver.evaluate(script_id, arg)`` and comes back as
plain JSON.
"""

from __future__ import annotations

from typing import Dict


STEALTH_INIT_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => false });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
"""


LOGIN_SIGNALS = """
(signals) => {
  const present = (selectors) => selectors.some((sel) => {
    try { return document.querySelector(sel) !== null; } catch (e) { return false; }
  });
  const out = {};
  for (const [key, selectors] of Object.entries(signals)) {
    out[key] = present(selectors);
  }
  out.url = window.location.href;
  return out;
}
"""


HAS_ELEMENT = """
(selector) => {
  try { return document.querySelector(selector) !== null; } catch (e) { return false; }
}
"""


SCROLL_VIEWPORT = """
() => {
  window.scrollBy(0, window.innerHeight);
  return window.scrollY;
}
"""


# Collects raw per-container material for the first ``maxItems`` containers of the
# first container selector that matches; field choice happens in Python.
COLLECT_POST_CONTAINERS = """
(args) => {
  const p = args.profile;
  const textOf = (el) => (el && (el.innerText || el.textContent) || '').trim();
  const first = (root, selectors) => {
    for (const sel of selectors) {
      try {
        const el = root.querySelector(sel);
        if (el) return el;
      } catch (e) {}
    }
    return null;
  };

  let containers = [];
  let matched = '';
  for (const sel of p.containers) {
    try { containers = Array.from(document.querySelectorAll(sel)); } catch (e) { containers = []; }
    if (containers.length > 0) { matched = sel; break; }
  }

  const rows = [];
  for (const node of containers.slice(0, args.maxItems)) {
    const contentCandidates = p.content.map((sel) => {
      try { return textOf(node.querySelector(sel)); } catch (e) { return ''; }
    });
    const timeEl = first(node, p.timestamp);
    const hrefOf = (selectors) => {
      const el = first(node, selectors);
      return el ? (el.href || el.getAttribute('href') || '') : '';
    };
    const labelOf = (selectors) => {
      const el = first(node, selectors);
      return el ? (el.getAttribute('aria-label') || textOf(el)) : '';
    };
    const image = first(node, p.media_images);
    const video = first(node, p.media_videos);
    rows.push({
      content_candidates: contentCandidates,
      datetime: timeEl ? (timeEl.getAttribute('datetime') || '') : '',
      time_text: timeEl ? textOf(timeEl) : '',
      post_link: hrefOf(p.post_links),
      activity_link: hrefOf(p.activity_links),
      urn: node.getAttribute('data-urn') || node.getAttribute('data-id') || '',
      reaction_label: labelOf(p.reactions),
      comment_label: labelOf(p.comments),
      social_counts_text: textOf(first(node, p.social_counts)),
      has_image: image !== null,
      image_src: image ? (image.currentSrc || image.src || '') : '',
      video_poster: video ? (video.poster || '') : '',
      has_video: video !== null,
    });
  }
  return { matched_selector: matched, total_containers: containers.length, rows };
}
"""


SCRIPTS: Dict[str, str] = {
    "login_signals": LOGIN_SIGNALS,
    "has_element": HAS_ELEMENT,
    "scroll_viewport": SCROLL_VIEWPORT,
    "collect_post_containers": COLLECT_POST_CONTAINERS,
}


def get_script(script_id: str) -> str:
    try:
        return SCRIPTS[script_id]
    except KeyError:
        raise KeyError(f"unknown_page_script:{script_id}") from None

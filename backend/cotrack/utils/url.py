"""URL utility functions."""
import urllib.parse
from typing import Optional


def extract_domain(url: Optional[str]) -> str:
    """Host part of a URL, or "" when it has none."""
    if not url:
        return ""
    try:
        host = urllib.parse.urlparse(url).hostname or ""
    except ValueError:
        return ""
    return host

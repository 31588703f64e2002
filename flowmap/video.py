import re
from typing import Optional

LOOM_SHARE = re.compile(r'loom\.com/share/([a-zA-Z0-9]+)')
YOUTUBE_WATCH = re.compile(r'(?:youtube\.com/watch\?v=|youtu\.be/)([a-zA-Z0-9_-]+)')


def parse_embed_url(url: Optional[str]) -> Optional[str]:
    """
    Turn a Loom or YouTube share link into an embeddable URL.

    https://www.loom.com/share/abc   -> https://www.loom.com/embed/abc
    https://youtube.com/watch?v=ID   -> https://www.youtube.com/embed/ID
    https://youtu.be/ID              -> https://www.youtube.com/embed/ID
    anything containing /embed/      -> unchanged

    Returns None for blank or unrecognized input. Never raises.
    """
    if not isinstance(url, str):
        return None
    trimmed = url.strip()
    if not trimmed:
        return None

    match = LOOM_SHARE.search(trimmed)
    if match:
        return f"https://www.loom.com/embed/{match.group(1)}"

    match = YOUTUBE_WATCH.search(trimmed)
    if match:
        return f"https://www.youtube.com/embed/{match.group(1)}"

    if '/embed/' in trimmed:
        return trimmed

    return None

"""Link embed helpers: provider inference and video id extraction."""

import re
from typing import Optional


_IMAGE_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp|bmp|svg)$", re.IGNORECASE)
_VIDEO_RE = re.compile(r"\.(mp4|webm|ogg|mov)$", re.IGNORECASE)
_YOUTUBE_ID_RE = re.compile(r"^.*(youtu.be/|v/|u/\w/|embed/|watch\?v=|&v=)([^#&?]*).*")

FILE_EXTENSIONS = {"pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "zip", "rar", "txt", "csv"}

# Checked in order; the first matching fragment wins.
SERVICE_PATTERNS = [
    ("youtube", ("youtube.com", "youtu.be")),
    ("twitter", ("twitter.com", "x.com")),
    ("github", ("github.com",)),
    ("spotify", ("spotify.com",)),
    ("figma", ("figma.com",)),
    ("loom", ("loom.com",)),
    ("vimeo", ("vimeo.com",)),
    ("codepen", ("codepen.io",)),
    ("map", ("maps.google.com", "google.com/maps")),
    ("instagram", ("instagram.com",)),
    ("reddit", ("reddit.com",)),
]


def infer_provider(url: str) -> str:
    """Infer the embed provider tag for a URL."""
    lower_url = url.lower()

    if _IMAGE_RE.search(lower_url):
        return "image"
    if _VIDEO_RE.search(lower_url):
        return "video"

    for provider, fragments in SERVICE_PATTERNS:
        if any(fragment in lower_url for fragment in fragments):
            return provider

    extension = lower_url.rsplit(".", 1)[-1]
    if extension in FILE_EXTENSIONS:
        return "file"

    return "generic"


def youtube_video_id(url: str) -> Optional[str]:
    """Return the 11-character YouTube video id in ``url``, or None."""
    match = _YOUTUBE_ID_RE.match(url)
    if match and len(match.group(2)) == 11:
        return match.group(2)
    return None

"""
Channel enrichment: best-logo selection and quality-annotated display names.
"""
import re
from typing import Iterable, Optional, Sequence
from urllib.parse import urlsplit

from tvcatalog.models.channel import Channel, Feed, Logo, Stream

# Lower is better; unknown formats rank last
FORMAT_PRIORITY = {
    "svg": 0,
    "png": 1,
    "jpg": 2,
    "jpeg": 2,
    "webp": 3,
    "gif": 4,
}
UNKNOWN_FORMAT_PRIORITY = 5

TARGET_LOGO_SIZE = 150

# Highest threshold first
QUALITY_THRESHOLDS = (
    (2160, "4K"),
    (1440, "1440p"),
    (1080, "1080p"),
    (720, "720p"),
    (480, "480p"),
    (360, "360p"),
)

QUALITY_IN_NAME = re.compile(r"\((\d+p|HD|FHD|4K)\)", re.IGNORECASE)


def logo_extension(url: str) -> str:
    """Lowercase file extension of the url path ('' when there is none)."""
    path = urlsplit(url).path or url
    tail = path.rsplit("/", 1)[-1]
    if "." not in tail:
        return ""
    return tail.rsplit(".", 1)[-1].lower()


def format_priority(logo: Logo) -> int:
    priority = FORMAT_PRIORITY.get(logo_extension(logo.url))
    if priority is None and logo.format:
        priority = FORMAT_PRIORITY.get(logo.format.lower())
    return UNKNOWN_FORMAT_PRIORITY if priority is None else priority


def size_distance(logo: Logo, target: int = TARGET_LOGO_SIZE) -> int:
    width = logo.width or target
    height = logo.height or target
    return abs(width - target) + abs(height - target)


class LogoRanker:
    """Picks the single best logo for a channel."""

    def __init__(
        self,
        fallback_url: str,
        problematic_domains: Iterable[str] = (),
        target_size: int = TARGET_LOGO_SIZE,
    ):
        self.fallback_url = fallback_url
        self.problematic_domains = [d.lower() for d in problematic_domains]
        self.target_size = target_size

    def sort_key(self, logo: Logo, master_feeds: set[str]) -> tuple[int, int, int]:
        is_master = bool(logo.feed) and logo.feed in master_feeds
        return (
            0 if is_master else 1,
            format_priority(logo),
            size_distance(logo, self.target_size),
        )

    def rank(self, logos: Sequence[Logo], feeds: Sequence[Feed]) -> list[Logo]:
        """Order candidate logos best first. Ties keep their input order."""
        master_feeds = {feed.id for feed in feeds if feed.is_main}
        return sorted(logos, key=lambda logo: self.sort_key(logo, master_feeds))

    def is_problematic(self, url: str) -> bool:
        lowered = url.lower()
        return any(domain in lowered for domain in self.problematic_domains)

    def best_logo(self, logos: Sequence[Logo], feeds: Sequence[Feed]) -> str:
        """Url of the best logo, or the fallback url when none is usable."""
        if not logos:
            return self.fallback_url
        url = self.rank(logos, feeds)[0].url
        if not url or self.is_problematic(url):
            return self.fallback_url
        return url


def best_stream(streams: Sequence[Stream]) -> Stream:
    """Stream with the greatest height; the earliest one wins ties."""
    best = streams[0]
    for stream in streams[1:]:
        if (stream.height or 0) > (best.height or 0):
            best = stream
    return best


def quality_for_height(height: Optional[int]) -> Optional[str]:
    height = height or 0
    for threshold, label in QUALITY_THRESHOLDS:
        if height >= threshold:
            return label
    return None


def quality_label(streams: Sequence[Stream]) -> Optional[str]:
    """Quality label from the best stream's height, or from its title."""
    if not streams:
        return None
    stream = best_stream(streams)
    label = quality_for_height(stream.height)
    if not label and stream.title:
        match = QUALITY_IN_NAME.search(stream.title)
        if match:
            label = match.group(1)
    return label


def enriched_name(channel: Channel, streams: Sequence[Stream]) -> str:
    """Channel name with its quality appended, e.g. 'Arte (1080p)'."""
    label = quality_label(streams)
    return f"{channel.name} ({label})" if label else channel.name

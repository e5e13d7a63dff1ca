"""
M3U Parser Service.
Turns playlist text into a category view shaped like the joined catalog views.
"""
import re
import logging
from typing import Iterator, Optional

from tvcatalog.models.channel import EnrichedChannel, Stream
from tvcatalog.models.metadata import Category
from tvcatalog.models.views import CatalogStats, GroupedView, ViewType
from tvcatalog.services.text import collation_key

logger = logging.getLogger(__name__)

EXTINF_PREFIX = "#EXTINF:"

ATTRIBUTE_PATTERNS = {
    "group": re.compile(r'group-title="([^"]*)"'),
    "logo": re.compile(r'tvg-logo="([^"]*)"'),
    "country": re.compile(r'tvg-country="([^"]*)"'),
    "language": re.compile(r'tvg-language="([^"]*)"'),
    "tvg_id": re.compile(r'tvg-id="([^"]*)"'),
    "tvg_name": re.compile(r'tvg-name="([^"]*)"'),
}


def _utf16_units(text: str) -> Iterator[int]:
    for ch in text:
        code = ord(ch)
        if code > 0xFFFF:
            code -= 0x10000
            yield 0xD800 + (code >> 10)
            yield 0xDC00 + (code & 0x3FF)
        else:
            yield code


def channel_id(name: str, group: str, url: str) -> str:
    """
    Stable id for a playlist entry.

    Rolling ``hash * 31 + unit`` over the UTF-16 units of ``name_group_url``,
    wrapped to a signed 32-bit integer, absolute value, base 36.
    """
    value = 0
    for unit in _utf16_units(f"{name}_{group}_{url}"):
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return _base36(abs(value))


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def sanitize_name(name: str) -> str:
    """Strip surrounding pipes and collapse whitespace."""
    name = re.sub(r"^\s*\|\s*", "", name)
    name = re.sub(r"\s*\|\s*$", "", name)
    return re.sub(r"\s+", " ", name).strip()


def extract_attributes(line: str) -> dict[str, str]:
    """Extract the known key="value" attributes of an EXTINF line."""
    attributes = {}
    for key, pattern in ATTRIBUTE_PATTERNS.items():
        match = pattern.search(line)
        if match:
            attributes[key] = match.group(1).strip()
    return attributes


class PlaylistParser:
    """Parse M3U playlist text into channels grouped by group-title."""

    def __init__(
        self,
        uncategorized_label: str = "Uncategorized",
        fallback_logo_url: str = "",
        unknown_channel_name: str = "Unknown channel",
        max_channels_per_category: int = 500,
        max_categories: int = 200,
        unlimited: bool = True,
    ):
        self.uncategorized_label = uncategorized_label
        self.fallback_logo_url = fallback_logo_url
        self.unknown_channel_name = unknown_channel_name
        self.max_channels_per_category = max_channels_per_category
        self.max_categories = max_categories
        self.unlimited = unlimited

    def parse_extinf_line(self, line: str) -> dict:
        """Parse an EXTINF line into the pending channel's fields."""
        _, sep, name = line.partition(",")
        name = sanitize_name(name) if sep else ""
        attributes = extract_attributes(line)
        return {
            "name": name or self.unknown_channel_name,
            "group": attributes.get("group") or self.uncategorized_label,
            "logo": attributes.get("logo") or self.fallback_logo_url,
            "country": attributes.get("country", ""),
            "language": attributes.get("language", ""),
            "tvg_id": attributes.get("tvg_id", ""),
            "tvg_name": attributes.get("tvg_name", ""),
        }

    def _to_channel(self, info: dict, url: str) -> EnrichedChannel:
        return EnrichedChannel(
            id=channel_id(info["name"], info["group"], url),
            name=info["name"],
            group=info["group"],
            country=info["country"],
            logo=info["logo"],
            url=url,
            language=info["language"] or None,
            categories=[info["group"]],
            streams=[Stream(channel=info["tvg_id"] or None, title=info["name"], url=url)],
        )

    def parse(self, text: str, unlimited: Optional[bool] = None) -> GroupedView:
        """
        Parse playlist text into a category-shaped view.

        Args:
            text: Playlist content
            unlimited: Override for the per-category and category-count caps

        Returns:
            GroupedView with groups sorted by label and channels sorted by name
        """
        if unlimited is None:
            unlimited = self.unlimited
        max_per_group = None if unlimited else self.max_channels_per_category

        groups: dict[str, list[EnrichedChannel]] = {}
        current: Optional[dict] = None
        dropped = 0

        for raw_line in text.splitlines():
            line = raw_line.strip()

            if line.startswith(EXTINF_PREFIX):
                current = self.parse_extinf_line(line)

            elif line and not line.startswith("#") and current:
                channels = groups.setdefault(current["group"], [])
                if max_per_group is None or len(channels) < max_per_group:
                    channels.append(self._to_channel(current, line))
                else:
                    dropped += 1
                current = None

        labels = sorted(groups)
        if not unlimited:
            labels = labels[:self.max_categories]

        result = {
            label: sorted(groups[label], key=lambda ch: collation_key(ch.name))
            for label in labels
        }
        total = sum(len(channels) for channels in result.values())
        logger.debug(
            f"Parsed {total} channels in {len(result)} categories "
            f"({dropped} dropped by per-category cap)"
        )

        return GroupedView(
            view_type=ViewType.CATEGORY,
            groups=result,
            categories=[Category(id=label, name=label) for label in labels],
            stats=CatalogStats(
                total_channels=total,
                channels_with_streams=total,
                total_categories=len(result),
                total_streams=total,
                linked_streams=sum(
                    1 for channels in result.values() for ch in channels if ch.streams[0].channel
                ),
            ),
        )

"""
Tests for M3U parser service.
"""
import pytest

from tvcatalog.services.m3u_parser import (
    PlaylistParser,
    channel_id,
    extract_attributes,
    sanitize_name,
)


@pytest.fixture
def parser():
    return PlaylistParser(
        uncategorized_label="Uncategorized",
        fallback_logo_url="fallback.png",
        max_channels_per_category=1,
        max_categories=2,
        unlimited=True,
    )


class TestPlaylistParser:
    """Test suite for M3U parsing functionality."""

    def test_parse_extinf_entry(self):
        """A two-line entry yields one channel in its group."""
        text = '#EXTINF:-1 group-title="News",Channel A\nhttp://example/a.m3u8\n'
        view = PlaylistParser().parse(text)

        assert list(view.groups) == ["News"]
        channel = view.groups["News"][0]
        assert channel.name == "Channel A"
        assert channel.url == "http://example/a.m3u8"
        assert channel.group == "News"
        assert channel.id

    def test_id_is_stable(self):
        """Parsing the same input twice gives the same id."""
        text = '#EXTINF:-1 group-title="News",Channel A\nhttp://example/a.m3u8\n'
        first = PlaylistParser().parse(text).groups["News"][0].id
        second = PlaylistParser().parse(text).groups["News"][0].id
        assert first == second

    def test_attributes_extracted(self, parser, sample_m3u_content):
        view = parser.parse(sample_m3u_content)

        cnn = next(ch for ch in view.groups["News"] if ch.name == "CNN International")
        assert cnn.logo == "https://example.com/cnn.png"
        assert cnn.streams[0].channel == "CNN.us"

        arte = view.groups["Culture"][0]
        assert arte.name == "Arte, la chaine"
        assert arte.country == "FR"
        assert arte.language == "French"
        assert arte.logo == "fallback.png"

    def test_comment_lines_between_entry_and_url(self, parser, sample_m3u_content):
        """EXTVLCOPT and blank lines do not consume the pending entry."""
        view = parser.parse(sample_m3u_content)

        bbc = next(ch for ch in view.groups["News"] if ch.name == "BBC World")
        assert bbc.url == "http://example.com/bbc.m3u8"

        orphan = view.groups["Uncategorized"][0]
        assert orphan.name == "Channel Without Group"
        assert orphan.url == "http://example.com/no-group.m3u8"

    def test_groups_and_channels_sorted(self, parser, sample_m3u_content):
        view = parser.parse(sample_m3u_content)

        assert list(view.groups) == ["Culture", "News", "Uncategorized"]
        assert [ch.name for ch in view.groups["News"]] == ["BBC World", "CNN International"]
        assert [c.name for c in view.categories] == ["Culture", "News", "Uncategorized"]
        assert view.stats.total_channels == 4

    def test_caps_when_limited(self, parser, sample_m3u_content):
        """Channels beyond the per-category cap and categories beyond the count cap are dropped."""
        view = parser.parse(sample_m3u_content, unlimited=False)

        assert list(view.groups) == ["Culture", "News"]
        # First channel seen in the group is kept
        assert [ch.name for ch in view.groups["News"]] == ["CNN International"]

    def test_handle_malformed_lines(self):
        """Parser handles malformed content gracefully."""
        text = """#EXTM3U
http://example.com/before-any-entry.m3u8
#EXTINF:-1
http://example.com/no-name.m3u8
Random garbage line
#EXTINF:-1 tvg-id="",
http://example.com/empty-name.m3u8
"""
        view = PlaylistParser(unknown_channel_name="Unknown").parse(text)

        urls = [ch.url for ch in view.groups["Uncategorized"]]
        assert urls == ["http://example.com/no-name.m3u8", "http://example.com/empty-name.m3u8"]
        assert all(ch.name == "Unknown" for ch in view.groups["Uncategorized"])

    def test_empty_text(self):
        view = PlaylistParser().parse("")
        assert view.groups == {}
        assert view.stats.total_channels == 0


class TestHelpers:

    def test_channel_id_hash(self):
        # "__" -> 95 * 31 + 95 = 3040 -> base 36
        assert channel_id("", "", "") == "2cg"

    def test_channel_id_differs_by_url(self):
        assert channel_id("A", "News", "http://a") != channel_id("A", "News", "http://b")

    def test_channel_id_is_base36(self):
        value = channel_id("Très long nom 📺" * 20, "News", "http://example.com/x.m3u8")
        assert value and set(value) <= set("0123456789abcdefghijklmnopqrstuvwxyz")
        assert int(value, 36) <= 2 ** 31

    @pytest.mark.parametrize("raw,expected", [
        ("| Channel |", "Channel"),
        ("  Two   spaces ", "Two spaces"),
        ("Plain", "Plain"),
    ])
    def test_sanitize_name(self, raw, expected):
        assert sanitize_name(raw) == expected

    def test_extract_attributes(self):
        line = '#EXTINF:-1 tvg-id="a.us" tvg-name="A" group-title=" Sports ",A'
        attributes = extract_attributes(line)
        assert attributes == {"tvg_id": "a.us", "tvg_name": "A", "group": "Sports"}

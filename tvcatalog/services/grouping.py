"""
Grouping engine.
Joins the indexed entities into display-ready views by country and by category.
"""
import logging
from dataclasses import dataclass

from tvcatalog.models.channel import Channel, EnrichedChannel
from tvcatalog.models.views import CatalogStats, GroupedView, ViewType
from tvcatalog.services.enrichment import LogoRanker, enriched_name
from tvcatalog.services.indexer import RelationIndex
from tvcatalog.services.text import collation_key

logger = logging.getLogger(__name__)


@dataclass
class CatalogResult:
    """Everything one full computation produces."""
    by_country: GroupedView
    by_category: GroupedView
    stats: CatalogStats

    def view(self, view_type: ViewType):
        if view_type is ViewType.COUNTRY:
            return self.by_country
        if view_type is ViewType.CATEGORY:
            return self.by_category
        return self.stats


class GroupingEngine:
    """Builds the country and category views from a relation index."""

    def __init__(self, ranker: LogoRanker, uncategorized_label: str = "Uncategorized"):
        self.ranker = ranker
        self.uncategorized_label = uncategorized_label

    def enrich(self, channel: Channel, index: RelationIndex, group: str) -> EnrichedChannel:
        streams = index.streams_for(channel.id)
        return EnrichedChannel(
            id=channel.id,
            name=enriched_name(channel, streams),
            group=group,
            country=channel.country,
            logo=self.ranker.best_logo(index.logos_for(channel.id), index.feeds_for(channel.id)),
            url=streams[0].url if streams else None,
            website=channel.website,
            categories=list(channel.categories),
            feeds=list(index.feeds_for(channel.id)),
            streams=list(streams),
            is_nsfw=channel.is_nsfw,
        )

    def group_by_country(self, index: RelationIndex) -> dict[str, list[EnrichedChannel]]:
        """Playable channels keyed by country display name."""
        groups: dict[str, list[EnrichedChannel]] = {}
        for channel in index.channels:
            if not index.streams_for(channel.id):
                continue
            country = index.countries_by_code.get(channel.country)
            if country is None:
                continue
            groups.setdefault(country.name, []).append(self.enrich(channel, index, country.name))
        return groups

    def category_labels(self, channel: Channel, index: RelationIndex) -> list[str]:
        """Group labels for a channel; unknown ids fall into the uncategorized bucket."""
        if not channel.categories:
            return [self.uncategorized_label]
        labels = []
        for category_id in channel.categories:
            category = index.categories_by_id.get(category_id)
            label = category.name if category else self.uncategorized_label
            if label not in labels:
                labels.append(label)
        return labels

    def group_by_category(self, index: RelationIndex) -> dict[str, list[EnrichedChannel]]:
        """Playable channels keyed by category name, one entry per category."""
        groups: dict[str, list[EnrichedChannel]] = {}
        for channel in index.channels:
            if not index.streams_for(channel.id):
                continue
            for label in self.category_labels(channel, index):
                groups.setdefault(label, []).append(self.enrich(channel, index, label))
        return groups

    def compute_stats(self, index: RelationIndex) -> CatalogStats:
        return CatalogStats(
            total_channels=len(index.channels),
            channels_with_streams=sum(1 for ch in index.channels if index.streams_for(ch.id)),
            total_countries=len(index.countries),
            total_categories=len(index.categories),
            total_logos=len(index.logos),
            total_streams=len(index.streams),
            linked_streams=sum(1 for s in index.streams if s.channel is not None),
            orphan_streams=sum(1 for s in index.streams if s.channel is None and s.title),
            channels_with_logos=sum(1 for ch in index.channels if index.logos_for(ch.id)),
            skipped_records=index.skipped_records,
        )

    def build(self, index: RelationIndex) -> CatalogResult:
        stats = self.compute_stats(index)
        logger.info(
            f"Joining {stats.total_channels} channels: {stats.total_streams} streams, "
            f"{stats.linked_streams} linked, {stats.orphan_streams} orphan"
        )

        countries = sorted(index.countries, key=lambda c: collation_key(c.name))
        categories = sorted(index.categories, key=lambda c: collation_key(c.name))

        by_country = GroupedView(
            view_type=ViewType.COUNTRY,
            groups=self.group_by_country(index),
            countries=countries,
            categories=categories,
            stats=stats,
        )
        by_category = GroupedView(
            view_type=ViewType.CATEGORY,
            groups=self.group_by_category(index),
            countries=countries,
            categories=categories,
            stats=stats,
        )
        logger.info(
            f"📺 Playable channels: {stats.channels_with_streams} / {stats.total_channels} total, "
            f"{len(by_country.groups)} countries, {len(by_category.groups)} categories"
        )
        return CatalogResult(by_country=by_country, by_category=by_category, stats=stats)

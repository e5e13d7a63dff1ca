"""
Relation indexer.
Builds per-computation lookup structures over the raw entity collections.
"""
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from tvcatalog.errors import MalformedEntity, MalformedInput
from tvcatalog.models.channel import Channel, Feed, Logo, Stream
from tvcatalog.models.metadata import Category, Country

logger = logging.getLogger(__name__)

ENTITY_MODELS: dict[str, type[BaseModel]] = {
    "channels": Channel,
    "countries": Country,
    "categories": Category,
    "streams": Stream,
    "logos": Logo,
    "feeds": Feed,
}

ENTITY_NAMES = frozenset(ENTITY_MODELS)


def parse_entity(entity: str, record: Any) -> BaseModel:
    """Validate one raw record into its model, raising MalformedEntity."""
    model = ENTITY_MODELS[entity]
    if isinstance(record, model):
        return record
    if not isinstance(record, Mapping):
        raise MalformedEntity(entity, record, f"expected an object, got {type(record).__name__}")
    try:
        return model.model_validate(record)
    except ValidationError as e:
        missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise MalformedEntity(entity, record, f"invalid fields {missing}") from e


@dataclass
class RelationIndex:
    """Lookups over one set of entity collections. Rebuilt on every computation."""
    channels: list[Channel] = field(default_factory=list)
    countries: list[Country] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    streams: list[Stream] = field(default_factory=list)
    logos: list[Logo] = field(default_factory=list)
    feeds: list[Feed] = field(default_factory=list)

    channels_by_id: dict[str, Channel] = field(default_factory=dict)
    countries_by_code: dict[str, Country] = field(default_factory=dict)
    categories_by_id: dict[str, Category] = field(default_factory=dict)
    streams_by_channel: dict[str, list[Stream]] = field(default_factory=dict)
    logos_by_channel: dict[str, list[Logo]] = field(default_factory=dict)
    feeds_by_channel: dict[str, list[Feed]] = field(default_factory=dict)

    skipped_records: int = 0

    def streams_for(self, channel_id: str) -> list[Stream]:
        return self.streams_by_channel.get(channel_id, [])

    def logos_for(self, channel_id: str) -> list[Logo]:
        return self.logos_by_channel.get(channel_id, [])

    def feeds_for(self, channel_id: str) -> list[Feed]:
        return self.feeds_by_channel.get(channel_id, [])


def _records(collections: Mapping[str, Any], entity: str) -> Iterable:
    raw = collections.get(entity)
    if raw is None:
        return []
    if isinstance(raw, (str, bytes, Mapping)) or not isinstance(raw, Iterable):
        raise MalformedInput(f"{entity} must be a collection of records, got {type(raw).__name__}")
    return raw


def build_indexes(collections: Mapping[str, Any]) -> RelationIndex:
    """
    Build the relation indexes from raw entity collections.

    Absent collections are treated as empty. Records that fail validation are
    skipped and counted in ``skipped_records``.

    Raises:
        MalformedInput: if a collection is not iterable
    """
    if not isinstance(collections, Mapping):
        raise MalformedInput(f"Entity collections must be a mapping, got {type(collections).__name__}")

    index = RelationIndex()
    parsed: dict[str, list] = {}

    for entity in ENTITY_MODELS:
        items = []
        for record in _records(collections, entity):
            try:
                items.append(parse_entity(entity, record))
            except MalformedEntity as e:
                index.skipped_records += 1
                logger.debug(f"Skipping record: {e}")
        parsed[entity] = items

    if index.skipped_records:
        logger.warning(f"Skipped {index.skipped_records} malformed records")

    index.channels = parsed["channels"]
    index.countries = parsed["countries"]
    index.categories = parsed["categories"]
    index.streams = parsed["streams"]
    index.logos = parsed["logos"]
    index.feeds = parsed["feeds"]

    index.channels_by_id = {ch.id: ch for ch in index.channels}
    index.countries_by_code = {c.code: c for c in index.countries}
    index.categories_by_id = {c.id: c for c in index.categories}

    for stream in index.streams:
        if stream.channel:
            index.streams_by_channel.setdefault(stream.channel, []).append(stream)

    for logo in index.logos:
        index.logos_by_channel.setdefault(logo.channel, []).append(logo)

    for feed in index.feeds:
        index.feeds_by_channel.setdefault(feed.channel, []).append(feed)

    return index

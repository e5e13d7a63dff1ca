"""
Channel, Feed, Stream and Logo data models.
Maps to iptv-org API schema.
"""
import re
from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import Optional

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


class Channel(BaseModel):
    """TV Channel model matching iptv-org channels.json schema."""
    id: str
    name: str
    alt_names: list[str] = Field(default_factory=list)
    network: Optional[str] = None
    country: str
    categories: list[str] = Field(default_factory=list)
    is_nsfw: bool = False
    website: Optional[str] = None

    @field_validator("alt_names", "categories", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class Feed(BaseModel):
    """Channel feed model for regional/quality variants."""
    channel: str = Field(validation_alias=AliasChoices("channel", "channel_id"))
    id: str
    name: Optional[str] = None
    is_main: bool = Field(default=False, validation_alias=AliasChoices("is_main", "is_master"))


class Stream(BaseModel):
    """Stream URL model matching iptv-org streams.json schema."""
    channel: Optional[str] = None
    feed: Optional[str] = None
    title: Optional[str] = Field(default=None, validation_alias=AliasChoices("title", "name"))
    url: Optional[str] = None
    quality: Optional[str] = None
    height: Optional[int] = None

    @field_validator("height", mode="before")
    @classmethod
    def _coerce_height(cls, value):
        """Keep the leading integer of the value, None when there is none."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return int(value)
        match = _LEADING_INT.match(str(value))
        return int(match.group(1)) if match else None


class Logo(BaseModel):
    """Channel logo model."""
    channel: str
    feed: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    url: str = Field(validation_alias=AliasChoices("url", "src"))


class EnrichedChannel(BaseModel):
    """Display-ready channel as placed in a group."""
    id: str
    name: str
    group: str
    country: str = ""
    logo: str
    url: Optional[str] = None
    website: Optional[str] = None
    language: Optional[str] = None
    categories: list[str] = Field(default_factory=list)
    feeds: list[Feed] = Field(default_factory=list)
    streams: list[Stream] = Field(default_factory=list)
    is_nsfw: bool = False


class SearchHit(EnrichedChannel):
    """Search result: a channel with the label of the group it was found in."""
    category: str

"""
Channel search over an already grouped view.
"""
from typing import Mapping, Sequence, Union

from tvcatalog.models.channel import EnrichedChannel, SearchHit
from tvcatalog.models.views import GroupedView
from tvcatalog.services.text import collation_key


def search_channels(
    view: Union[GroupedView, Mapping[str, Sequence[EnrichedChannel]]],
    query: str,
) -> list[SearchHit]:
    """
    Channels whose name or group label contains the query, case-insensitively.

    An empty query matches nothing. Hits are sorted by channel name.
    """
    term = query.lower().strip()
    if not term:
        return []

    groups = view.groups if isinstance(view, GroupedView) else view
    hits = []
    for label, channels in groups.items():
        label_matches = term in label.lower()
        for channel in channels:
            if label_matches or term in channel.name.lower():
                hits.append(SearchHit(**channel.model_dump(), category=label))

    hits.sort(key=lambda hit: collation_key(hit.name))
    return hits

"""Filter service: pure catalog queries by view, category and search term."""
from __future__ import annotations

from iptvcatalog.models.channel import ALL_CATEGORIES, Channel, FilterQuery, View


def matches_search(channel: Channel, search_term: str) -> bool:
    """Case-insensitive substring match on the channel name."""
    return search_term.lower() in channel.name.lower()


def select_view(all_channels: list[Channel], query: FilterQuery) -> list[Channel]:
    """Apply the view selection step.

    * favorites: catalog order, restricted to favorite ids
    * history: history order (most recent first), unknown ids dropped
    * categories: everything for ``"All"``, else an exact group match
    """
    if query.view == View.FAVORITES:
        favorites = set(query.favorites)
        return [c for c in all_channels if c.id in favorites]

    if query.view == View.HISTORY:
        by_id: dict[str, Channel] = {}
        for channel in all_channels:
            by_id.setdefault(channel.id, channel)
        return [by_id[channel_id] for channel_id in query.history if channel_id in by_id]

    if query.selected_category == ALL_CATEGORIES:
        return list(all_channels)
    return [c for c in all_channels if c.group == query.selected_category]


def filter_channels(all_channels: list[Channel], query: FilterQuery) -> list[Channel]:
    """Return the channels to display for *query*; order is defined by the view."""
    selected = select_view(all_channels, query)
    if not query.search_term:
        return selected
    return [c for c in selected if matches_search(c, query.search_term)]

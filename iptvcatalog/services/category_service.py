"""Category service: groups a flat channel list into name-sorted categories."""
from __future__ import annotations

from iptvcatalog.errors import EmptyResultError
from iptvcatalog.models.channel import DEFAULT_GROUP, Category, Channel


def build_category_map(categories: list) -> dict:
    """Build a category_id -> category_name map from a Xtream categories payload."""
    cat_map = {}
    for cat in categories:
        if isinstance(cat, dict):
            cat_map[str(cat.get("category_id", ""))] = cat.get("category_name", "")
        elif isinstance(cat, str):
            cat_map[cat] = cat
    return cat_map


def group_channels_into_categories(channels: list[Channel]) -> list[Category]:
    """Group by ``channel.group`` keeping encounter order; sort categories by name."""
    groups: dict[str, list[Channel]] = {}
    for channel in channels:
        groups.setdefault(channel.group or DEFAULT_GROUP, []).append(channel)
    return [Category(name=name, channels=groups[name]) for name in sorted(groups)]


def flatten_categories(categories: list[Category]) -> list[Channel]:
    """Catalog snapshot: every channel in category order, tagged with its category name."""
    return [
        channel if channel.group == category.name else channel.model_copy(update={"group": category.name})
        for category in categories
        for channel in category.channels
    ]


def count_channels(categories: list[Category]) -> int:
    return sum(len(category.channels) for category in categories)


def ensure_not_empty(categories: list[Category]) -> list[Category]:
    if count_channels(categories) == 0:
        raise EmptyResultError("The playlist is empty or could not be parsed")
    return categories

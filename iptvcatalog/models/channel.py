"""Pydantic models for playlist sources, channels, categories and filter queries."""
from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_GROUP = "General"
ALL_CATEGORIES = "All"


class PlaylistKind(str, enum.Enum):
    URL = "URL"
    FILE = "FILE"
    XTREAM = "XTREAM"


class View(str, enum.Enum):
    CATEGORIES = "categories"
    FAVORITES = "favorites"
    HISTORY = "history"


class XtreamCredentials(BaseModel):
    """Login for a Xtream Codes server."""
    model_config = ConfigDict(frozen=True)

    username: str
    password: Optional[str] = None


class PlaylistSource(BaseModel):
    """Where a playlist comes from.

    For ``FILE`` sources ``source`` carries the raw playlist text, not a path.
    """
    model_config = ConfigDict(frozen=True)

    kind: PlaylistKind
    source: str
    credentials: Optional[XtreamCredentials] = None

    @model_validator(mode="after")
    def _check_credentials(self) -> "PlaylistSource":
        if self.kind is PlaylistKind.XTREAM and self.credentials is None:
            raise ValueError("XTREAM sources require credentials")
        return self


class Channel(BaseModel):
    """A single playable channel."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    logo: Optional[str] = None
    url: str
    group: str = DEFAULT_GROUP
    epg_id: Optional[str] = Field(default=None, alias="epgId")

    @staticmethod
    def make_id(group: str, name: str, url: str) -> str:
        return f"{group}-{name}-{url}"

    @classmethod
    def create(
        cls,
        name: str,
        url: str,
        group: Optional[str] = None,
        logo: Optional[str] = None,
        epg_id: Optional[str] = None,
        channel_id: Optional[str] = None,
    ) -> "Channel":
        """Build a channel, deriving its id from (group, name, url) unless one is given."""
        group = group or DEFAULT_GROUP
        return cls(
            id=channel_id if channel_id is not None else cls.make_id(group, name, url),
            name=name,
            logo=logo,
            url=url,
            group=group,
            epg_id=epg_id,
        )


class Category(BaseModel):
    """A named group of channels in source encounter order."""

    name: str
    channels: list[Channel] = Field(default_factory=list)


class FilterQuery(BaseModel):
    """What to display: a view, a category, a search term and the user's lists."""

    view: View = View.CATEGORIES
    selected_category: str = ALL_CATEGORIES
    search_term: str = ""
    favorites: list[str] = Field(default_factory=list)
    # most recent first
    history: list[str] = Field(default_factory=list)

"""
Category Models for Finance Tracker

Categories are user-defined tags for transactions. They are created by
the user or by the auto-categorization engine, renamed/recolored in place,
and deleted together with every assignment pointing at them.
"""

from pydantic import BaseModel, ConfigDict, Field


# Default palette offered for new categories (free-form colors are allowed)
CATEGORY_COLORS = [
    "#FF6B6B",  # Red
    "#FF8E53",  # Orange
    "#FFC93C",  # Yellow
    "#4ECB71",  # Green
    "#2ECC71",  # Emerald
    "#00B894",  # Mint
    "#0984E3",  # Blue
    "#6C5CE7",  # Purple
    "#A29BFE",  # Lavender
    "#FD79A8",  # Pink
    "#636E72",  # Gray
    "#00CEC9",  # Teal
]


class CategoryDraft(BaseModel):
    """A category that has not been given an id yet."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(default=CATEGORY_COLORS[0], min_length=1)


class Category(BaseModel):
    """A stored transaction category."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    color: str

    def matches_name(self, name: str) -> bool:
        """Case-insensitive name comparison, surrounding whitespace ignored."""
        return self.name.strip().lower() == name.strip().lower()

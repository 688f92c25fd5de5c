"""Calendar color and icon per activity category"""
from dataclasses import dataclass


@dataclass(frozen=True)
class ActivityStyle:
    color: str
    icon: str
    label: str


DEFAULT_STYLE = ActivityStyle(color="#6b7280", icon="clock", label="Other")

ACTIVITY_STYLES = {
    "CompanyVisit": ActivityStyle(color="#3b82f6", icon="building-2", label="Company Visit"),
    "Discussion": ActivityStyle(color="#ec4899", icon="message-square", label="Discussion"),
    "Hotel": ActivityStyle(color="#10b981", icon="hotel", label="Hotel"),
    "Restaurant": ActivityStyle(color="#f59e0b", icon="utensils", label="Restaurant"),
    "Travel": ActivityStyle(color="#8b5cf6", icon="car", label="Travel"),
}

# Order used by the type selector in the activity dialog
ACTIVITY_TYPE_OPTIONS = [(value, style.label) for value, style in ACTIVITY_STYLES.items()]


def get_activity_style(category: object) -> ActivityStyle:
    # ActivityType members hash by name, so look up by their value
    key = getattr(category, "value", category)
    if not isinstance(key, str):
        return DEFAULT_STYLE
    return ACTIVITY_STYLES.get(key, DEFAULT_STYLE)


def get_activity_color(category: object) -> str:
    return get_activity_style(category).color


def get_activity_icon(category: object) -> str:
    return get_activity_style(category).icon

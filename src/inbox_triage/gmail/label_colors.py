# inbox_triage/gmail/label_colors.py

DEFAULT_COLOR_TAG = "bg-gray-100"

# Colour tags used by clients, mapped to the Gmail label palette.
LABEL_COLORS = {
    "bg-red-100": {
        "backgroundColor": "#fce8e6",  # red
        "textColor": "#d93025",
    },
    "bg-blue-100": {
        "backgroundColor": "#e8f0fe",  # blue
        "textColor": "#1a73e8",
    },
    "bg-green-100": {
        "backgroundColor": "#e6f4ea",  # green
        "textColor": "#137333",
    },
    "bg-yellow-100": {
        "backgroundColor": "#fef7e0",  # yellow
        "textColor": "#ea8600",
    },
    "bg-purple-100": {
        "backgroundColor": "#f3e8fd",  # purple
        "textColor": "#a142f4",
    },
    "bg-gray-100": {
        "backgroundColor": "#f1f3f4",  # gray
        "textColor": "#5f6368",
    },
}

_TAG_BY_BACKGROUND = {colors["backgroundColor"]: tag for tag, colors in LABEL_COLORS.items()}


def color_tag_for(background_color: str | None) -> str:
    return _TAG_BY_BACKGROUND.get((background_color or "").lower(), DEFAULT_COLOR_TAG)

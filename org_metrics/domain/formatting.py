"""Display helpers for values stored in repository records."""
import math


MILLISECONDS_PER_DAY = 1000 * 60 * 60 * 24


def milliseconds_to_display_string(milliseconds: float) -> str:
    """Render an age in milliseconds the way the dashboard shows it.

    ``0`` is the "no data" sentinel and renders as ``N/A``.
    """
    days = milliseconds / MILLISECONDS_PER_DAY
    if days == 0:
        return "N/A"
    if days < 1:
        return "<1 day"
    if days < 2:
        return "1 day"
    return f"{math.floor(days)} days"

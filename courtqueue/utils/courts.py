"""Court label helpers.

Courts are not stored rows: a session has court_count courts numbered
1..court_count, optionally with display labels kept as a comma separated
string (e.g. "5,6,Show Court").
"""

from typing import List, Optional


def parse_court_labels(labels: Optional[str], court_count: int) -> List[str]:
    """
    Expand a stored label string into exactly court_count labels.

    Missing or blank entries fall back to the court number.

    Examples:
        >>> parse_court_labels("5,6", 3)
        ["5", "6", "3"]
    """
    parts = [p.strip() for p in labels.split(",")] if labels else []
    return [
        parts[i] if i < len(parts) and parts[i] else str(i + 1)
        for i in range(court_count)
    ]


def court_label(labels: Optional[str], court_number: int) -> str:
    """Display label for one court number."""
    parts = [p.strip() for p in labels.split(",")] if labels else []
    if 1 <= court_number <= len(parts) and parts[court_number - 1]:
        return parts[court_number - 1]
    return str(court_number)


def serialize_court_labels(labels: List[str]) -> str:
    """Join labels for storage, defaulting blanks to their court number."""
    return ",".join(
        (label or "").replace(",", " ").strip() or str(i + 1)
        for i, label in enumerate(labels)
    )

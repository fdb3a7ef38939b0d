"""
Natural-language trip queries.

Understands requests such as "de Tunis à Sousse demain" or
"from Sfax to Djerba day after tomorrow": an origin/destination pair and an
optional day, either relative (today, tomorrow, the day after) or explicit.
"""
import re
from datetime import date, datetime, timedelta
from typing import Optional, Dict, Any

RELATIVE_DAYS = [
    (re.compile(r"\b(?:apr[eè]s[- ]demain|day after tomorrow)\b"), 2),
    (re.compile(r"\b(?:demain|tomorrow)\b"), 1),
    (re.compile(r"\b(?:aujourd'?hui|today|ce soir|tonight)\b"), 0),
]

ISO_DATE = re.compile(r"\b(\d{4})-(\d{2})-(\d{2})\b")
SLASH_DATE = re.compile(r"\b(\d{1,2})/(\d{1,2})/(\d{4})\b")

ROUTE_PATTERNS = [
    re.compile(r"\b(?:from|de|depuis)\s+(?P<origin>.+?)\s+(?:to|à|a|vers|jusqu'à)\s+(?P<destination>.+)$"),
    re.compile(r"^(?P<origin>.+?)\s*(?:->|→|–|-)\s*(?P<destination>.+)$"),
]


def format_city(value: str) -> str:
    """Title-case a city name the way it is stored"""
    value = value.strip(" ,.;!?")
    return " ".join(word.capitalize() for word in value.split())


def _extract_date(text: str, today: date):
    for pattern, offset in RELATIVE_DAYS:
        if pattern.search(text):
            return pattern.sub(" ", text), today + timedelta(days=offset)

    match = ISO_DATE.search(text)
    if match:
        try:
            found = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            found = None
        return ISO_DATE.sub(" ", text), found

    match = SLASH_DATE.search(text)
    if match:
        try:
            found = date(int(match.group(3)), int(match.group(2)), int(match.group(1)))
        except ValueError:
            found = None
        return SLASH_DATE.sub(" ", text), found

    return text, None


def parse_query(query: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Detect origin, destination and travel day in a free-text query"""
    today = (now or datetime.now()).date()
    text = " ".join(query.lower().split())

    text, travel_date = _extract_date(text, today)
    text = " ".join(text.split())

    origin = destination = None
    for pattern in ROUTE_PATTERNS:
        match = pattern.search(text)
        if match:
            origin = format_city(match.group("origin")) or None
            destination = format_city(match.group("destination")) or None
            break

    return {
        "origin": origin,
        "destination": destination,
        "date": travel_date,
    }

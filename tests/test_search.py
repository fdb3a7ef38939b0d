from datetime import date, datetime

import pytest

from tunibus.trips.search import format_city, parse_query

NOW = datetime(2026, 10, 19, 9, 30)


@pytest.mark.parametrize(
    "query, origin, destination, day",
    [
        ("de Tunis à Sousse demain", "Tunis", "Sousse", date(2026, 10, 20)),
        ("from sfax to djerba day after tomorrow", "Sfax", "Djerba", date(2026, 10, 21)),
        ("Bizerte -> Tunis aujourd'hui", "Bizerte", "Tunis", date(2026, 10, 19)),
        ("depuis Gabès vers Sfax 2026-11-02", "Gabès", "Sfax", date(2026, 11, 2)),
        ("Tunis - Nabeul 05/12/2026", "Tunis", "Nabeul", date(2026, 12, 5)),
    ],
)
def test_parse_query(query, origin, destination, day):
    detected = parse_query(query, now=NOW)
    assert detected["origin"] == origin
    assert detected["destination"] == destination
    assert detected["date"] == day


def test_after_tomorrow_wins_over_tomorrow():
    assert parse_query("de Tunis à Sousse après-demain", now=NOW)["date"] == date(2026, 10, 21)


def test_query_without_route():
    detected = parse_query("demain", now=NOW)
    assert detected == {"origin": None, "destination": None, "date": date(2026, 10, 20)}


def test_invalid_explicit_date_is_dropped():
    assert parse_query("de Tunis à Sousse 2026-02-30", now=NOW)["date"] is None


def test_format_city():
    assert format_city("  el jem, ") == "El Jem"

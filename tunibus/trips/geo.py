"""Static catalogue of the intercity corridors shown on the network map."""

TUNISIA_ROUTES = [
    {
        "id": "tn-tunis-bizerte",
        "origin": "Tunis",
        "origin_coords": {"lat": 36.8065, "lng": 10.1815},
        "destination": "Bizerte",
        "destination_coords": {"lat": 37.2744, "lng": 9.8739},
        "distance_km": 66,
        "average_fill_rate": 0.92,
        "next_departure": "17:15",
        "active_buses": 3,
    },
    {
        "id": "tn-tunis-sousse",
        "origin": "Tunis",
        "origin_coords": {"lat": 36.8065, "lng": 10.1815},
        "destination": "Sousse",
        "destination_coords": {"lat": 35.8256, "lng": 10.6411},
        "distance_km": 140,
        "average_fill_rate": 0.85,
        "next_departure": "15:40",
        "active_buses": 4,
    },
    {
        "id": "tn-sousse-sfax",
        "origin": "Sousse",
        "origin_coords": {"lat": 35.8256, "lng": 10.6411},
        "destination": "Sfax",
        "destination_coords": {"lat": 34.7398, "lng": 10.7603},
        "distance_km": 135,
        "average_fill_rate": 0.73,
        "next_departure": "14:05",
        "active_buses": 2,
    },
    {
        "id": "tn-tunis-gabes",
        "origin": "Tunis",
        "origin_coords": {"lat": 36.8065, "lng": 10.1815},
        "destination": "Gabès",
        "destination_coords": {"lat": 33.8815, "lng": 10.0982},
        "distance_km": 420,
        "average_fill_rate": 0.67,
        "next_departure": "19:00",
        "active_buses": 2,
    },
    {
        "id": "tn-sfax-djerba",
        "origin": "Sfax",
        "origin_coords": {"lat": 34.7398, "lng": 10.7603},
        "destination": "Djerba (Houmt Souk)",
        "destination_coords": {"lat": 33.8720, "lng": 10.8575},
        "distance_km": 230,
        "average_fill_rate": 0.8,
        "next_departure": "08:30",
        "active_buses": 3,
    },
]


def get_routes():
    return [dict(route) for route in TUNISIA_ROUTES]

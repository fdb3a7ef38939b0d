#!/usr/bin/env python3

from datetime import datetime, time, timedelta
from decimal import Decimal

from tunibus.auth.utils import get_password_hash
from tunibus.database import Base, SessionLocal, engine, utcnow
from tunibus.models import (
    KnowledgeArticle, LoyaltyBalance, LoyaltyMission, LoyaltyMissionProgress, OptimizationRule, Reservation, RewardTier,
    Trip, User, Vehicle
)
from tunibus.roles import ADMIN, CLIENT, DRIVER
from tunibus.trips.geo import get_routes

DEMO_PASSWORD = "TuniBus2024!"

DEMO_USERS = [
    {"email": "admin@tunibus.tn", "first_name": "Amel", "last_name": "Ben Salah", "role": ADMIN},
    {"email": "driver@tunibus.tn", "first_name": "Karim", "last_name": "Trabelsi", "role": DRIVER},
    {"email": "client@tunibus.tn", "first_name": "Sami", "last_name": "Gharbi", "role": CLIENT},
]

VEHICLES = [
    {"plate_number": "123 TUN 4567", "make": "Mercedes", "model": "Sprinter", "capacity": 16},
    {"plate_number": "208 TUN 1190", "make": "Iveco", "model": "Daily", "capacity": 20},
    {"plate_number": "77 TUN 3021", "make": "Isuzu", "model": "Novo", "capacity": 29},
]

DEPARTURE_HOURS = [7, 13, 18]

REWARD_TIERS = [
    ("Bronze", 0, ["Welcome offer"]),
    ("Silver", 700, ["Priority boarding"]),
    ("Gold", 1500, ["Priority boarding", "Free seat choice"]),
    ("Platinum", 2500, ["Priority boarding", "Free seat choice", "Lounge access"]),
]

MISSIONS = [
    ("First trip", "Book and travel on your first trip", 100),
    ("Weekend explorer", "Travel on two weekend trips this month", 250),
    ("Coastal tour", "Visit Sousse, Sfax and Djerba", 400),
]

ARTICLES = [
    ("How do I cancel a reservation?",
     "Open My reservations, choose the trip and press Cancel. Seats are released immediately "
     "and paid amounts are refunded to the original payment method.",
     ["reservation", "cancel", "refund"]),
    ("My QR ticket is not scanned",
     "Increase the screen brightness and keep the QR code flat. The driver can also check you in "
     "with your reservation reference.",
     ["ticket", "qr", "boarding"]),
    ("How are loyalty points earned?",
     "Every paid dinar earns one loyalty point. Points unlock Silver, Gold and Platinum tiers.",
     ["loyalty", "points"]),
]


def create_seed_data():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        print("🚌 Creating seed data for TuniBus Transport System...")

        print("Clearing existing demo data...")
        db.query(Reservation).delete()
        db.query(LoyaltyMissionProgress).delete()
        db.query(Trip).delete()
        db.query(Vehicle).delete()
        db.query(RewardTier).delete()
        db.query(LoyaltyMission).delete()
        db.query(KnowledgeArticle).delete()
        db.query(OptimizationRule).delete()
        for data in DEMO_USERS:
            existing = db.query(User).filter(User.email == data["email"]).first()
            if existing:
                db.delete(existing)
        db.flush()

        # 1. Users
        print("Creating demo users...")
        users = {}
        for data in DEMO_USERS:
            user = User(password=get_password_hash(DEMO_PASSWORD), phone="+216 71 000 000", **data)
            db.add(user)
            users[data["role"]] = user
        db.flush()
        db.add(LoyaltyBalance(user_id=users[CLIENT].id, balance=320))

        # 2. Vehicles
        print("Creating vehicles...")
        vehicles = [Vehicle(status="available", **data) for data in VEHICLES]
        vehicles[0].driver_id = users[DRIVER].id
        db.add_all(vehicles)
        db.flush()

        # 3. Trips for the next three days on every main route
        print("Creating trips...")
        today = utcnow().date()
        trips = []
        for day_offset in range(3):
            day = today + timedelta(days=day_offset)
            for index, route in enumerate(get_routes()):
                hour = DEPARTURE_HOURS[index % len(DEPARTURE_HOURS)]
                departure = datetime.combine(day, time(hour, 0))
                duration = timedelta(minutes=int(route["distance_km"] * 1.1) + 20)
                vehicle = vehicles[index % len(vehicles)]
                trips.append(Trip(
                    origin=route["origin"],
                    destination=route["destination"],
                    departure_at=departure,
                    arrival_at=departure + duration,
                    price=Decimal(str(round(route["distance_km"] * 0.08 + 3, 1))),
                    seats_available=vehicle.capacity,
                    distance_km=route["distance_km"],
                    driver_id=users[DRIVER].id if index == 0 else None,
                    vehicle_id=vehicle.id,
                    status="scheduled",
                    category="other",
                ))
        db.add_all(trips)

        # 4. Loyalty programme
        print("Creating reward tiers and missions...")
        tiers = [RewardTier(name=name, min_points=points, perks=perks) for name, points, perks in REWARD_TIERS]
        missions = [
            LoyaltyMission(title=title, description=description, points=points, active=True)
            for title, description, points in MISSIONS
        ]
        db.add_all(tiers + missions)

        # 5. Knowledge base
        print("Creating knowledge articles...")
        articles = [
            KnowledgeArticle(title=title, content=content, tags=tags, created_by=users[ADMIN].id)
            for title, content, tags in ARTICLES
        ]
        db.add_all(articles)

        # 6. Optimization rules
        print("Creating optimization rules...")
        rules = [
            OptimizationRule(name="Coastal weekend peak", route_pattern="sousse|monastir|mahdia", threshold=0.9),
            OptimizationRule(name="Southern lines", route_pattern="gabes|tozeur|djerba", threshold=0.85),
        ]
        db.add_all(rules)

        db.commit()
        print("✅ Successfully created seed data for TuniBus!")
        print("Created:")
        print(f"  - {len(users)} demo users (password: {DEMO_PASSWORD})")
        print(f"  - {len(vehicles)} vehicles")
        print(f"  - {len(trips)} trips")
        print(f"  - {len(tiers)} reward tiers, {len(missions)} missions")
        print(f"  - {len(articles)} knowledge articles")
        print(f"  - {len(rules)} optimization rules")

    except Exception as e:
        print(f"❌ Error creating seed data: {e}")
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_seed_data()

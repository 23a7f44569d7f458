"""
Seed the local database with a demo admin, advertiser, driver, vehicle and device.

Usage:
  python scripts/seed_demo_data.py

This script is idempotent: running it multiple times will upsert the same
records based on unique fields (open_id for users, license_plate for vehicles,
device_id for devices).
"""

from datetime import date

from vehiclee.db import SessionLocal, Base, engine
from vehiclee.models.models import (
    User,
    ClientProfile,
    DriverProfile,
    Vehicle,
    Device,
    Zone,
)
from vehiclee.auth.security import hash_secret, create_access_token


DEMO_DEVICE_SECRET = "demo-device-secret"


def ensure_user(session, open_id: str, name: str, email: str, role: str) -> User:
    user = session.query(User).filter(User.open_id == open_id).first()
    if user:
        user.name = name
        user.email = email
        user.role = role
        session.flush()
        return user
    user = User(open_id=open_id, name=name, email=email, login_method="demo", role=role, is_active=True)
    session.add(user)
    session.flush()
    return user


def ensure_client_profile(session, user: User, company_name: str, **kwargs) -> ClientProfile:
    profile = session.query(ClientProfile).filter(ClientProfile.user_id == user.id).first()
    if profile:
        profile.company_name = company_name
        for k, v in kwargs.items():
            if hasattr(profile, k):
                setattr(profile, k, v)
        session.flush()
        return profile
    profile = ClientProfile(user_id=user.id, company_name=company_name, **{k: v for k, v in kwargs.items() if hasattr(ClientProfile, k)})
    session.add(profile)
    session.flush()
    return profile


def ensure_driver_profile(session, user: User, **kwargs) -> DriverProfile:
    profile = session.query(DriverProfile).filter(DriverProfile.user_id == user.id).first()
    if profile:
        return profile
    profile = DriverProfile(user_id=user.id, **{k: v for k, v in kwargs.items() if hasattr(DriverProfile, k)})
    session.add(profile)
    session.flush()
    return profile


def ensure_vehicle(session, driver: DriverProfile, license_plate: str, **kwargs) -> Vehicle:
    vehicle = session.query(Vehicle).filter(Vehicle.license_plate == license_plate).first()
    if vehicle:
        return vehicle
    vehicle = Vehicle(driver_id=driver.id, license_plate=license_plate, **{k: v for k, v in kwargs.items() if hasattr(Vehicle, k)})
    session.add(vehicle)
    session.flush()
    return vehicle


def ensure_device(session, vehicle: Vehicle, device_id: str, secret: str, **kwargs) -> Device:
    device = session.query(Device).filter(Device.device_id == device_id).first()
    if device:
        return device
    device = Device(
        vehicle_id=vehicle.id,
        device_id=device_id,
        device_secret=hash_secret(secret),
        **{k: v for k, v in kwargs.items() if hasattr(Device, k)},
    )
    session.add(device)
    session.flush()
    return device


def ensure_zone(session, city: str, zone_name: str, **kwargs) -> Zone:
    zone = session.query(Zone).filter(Zone.city == city, Zone.zone_name == zone_name).first()
    if zone:
        return zone
    zone = Zone(city=city, zone_name=zone_name, **{k: v for k, v in kwargs.items() if hasattr(Zone, k)})
    session.add(zone)
    session.flush()
    return zone


def seed(session) -> dict:
    """Upsert the demo records and return the users keyed by role."""
    admin = ensure_user(session, "demo-admin", "Demo Admin", "admin@vehiclee.example", "admin")
    advertiser = ensure_user(session, "demo-client", "Demo Advertiser", "ads@vehiclee.example", "client")
    driver_user = ensure_user(session, "demo-driver", "Demo Driver", "driver@vehiclee.example", "driver")

    ensure_client_profile(
        session,
        advertiser,
        "Riga Coffee Roasters",
        company_country="LV",
        contact_person="Demo Advertiser",
        kyc_status="approved",
        wallet_balance=500000,
    )
    driver = ensure_driver_profile(
        session,
        driver_user,
        license_number="LV-000001",
        license_expiry=date(2030, 12, 31),
        document_status="approved",
    )
    vehicle = ensure_vehicle(
        session, driver, "LV-DEMO-1", make="Toyota", model="Prius", year=2021, color="white", approval_status="approved"
    )
    ensure_device(
        session, vehicle, "EPD-DEMO-0001", DEMO_DEVICE_SECRET,
        model="EPD-13", resolution="1600x1200", color_mode="bw", status="provisioning",
    )
    ensure_zone(session, "Riga", "Old Town", price_modifier=1.5, exclusivity_flag=False)
    ensure_zone(session, "Amsterdam", "Centrum", price_modifier=1.8, exclusivity_flag=True)
    return {"admin": admin, "client": advertiser, "driver": driver_user}


def main() -> None:
    # Ensure tables exist (safe for SQLite dev)
    Base.metadata.create_all(bind=engine)

    session = SessionLocal()
    try:
        users = seed(session)
        session.commit()
        print("Seed completed: demo users, vehicle, device and zones upserted.")
        for role, user in users.items():
            print(f"  {role} token: {create_access_token(str(user.id), role)}")
        print(f"  device EPD-DEMO-0001 secret: {DEMO_DEVICE_SECRET}")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()

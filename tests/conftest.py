from datetime import date, datetime

import pytest

from barberbook.core import (
    AvailabilityCalculator,
    BookingService,
    BusinessHours,
    InMemoryAppointmentStore,
    InMemoryDirectory,
    ProviderProfile,
    ServiceSpec,
    ShopProfile,
)

MONDAY = date(2030, 1, 7)
SUNDAY = date(2030, 1, 13)
NOW = datetime(2030, 1, 1, 8, 0)

WEEK_9_TO_6 = {day: ("09:00", "18:00") for day in range(6)}  # Mon-Sat


def at(day: date, hhmm: str) -> datetime:
    hours, minutes = hhmm.split(":")
    return datetime(day.year, day.month, day.day, int(hours), int(minutes))


@pytest.fixture
def shop_hours():
    return BusinessHours.from_strings(WEEK_9_TO_6)


@pytest.fixture
def directory(shop_hours):
    d = InMemoryDirectory()
    d.add_shop(ShopProfile(id=1, name="Fade Street", hours=shop_hours, cancellation_cutoff_hours=48))
    d.add_shop(ShopProfile(id=2, name="Across Town", hours=shop_hours, cancellation_cutoff_hours=24))
    d.add_provider(ProviderProfile(id=1, shop_id=1, hours=shop_hours))
    d.add_provider(ProviderProfile(id=2, shop_id=1))
    d.add_provider(ProviderProfile(id=3, shop_id=2))
    d.add_service(ServiceSpec(id=1, shop_id=1, name="haircut", category="hair", duration_minutes=30))
    d.add_service(ServiceSpec(id=2, shop_id=1, name="cut_and_beard", category="hair", duration_minutes=45))
    d.add_service(ServiceSpec(id=3, shop_id=2, name="haircut", category="hair", duration_minutes=30))
    return d


@pytest.fixture
def store():
    return InMemoryAppointmentStore()


@pytest.fixture
def calculator():
    return AvailabilityCalculator()


@pytest.fixture
def booking(store, directory):
    return BookingService(store, directory, clock=lambda: NOW)


@pytest.fixture
def book(booking):
    """Create a 30 minute booking with barber 1 on MONDAY."""

    def _book(hhmm, provider_id=1, customer_id=100, service_id=1, day=MONDAY, shop_id=1):
        hours, minutes = hhmm.split(":")
        return booking.create_booking(
            customer_id, shop_id, provider_id, service_id, day, int(hours) * 60 + int(minutes),
        )

    return _book

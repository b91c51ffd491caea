from datetime import date, timedelta

import pytest

from booking import create_app, db
from booking.models.service import Service
from booking.models.user import ROLE_ADMIN, ROLE_CLIENT, ROLE_PROVIDER, User
from booking.scheduling.appointments import AppointmentEngine
from booking.scheduling.schedules import ScheduleStore
from booking.scheduling.slots import SlotManager


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SLOT_RELEASE_RETRIES': 2,
        'AUDIT_ENABLED': True,
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def users(app):
    provider = User('provider@example.com', 'Paula', 'Provider', role=ROLE_PROVIDER, provider_type='barber')
    other_provider = User('other@example.com', 'Omar', 'Other', role=ROLE_PROVIDER, provider_type='stylist')
    untyped_provider = User('untyped@example.com', 'Uma', 'Untyped', role=ROLE_PROVIDER)
    client = User('client@example.com', 'Carla', 'Client', role=ROLE_CLIENT)
    second_client = User('second@example.com', 'Sam', 'Second', role=ROLE_CLIENT)
    admin = User('admin@example.com', 'Ada', 'Admin', role=ROLE_ADMIN)
    db.session.add_all([provider, other_provider, untyped_provider, client, second_client, admin])
    db.session.commit()
    return {
        'provider': provider,
        'other_provider': other_provider,
        'untyped_provider': untyped_provider,
        'client': client,
        'second_client': second_client,
        'admin': admin,
    }


@pytest.fixture
def service(users):
    service = Service('Haircut', duration_minutes=30, price=25, provider_id=users['provider'].id)
    db.session.add(service)
    db.session.commit()
    return service


@pytest.fixture
def long_service(users):
    service = Service('Colouring', duration_minutes=60, price=80, provider_id=users['provider'].id)
    db.session.add(service)
    db.session.commit()
    return service


@pytest.fixture
def booking_day():
    """A Monday strictly in the future"""
    today = date.today()
    return today + timedelta(days=7 - today.weekday())


@pytest.fixture
def slots(app):
    return SlotManager()


@pytest.fixture
def engine(app, slots):
    return AppointmentEngine(slots=slots)


@pytest.fixture
def store(app):
    return ScheduleStore()


@pytest.fixture
def morning_slots(slots, users, service, booking_day):
    """Thirty-minute slots from 09:00 to 12:00 on the booking day"""
    return slots.generate_slots(users['provider'].id, service.id, booking_day, '09:00', '12:00')

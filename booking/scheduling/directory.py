"""
Narrow lookups the booking engine needs from the service catalogue and the
user directory. Both are owned by other subsystems; the default
implementations below read the local ``services`` and ``users`` tables, and
the engine accepts any object exposing the same methods.
"""

from flask import current_app

from booking import db
from booking.errors import ConflictError, ServiceNotFound, UserNotFound
from booking.models.service import Service
from booking.models.user import User
from booking.scheduling.policies import resolve_owner


class ServiceDirectory:
    """Service lookups: existence and duration"""

    def get_service(self, service_id):
        service = db.session.get(Service, service_id)
        if not service:
            raise ServiceNotFound(service_id=service_id)
        return service

    def get_duration(self, service_id):
        return self.get_service(service_id).duration_minutes

    def register_service(self, actor, name, duration_minutes, price=0, description=None, provider_id=None):
        """Create a service owned by the provider resolved from the acting user"""
        owner_id = resolve_owner(actor.role, actor.id, provider_id)

        existing = Service.query.filter_by(name=name, provider_id=owner_id).first()
        if existing:
            raise ConflictError(f"A service named '{name}' already exists", service_id=existing.id)

        service = Service(
            name=name,
            duration_minutes=duration_minutes,
            price=price,
            description=description,
            provider_id=owner_id
        )
        db.session.add(service)
        db.session.commit()

        current_app.logger.info(f"Service {service.id} '{name}' registered for provider {owner_id}")
        return service


class UserDirectory:
    """User lookups: identity, role and provider type"""

    def get_user(self, user_id):
        user = db.session.get(User, user_id)
        if not user:
            raise UserNotFound(user_id=user_id)
        return user

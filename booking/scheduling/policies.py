from booking.errors import AuthorizationError
from booking.models.user import ROLE_ADMIN, ROLE_PROVIDER


def resolve_owner(actor_role, actor_id, requested_owner_id=None):
    """
    Decide which provider owns a record created by the acting user.

    Providers always own what they create; admins may assign any provider
    (or none). Any other role is refused.
    """
    if actor_role == ROLE_PROVIDER:
        return actor_id
    if actor_role == ROLE_ADMIN:
        return requested_owner_id
    raise AuthorizationError(f"Role '{actor_role}' cannot register records for a provider")


def ensure_provider_scope(acting_user, provider_id):
    """Providers may only act on their own slots; admins and system calls are unrestricted"""
    if acting_user is None:
        return
    if acting_user.role == ROLE_PROVIDER and acting_user.id != provider_id:
        raise AuthorizationError("Providers cannot manage another provider's slots", provider_id=provider_id)

from flask import current_app
from booking.models.audit import AuditLog
from booking import db
from functools import wraps

def log_audit(action, entity_type, entity_id=None, details=None, user_id=None):
    """
    Log an audit entry

    Parameters:
    - action: The action performed (e.g., 'create', 'cancel', 'reserve')
    - entity_type: The type of entity affected (e.g., 'appointment', 'slot')
    - entity_id: ID of the affected entity (optional)
    - details: Additional details about the action (optional)
    - user_id: ID of the acting user, when known (optional)

    The entry is committed on its own; a failure is logged and reported by
    returning False, never raised to the caller.
    """
    if not current_app.config.get('AUDIT_ENABLED', True):
        return False

    try:
        audit_entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details
        )

        db.session.add(audit_entry)
        db.session.commit()

        return True
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to log audit entry: {e}")
        return False

def audit_log_decorator(action, entity_type, get_entity_id=None, get_details=None):
    """
    Decorator for automatically logging audit entries

    Parameters:
    - action: The action performed (e.g., 'create', 'update', 'delete')
    - entity_type: The type of entity affected (e.g., 'schedule', 'block')
    - get_entity_id: Function to extract entity_id from function args/kwargs/return value
                    Should accept (result, *args, **kwargs) parameters
    - get_details: Function to extract details from function args/kwargs/return value
                  Should accept (result, *args, **kwargs) parameters

    Example usage:

    @audit_log_decorator(
        action='create',
        entity_type='schedule',
        get_entity_id=lambda result, *args, **kwargs: result.id,
        get_details=lambda result, *args, **kwargs: {'staff_id': result.staff_id}
    )
    def create_schedule(self, staff_id, ...):
        # Function implementation
        return schedule
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                # Execute the original function
                result = func(*args, **kwargs)
            except Exception as e:
                # Still try to log the failure
                log_audit(
                    action=f"{action}_failed",
                    entity_type=entity_type,
                    details={"error": str(e)}
                )
                # Re-raise the exception
                raise

            # Extract entity_id if provided
            entity_id = None
            if get_entity_id:
                try:
                    entity_id = get_entity_id(result, *args, **kwargs)
                except Exception as e:
                    current_app.logger.error(f"Error extracting entity_id for audit log: {e}")

            # Extract details if provided
            details = None
            if get_details:
                try:
                    details = get_details(result, *args, **kwargs)
                except Exception as e:
                    current_app.logger.error(f"Error extracting details for audit log: {e}")

            # Log the audit entry
            log_audit(action, entity_type, entity_id, details)

            return result
        return wrapper
    return decorator

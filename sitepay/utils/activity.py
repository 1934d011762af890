import logging

from sqlalchemy.orm import Session
from sitepay.db.models.activity import ActivityLog
from sitepay.db.models.user import User

logger = logging.getLogger(__name__)

def log_activity(
    db: Session,
    user: User,
    action: str,
    entity_type: str,
    entity_id: int = None,
    details: str = None
):
    """
    Records an activity in the audit log.

    :param db: Database session
    :param user: The User object performing the action
    :param action: String describing action (e.g. PUBLISH, APPROVE, PAY)
    :param entity_type: String describing resource (e.g. SNAPSHOT, TAX_RATE)
    :param entity_id: ID of the resource
    :param details: Optional string or textual JSON with more info
    """
    try:
        activity = ActivityLog(
            user_id=user.id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
        db.add(activity)
        db.commit()
    except Exception:
        # The audited change is already committed; a failed audit row must not undo it
        logger.exception("Error logging activity %s %s %s", action, entity_type, entity_id)
        db.rollback()

import logging

from app.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="app.tasks.access_codes.purge_expired_recovery_codes", ignore_result=True
)
def purge_expired_recovery_codes() -> None:
    from app.db import SessionLocal
    from app.services.access_codes import recovery_codes

    db = SessionLocal()
    try:
        recovery_codes.purge_expired(db)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to purge recovery codes: %s", e)
    finally:
        db.close()


@celery_app.task(
    name="app.tasks.access_codes.purge_expired_identities", ignore_result=True
)
def purge_expired_identities() -> None:
    """Periodic cleanup of anonymous identities past their expiry."""
    from app.db import SessionLocal
    from app.services.access_codes import identity_codes

    db = SessionLocal()
    try:
        identity_codes.purge_expired(db)
    except Exception as e:
        db.rollback()
        logger.exception("Failed to purge anonymous identities: %s", e)
    finally:
        db.close()

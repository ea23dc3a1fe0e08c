from contextlib import contextmanager
import logging
from models import db

@contextmanager
def transactional(message="DB transaction failed"):
    """Context manager to wrap a database transaction.

    Everything flushed inside the block is committed together; any exception
    rolls the whole unit back and is re-raised.
    """
    from app.errors import AppError

    try:
        yield
        db.session.commit()
    except AppError as e:
        logging.warning(f"{message}: [%s] %s", e.kind, e.message)
        db.session.rollback()
        raise
    except Exception as e:
        logging.error(f"{message}: %s", e, exc_info=True)
        db.session.rollback()
        raise

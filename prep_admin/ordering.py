"""
Ordered child collections: curriculum items, test sections, questions,
path items and exercise questions.

Every place that appends, removes or reorders a child goes through this
module. Positions are 1-based and contiguous within a scope (the parent id,
plus the week for curriculum items). A UNIQUE constraint on
``(scope..., position)`` backs each model, so two writers racing on the same
parent can never both keep the same position: the loser's insert fails, its
transaction is rolled back and the append is retried against the new
maximum.
"""

import logging

from flask import current_app
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_random_exponential

from prep_admin.errors import NotFoundError, OrderingConflict, StoreError
from prep_admin.extensions import db

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 20


class OrderedMixin:
    """Declares how a model is positioned among its siblings.

    ``__order_column__``  attribute holding the 1-based position
    ``__order_scope__``   attributes identifying the sibling group
    ``__order_parent__``  ``(attribute, ParentModel)`` locked while the group changes
    """

    __order_column__ = "order"
    __order_scope__ = ()
    __order_parent__ = None

    @property
    def position(self):
        return getattr(self, self.__order_column__)

    def order_scope(self):
        return {name: getattr(self, name) for name in self.__order_scope__}


def _position_column(model):
    return getattr(model, model.__order_column__)


def _scope_filter(model, scope):
    return [getattr(model, name) == scope.get(name) for name in model.__order_scope__]


def next_position(model, scope):
    """MAX(position) + 1 within ``scope`` (1 for an empty scope)."""
    column = _position_column(model)
    stmt = select(func.coalesce(func.max(column), 0)).where(*_scope_filter(model, scope))
    return db.session.scalar(stmt) + 1


def _lock_parent(model, scope):
    if not model.__order_parent__:
        return
    attr, parent_model = model.__order_parent__
    parent_id = scope.get(attr)
    if parent_id is None:
        raise NotFoundError()
    stmt = select(parent_model.id).where(parent_model.id == parent_id).with_for_update()
    if db.session.execute(stmt).scalar_one_or_none() is None:
        raise NotFoundError()


def _position_taken(model, scope, position):
    column = _position_column(model)
    stmt = select(func.count()).select_from(model).where(*_scope_filter(model, scope), column == position)
    return db.session.scalar(stmt) > 0


def _is_lock_error(exc):
    text = str(getattr(exc, "orig", exc)).lower()
    return "locked" in text or "deadlock" in text or "could not serialize" in text


class _Contended(Exception):
    """A concurrent writer took the position or held the lock; worth retrying."""


def _insert_at_end(model, scope, values):
    position = None
    try:
        _lock_parent(model, scope)
        position = next_position(model, scope)
        row = model(**values)
        setattr(row, model.__order_column__, position)
        db.session.add(row)
        db.session.commit()
        return row
    except NotFoundError:
        db.session.rollback()
        raise
    except IntegrityError as e:
        db.session.rollback()
        if position is None or not _position_taken(model, scope, position):
            logger.error("Integrity error appending %s: %s", model.__name__, e)
            raise StoreError.from_exception(e) from e
        logger.info("Position %s of %s %s taken by a concurrent writer", position, model.__name__, scope)
        raise _Contended(str(e)) from e
    except OperationalError as e:
        db.session.rollback()
        if not _is_lock_error(e):
            logger.error("Database error appending %s: %s", model.__name__, e)
            raise StoreError.from_exception(e) from e
        logger.info("Lock contention appending %s to %s", model.__name__, scope)
        raise _Contended(str(e)) from e
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Database error appending %s: %s", model.__name__, e)
        raise StoreError.from_exception(e) from e


def append_ordered(model, **values):
    """Insert a ``model`` row at the end of its scope and commit it.

    The parent row is locked (``SELECT ... FOR UPDATE`` where the database
    supports it), the next position is computed and the row inserted in one
    transaction. A position collision with a concurrent writer rolls back
    and retries; once ``ORDER_RETRY_ATTEMPTS`` is exhausted an
    ``OrderingConflict`` is raised. Any other integrity failure surfaces as a
    ``StoreError``.
    """
    scope = {name: values.get(name) for name in model.__order_scope__}
    attempts = current_app.config.get("ORDER_RETRY_ATTEMPTS", DEFAULT_ATTEMPTS)
    retrying = Retrying(
        retry=retry_if_exception_type(_Contended),
        wait=wait_random_exponential(multiplier=0.005, max=0.2),
        stop=stop_after_attempt(attempts),
        reraise=True,
    )
    try:
        return retrying(_insert_at_end, model, scope, values)
    except _Contended as e:
        logger.error("Gave up appending %s to %s after %d attempts", model.__name__, scope, attempts)
        raise OrderingConflict(detail=str(e)) from e


def remove_ordered(row):
    """Delete ``row`` and close the gap it leaves among its siblings."""
    model = type(row)
    scope = row.order_scope()
    removed_at = row.position
    column = _position_column(model)
    try:
        _lock_parent(model, scope)
        db.session.delete(row)
        db.session.flush()
        # Two passes keep the UNIQUE constraint satisfied after every
        # statement: shifted rows are parked on negative positions first.
        db.session.execute(
            update(model)
            .where(*_scope_filter(model, scope), column > removed_at)
            .values({column: -(column - 1)})
            .execution_options(synchronize_session=False)
        )
        db.session.execute(
            update(model)
            .where(*_scope_filter(model, scope), column < 0)
            .values({column: -column})
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
    except NotFoundError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error removing %s from %s: %s", model.__name__, scope, e)
        raise StoreError.from_exception(e) from e


def siblings(model, scope):
    column = _position_column(model)
    return db.session.scalars(
        select(model).where(*_scope_filter(model, scope)).order_by(column, model.id)
    ).all()


def move_ordered(row, direction):
    """Swap ``row`` with its neighbour; ``direction`` is "up" or "down".

    Returns False when the row already sits at that edge.
    """
    if direction not in ("up", "down"):
        raise ValueError(f"Unknown direction: {direction!r}")
    model = type(row)
    attr = model.__order_column__
    scope = row.order_scope()
    current = row.position
    target = current - 1 if direction == "up" else current + 1
    try:
        _lock_parent(model, scope)
        neighbour = db.session.scalars(
            select(model).where(*_scope_filter(model, scope), _position_column(model) == target)
        ).first()
        if neighbour is None:
            # Releases the parent lock
            db.session.rollback()
            return False
        setattr(row, attr, -current)
        db.session.flush()
        setattr(neighbour, attr, current)
        db.session.flush()
        setattr(row, attr, target)
        db.session.commit()
    except NotFoundError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error moving %s %s: %s", model.__name__, row.id, e)
        raise StoreError.from_exception(e) from e
    return True


def renumber(model, scope):
    """Compact the positions within ``scope`` to 1..N, keeping current order."""
    attr = model.__order_column__
    rows = siblings(model, scope)
    try:
        for index, row in enumerate(rows, start=1):
            setattr(row, attr, -index)
        db.session.flush()
        for index, row in enumerate(rows, start=1):
            setattr(row, attr, index)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error renumbering %s %s: %s", model.__name__, scope, e)
        raise StoreError.from_exception(e) from e
    return rows

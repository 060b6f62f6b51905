# jewellers/store.py
"""Constraint-enforcing access to the jewellery schema.

Every write runs in one transaction. Before anything is flushed the store
checks foreign-key parents, unique keys and bounded string lengths; deletes
walk the tables that reference the row and apply the ``ondelete`` policy
declared on each foreign key. The database carries the same constraints, so
a concurrent writer that wins a race is still rejected, and its
IntegrityError is translated into the same errors.
"""
import enum
from contextlib import contextmanager

from sqlalchemy import and_, delete, func, or_, select, update, inspect as sa_inspect
from sqlalchemy import String, UniqueConstraint
from sqlalchemy.exc import IntegrityError

from .errors import (
    StoreError, NotFound, UniquenessError, ReferentialIntegrityError,
    DomainConstraintError, from_integrity_error,
)
from .logger import Logger
from .models import db

logger = Logger.get_logger(__name__)

RESTRICT = 'RESTRICT'
CASCADE = 'CASCADE'
SET_NULL = 'SET NULL'


def delete_policy(fk):
    # NO ACTION and an absent clause both block the delete
    policy = (fk.ondelete or RESTRICT).upper()
    return RESTRICT if policy == 'NO ACTION' else policy


def unique_keys(table):
    """Every column tuple of ``table`` that must be unique."""
    keys = []
    if len(table.primary_key.columns) > 1:
        keys.append(tuple(table.primary_key.columns))
    for column in table.columns:
        if column.unique:
            keys.append((column,))
    for constraint in table.constraints:
        if isinstance(constraint, UniqueConstraint):
            keys.append(tuple(constraint.columns))

    seen, distinct = set(), []
    for key in keys:
        names = tuple(column.name for column in key)
        if names not in seen:
            seen.add(names)
            distinct.append(key)
    return distinct


def referencing(table):
    """Yield ``(child_table, foreign_key)`` for every foreign key pointing at ``table``."""
    for child in table.metadata.sorted_tables:
        for fk in child.foreign_keys:
            if fk.references(table):
                yield child, fk


def matches(column, value):
    # unique text keys compare case-insensitively
    if isinstance(value, str) and not isinstance(value, enum.Enum) and isinstance(column.type, String):
        return func.lower(column) == value.lower()
    return column == value


def key_clause(table, keys):
    columns = list(table.primary_key.columns)
    return or_(*(and_(*(column == value for column, value in zip(columns, key))) for key in keys))


class Store:

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    # reads

    def get(self, model, ident):
        obj = self.session.get(model, ident)
        if obj is None:
            raise NotFound(f'{model.__name__} {ident} not found')
        return obj

    def list(self, model, filters=None, limit=None, offset=0):
        """Return ``(rows, total)`` for ``model`` matching equality ``filters``."""
        stmt = select(model)
        for name, value in (filters or {}).items():
            stmt = stmt.where(getattr(model, name) == value)
        total = self.session.scalar(select(func.count()).select_from(stmt.subquery()))
        stmt = stmt.order_by(*sa_inspect(model).primary_key)
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return self.session.scalars(stmt).all(), total

    # writes

    def create(self, model, **values):
        with self.transaction('create', model):
            obj = model(**values)
            self.check(obj)
            self.session.add(obj)
        logger.info(f'Created {model.__name__} {self.identity(obj)}')
        return obj

    def update(self, model, ident, **values):
        obj = self.get(model, ident)
        with self.transaction('update', model):
            for name, value in values.items():
                setattr(obj, name, value)
            self.check(obj)
        logger.info(f'Updated {model.__name__} {ident}: {sorted(values)}')
        return obj

    def delete(self, model, ident):
        obj = self.get(model, ident)
        table = obj.__table__
        key = tuple(getattr(obj, column.key) for column in table.primary_key.columns)
        with self.transaction('delete', model):
            self.remove(table, [key])
            # the row is gone; detach it so callers can still read its fields
            self.session.expunge(obj)
        logger.info(f'Deleted {model.__name__} {ident}')

    @contextmanager
    def transaction(self, action, model):
        try:
            yield
            self.session.commit()
        except StoreError as exc:
            self.session.rollback()
            logger.warning(f'Rejected {action} of {model.__name__}: {exc.message}')
            raise
        except IntegrityError as exc:
            self.session.rollback()
            error = from_integrity_error(exc)
            logger.warning(f'Database rejected {action} of {model.__name__}: {error.message}')
            raise error from exc
        except Exception:
            self.session.rollback()
            raise

    # constraint checks

    def check(self, obj):
        table = obj.__table__
        with self.session.no_autoflush:
            self.check_lengths(obj, table)
            self.check_parents(obj, table)
            self.check_unique(obj, table)

    def check_lengths(self, obj, table):
        for column in table.columns:
            if not isinstance(column.type, String) or column.type.length is None:
                continue
            value = getattr(obj, column.key)
            if isinstance(value, str) and len(value) > column.type.length:
                raise DomainConstraintError(
                    f'{table.name}.{column.name} is limited to {column.type.length} characters'
                )

    def check_parents(self, obj, table):
        for fk in table.foreign_keys:
            value = getattr(obj, fk.parent.key)
            if value is None:
                continue
            parent = fk.column
            found = self.session.execute(select(parent).where(parent == value).limit(1)).first()
            if found is None:
                raise ReferentialIntegrityError(
                    f'{table.name}.{fk.parent.name} references missing {parent.table.name} {value}'
                )

    def check_unique(self, obj, table):
        own = sa_inspect(obj).identity
        for key in unique_keys(table):
            values = [getattr(obj, column.key) for column in key]
            if any(value is None for value in values):
                continue
            stmt = select(*table.primary_key.columns).where(
                and_(*(matches(column, value) for column, value in zip(key, values)))
            )
            for row in self.session.execute(stmt):
                if own is None or tuple(row) != tuple(own):
                    names = ', '.join(column.name for column in key)
                    raise UniquenessError(f'{table.name} ({names}) already exists')

    # delete policy

    def remove(self, table, keys):
        """Delete ``keys`` from ``table`` after applying the policy of every
        foreign key that references those rows."""
        for child, fk in referencing(table):
            parents = select(fk.column).where(key_clause(table, keys))
            dependents = fk.parent.in_(parents.scalar_subquery())
            policy = delete_policy(fk)

            if policy == CASCADE:
                rows = [tuple(row) for row in self.session.execute(
                    select(*child.primary_key.columns).where(dependents)
                )]
                if rows:
                    logger.debug(f'Cascading delete to {len(rows)} {child.name} rows')
                    self.remove(child, rows)
            elif policy == SET_NULL:
                self.session.execute(
                    update(child).where(dependents).values({fk.parent.name: None})
                )
            else:
                count = self.session.scalar(select(func.count()).select_from(child).where(dependents))
                if count:
                    raise ReferentialIntegrityError(
                        f'{table.name} is still referenced by {count} {child.name} rows'
                    )

        self.session.execute(delete(table).where(key_clause(table, keys)))

    @staticmethod
    def identity(obj):
        ident = sa_inspect(obj).identity
        if ident is None:
            return None
        return ident[0] if len(ident) == 1 else ident

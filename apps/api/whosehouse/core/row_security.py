"""
Row-level security for ORM queries.

Each protected table registers a RowPolicy. List and detail reads go
through PolicyRegistry.scoped_query(), which applies the policy's
visibility filter for the calling identity.

Helper predicates that policies rely on (role lookup, household lookup)
read protected tables themselves. Those reads run inside privileged(),
which skips policy evaluation entirely, so a predicate is never subject
to the check it is helping to evaluate. The evaluation guard turns any
accidental cycle (a policy re-entering its own table) into a
PolicyRecursionError instead of unbounded recursion.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from sqlalchemy import false
from sqlalchemy.orm import Query, Session
from sqlalchemy.sql.elements import ColumnElement


_privileged: ContextVar[bool] = ContextVar("row_security_privileged", default=False)
_evaluating: ContextVar[tuple[str, ...]] = ContextVar("row_security_evaluating", default=())


class PolicyRecursionError(RuntimeError):
    """A row policy was re-entered while it was already being evaluated."""

    def __init__(self, table: str, stack: tuple[str, ...]):
        self.table = table
        self.stack = stack
        chain = " -> ".join(stack + (table,))
        super().__init__(f"Row policy recursion detected: {chain}")


class PolicyNotRegisteredError(KeyError):
    """No row policy exists for the requested table."""


@contextmanager
def privileged() -> Iterator[None]:
    """Run the enclosed reads without row policy evaluation."""
    token = _privileged.set(True)
    try:
        yield
    finally:
        _privileged.reset(token)


def is_privileged() -> bool:
    return _privileged.get()


@contextmanager
def evaluating(table: str) -> Iterator[None]:
    """Mark a table's policy as in-flight; re-entry raises PolicyRecursionError."""
    stack = _evaluating.get()
    if table in stack:
        raise PolicyRecursionError(table, stack)
    token = _evaluating.set(stack + (table,))
    try:
        yield
    finally:
        _evaluating.reset(token)


VisibleFn = Callable[[Session, Any], ColumnElement | None]
WriteFn = Callable[[Session, Any, Any], bool]


@dataclass(frozen=True)
class RowPolicy:
    """
    Visibility and write rules for one table.

    visible(db, identity) returns a SQL filter, or None for unrestricted.
    can_write(db, identity, row) decides mutations; tables without it are
    read-only through the policy layer.
    """

    table: str
    visible: VisibleFn
    can_write: WriteFn | None = None


class PolicyRegistry:
    """Table name -> RowPolicy lookup with recursion-safe evaluation."""

    def __init__(self):
        self._policies: dict[str, RowPolicy] = {}

    def register(self, policy: RowPolicy) -> RowPolicy:
        self._policies[policy.table] = policy
        return policy

    def get(self, table: str) -> RowPolicy:
        try:
            return self._policies[table]
        except KeyError:
            raise PolicyNotRegisteredError(table) from None

    def tables(self) -> list[str]:
        return sorted(self._policies)

    def visible_filter(self, db: Session, identity, table: str) -> ColumnElement | None:
        """SQL filter for rows of `table` the identity may see (None = all)."""
        if is_privileged():
            return None
        policy = self.get(table)
        with evaluating(table):
            return policy.visible(db, identity)

    def scoped_query(self, db: Session, identity, model) -> Query:
        """db.query(model) restricted by the model's row policy."""
        query = db.query(model)
        clause = self.visible_filter(db, identity, model.__tablename__)
        if clause is not None:
            query = query.filter(clause)
        return query

    def can_write(self, db: Session, identity, row) -> bool:
        if is_privileged():
            return True
        table = row.__tablename__
        policy = self.get(table)
        if policy.can_write is None:
            return False
        with evaluating(table):
            return bool(policy.can_write(db, identity, row))


def deny() -> ColumnElement:
    """Filter that matches no rows."""
    return false()

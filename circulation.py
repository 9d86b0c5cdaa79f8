"""Borrow and return transactions.

Both operations run inside a single transaction_scope() and rely on
conditional UPDATEs with an affected-row check rather than read-then-write,
so concurrent requests for the last copy of a book cannot both succeed and
a loan cannot be closed twice. For every book,

    quantity_available + outstanding loans == total_copies

holds before and after each call.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Optional

from flask import current_app
from sqlalchemy import insert, select, update

from database import transaction_scope
from errors import NotFoundOrAlreadyReturned, Unavailable
from models import LIBRARIAN, MEMBER, Book, Loan

logger = logging.getLogger(__name__)

DEFAULT_LOAN_PERIOD_DAYS = 14

books = Book.__table__
loans = Loan.__table__


@dataclass
class LoanRecord:
    loan_id: int
    book_id: int
    user_id: int
    loan_date: date
    due_date: date
    return_date: Optional[date] = None
    returned_by: Optional[int] = None

    @classmethod
    def from_row(cls, row):
        return cls(
            loan_id=row.loan_id,
            book_id=row.book_id,
            user_id=row.user_id,
            loan_date=row.loan_date,
            due_date=row.due_date,
            return_date=row.return_date,
            returned_by=row.returned_by,
        )

    @property
    def is_outstanding(self):
        return self.return_date is None

    def to_dict(self):
        return {
            'loan_id': self.loan_id,
            'book_id': self.book_id,
            'user_id': self.user_id,
            'loan_date': self.loan_date.isoformat(),
            'due_date': self.due_date.isoformat(),
            'return_date': self.return_date.isoformat() if self.return_date else None,
            'returned_by': self.returned_by,
        }


def today():
    return datetime.now(timezone.utc).date()


def loan_period():
    return timedelta(days=current_app.config.get('LOAN_PERIOD_DAYS', DEFAULT_LOAN_PERIOD_DAYS))


def _take_copy(conn, book_id):
    result = conn.execute(
        update(books)
        .where(books.c.book_id == book_id, books.c.quantity_available > 0)
        .values(quantity_available=books.c.quantity_available - 1)
    )
    return result.rowcount == 1


def _insert_loan(conn, book_id, user_id, loan_date, due_date):
    result = conn.execute(
        insert(loans).values(
            book_id=book_id,
            user_id=user_id,
            loan_date=loan_date,
            due_date=due_date,
            return_date=None,
        )
    )
    return result.inserted_primary_key[0]


def borrow_book(book_id, identity):
    """Lend one copy of ``book_id`` to the caller.

    Raises Unavailable when no copy is left (or the book does not exist);
    in that case nothing is written.
    """
    identity.require(MEMBER)
    loan_date = today()
    due_date = loan_date + loan_period()
    with transaction_scope() as conn:
        if not _take_copy(conn, book_id):
            logger.debug(f"Book unavailable: book_id={book_id}")
            raise Unavailable()
        loan_id = _insert_loan(conn, book_id, identity.user_id, loan_date, due_date)
    logger.debug(f"Book borrowed: book_id={book_id} by user_id={identity.user_id}, loan_id={loan_id}")
    return LoanRecord(loan_id, book_id, identity.user_id, loan_date, due_date)


def return_loan(loan_id, identity):
    """Close an outstanding loan and put the copy back on the shelf.

    Not idempotent: a loan that is missing or already returned raises
    NotFoundOrAlreadyReturned.
    """
    identity.require(LIBRARIAN)
    return_date = today()
    with transaction_scope() as conn:
        closed = conn.execute(
            update(loans)
            .where(loans.c.loan_id == loan_id, loans.c.return_date.is_(None))
            .values(return_date=return_date, returned_by=identity.user_id)
        )
        if closed.rowcount != 1:
            logger.debug(f"Invalid loan for return: loan_id={loan_id}")
            raise NotFoundOrAlreadyReturned()
        row = conn.execute(select(loans).where(loans.c.loan_id == loan_id)).one()
        conn.execute(
            update(books)
            .where(books.c.book_id == row.book_id)
            .values(quantity_available=books.c.quantity_available + 1)
        )
    logger.debug(f"Book returned: loan_id={loan_id}, book_id={row.book_id}, librarian_id={identity.user_id}")
    return LoanRecord.from_row(row)


def get_loan(loan_id):
    with transaction_scope() as conn:
        row = conn.execute(select(loans).where(loans.c.loan_id == loan_id)).first()
    return LoanRecord.from_row(row) if row else None


def overdue_loans(as_of=None):
    """Outstanding loans whose due date has passed."""
    as_of = as_of or today()
    with transaction_scope() as conn:
        rows = conn.execute(
            select(loans)
            .where(loans.c.return_date.is_(None), loans.c.due_date < as_of)
            .order_by(loans.c.due_date)
        ).all()
    return [LoanRecord.from_row(row) for row in rows]

"""Book catalog maintenance for librarians."""
import logging

from sqlalchemy import delete, exists, update
from sqlalchemy.exc import SQLAlchemyError

from database import transaction_scope
from errors import BookInUse, BookNotFound, InvalidRequest, StorageFailure
from extensions import db
from models import Book, Loan

logger = logging.getLogger(__name__)

books = Book.__table__


def _validate(data):
    if not data or not all(key in data for key in ['title', 'author', 'quantity_available']):
        raise InvalidRequest('Missing required fields')
    title = str(data['title']).strip()
    author = str(data['author']).strip()
    if not title or not author:
        raise InvalidRequest('Title and author are required')
    raw = data['quantity_available']
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise InvalidRequest('quantity_available must be an integer')
    try:
        quantity = int(raw)
    except (TypeError, ValueError):
        raise InvalidRequest('quantity_available must be an integer') from None
    if quantity < 0:
        raise InvalidRequest('quantity_available cannot be negative')
    return title, author, quantity


def list_books(search=''):
    query = Book.query
    if search:
        query = query.filter(Book.title.ilike(f'%{search}%') | Book.author.ilike(f'%{search}%'))
    return query.order_by(Book.title.asc()).all()


def get_book(book_id):
    book = db.session.get(Book, book_id)
    if book is None:
        raise BookNotFound()
    return book


def add_book(data):
    title, author, quantity = _validate(data)
    book = Book(title=title, author=author, total_copies=quantity, quantity_available=quantity)
    try:
        db.session.add(book)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error adding book: {str(e)}")
        db.session.rollback()
        raise StorageFailure('Error adding book.') from e
    logger.debug(f"Book added: {title} (book_id={book.book_id})")
    return book


def update_book(book_id, data):
    """Edit a book. Changing quantity_available moves total_copies by the
    same amount, so copies currently on loan stay accounted for."""
    title, author, quantity = _validate(data)
    with transaction_scope() as conn:
        result = conn.execute(
            update(books)
            .where(books.c.book_id == book_id)
            .values(
                title=title,
                author=author,
                total_copies=books.c.total_copies + (quantity - books.c.quantity_available),
                quantity_available=quantity,
            )
        )
        if result.rowcount != 1:
            raise BookNotFound()
    logger.debug(f"Book updated: book_id={book_id}")


def delete_book(book_id):
    get_book(book_id)
    loans = Loan.__table__
    with transaction_scope() as conn:
        # Loans are never deleted, so a book with any loan history stays
        result = conn.execute(
            delete(books)
            .where(books.c.book_id == book_id)
            .where(~exists().where(loans.c.book_id == book_id))
        )
        if result.rowcount != 1:
            logger.debug(f"Book has loans, not deleting: book_id={book_id}")
            raise BookInUse()
    logger.debug(f"Book deleted: book_id={book_id}")

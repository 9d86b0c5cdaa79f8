import pytest

import catalog
from catalog import add_book, delete_book, get_book
from circulation import borrow_book, return_loan
from errors import BookInUse, BookNotFound, InvalidRequest
from extensions import db
from models import LIBRARIAN, MEMBER, Book


@pytest.mark.parametrize('quantity', [True, False, 2.5, 'three', None])
def test_add_book_rejects_non_integer_quantity(ctx, quantity):
    with pytest.raises(InvalidRequest):
        add_book({'title': 'Dune', 'author': 'Herbert', 'quantity_available': quantity})

    assert Book.query.count() == 0


def test_add_book_accepts_integral_values(ctx):
    assert add_book({'title': 'Dune', 'author': 'Herbert', 'quantity_available': 2.0}).total_copies == 2
    assert add_book({'title': 'Emma', 'author': 'Austen', 'quantity_available': '3'}).total_copies == 3


def test_delete_book_without_loans(ctx, make_book):
    book_id = make_book(1)

    delete_book(book_id)
    db.session.remove()

    with pytest.raises(BookNotFound):
        get_book(book_id)


def test_delete_unknown_book(ctx):
    with pytest.raises(BookNotFound):
        delete_book(999)


def test_returned_loans_still_block_delete(ctx, make_user, make_book, book_state):
    member = make_user('member')
    librarian = make_user('librarian', roles=(MEMBER, LIBRARIAN))
    book_id = make_book(1)
    loan = borrow_book(book_id, member)
    return_loan(loan.loan_id, librarian)

    with pytest.raises(BookInUse):
        delete_book(book_id)

    db.session.remove()
    assert get_book(book_id).title == 'Clean Code'
    assert book_state(book_id).loans == 1


def test_loan_opened_after_lookup_blocks_delete(ctx, make_user, make_book, book_state, monkeypatch):
    member = make_user('member')
    book_id = make_book(1)
    lookup = catalog.get_book

    def lookup_then_borrow(book_id):
        # Another request borrows the book between the lookup and the delete
        book = lookup(book_id)
        borrow_book(book_id, member)
        return book

    monkeypatch.setattr(catalog, 'get_book', lookup_then_borrow)

    with pytest.raises(BookInUse):
        delete_book(book_id)

    state = book_state(book_id)
    assert state.outstanding == 1
    assert state.quantity_available == 0

from types import SimpleNamespace

import pytest
from sqlalchemy import func, select

from app import create_app
from auth import create_user, load_identity
from catalog import add_book
from database import ensure_roles
from extensions import db
from models import MEMBER, Book, Loan, Role, user_roles

PASSWORD = 'secret123'


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    # A file database so concurrent connections see each other's commits
    db_file = tmp_path_factory.mktemp('data') / 'library_test.db'
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_file}',
        'SECRET_KEY': 'test-secret',
        'SESSION_COOKIE_SECURE': False,
        'SCHEDULER_ENABLED': False,
        'LOG_LEVEL': 'WARNING',
    })
    yield app
    with app.app_context():
        db.engine.dispose()


@pytest.fixture(autouse=True)
def clean_db(app):
    with app.app_context():
        db.drop_all()
        db.create_all()
        ensure_roles()
        db.session.remove()
    yield


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(username, roles=(MEMBER,)):
        with app.app_context():
            user = create_user(username, f'{username}@example.com', PASSWORD, roles)
            return load_identity(user.user_id)
    return _make


@pytest.fixture
def make_book(app):
    def _make(quantity, title='Clean Code', author='Robert C. Martin'):
        with app.app_context():
            book = add_book({'title': title, 'author': author, 'quantity_available': quantity})
            return book.book_id
    return _make


@pytest.fixture
def book_state(app):
    """Read a book's counters straight from the database."""
    books = Book.__table__
    loans = Loan.__table__

    def _state(book_id):
        with app.app_context():
            with db.engine.connect() as conn:
                book = conn.execute(select(books).where(books.c.book_id == book_id)).one()
                outstanding = conn.execute(
                    select(func.count()).select_from(loans)
                    .where(loans.c.book_id == book_id, loans.c.return_date.is_(None))
                ).scalar_one()
                total_loans = conn.execute(
                    select(func.count()).select_from(loans).where(loans.c.book_id == book_id)
                ).scalar_one()
        return SimpleNamespace(
            quantity_available=book.quantity_available,
            total_copies=book.total_copies,
            outstanding=outstanding,
            loans=total_loans,
        )
    return _state


@pytest.fixture
def role_id(app):
    def _role_id(name):
        with app.app_context():
            with db.engine.connect() as conn:
                roles = Role.__table__
                return conn.execute(select(roles.c.role_id).where(roles.c.role_name == name)).scalar_one()
    return _role_id


@pytest.fixture
def roles_of(app):
    def _roles_of(user_id):
        with app.app_context():
            with db.engine.connect() as conn:
                roles = Role.__table__
                rows = conn.execute(
                    select(roles.c.role_name)
                    .join(user_roles, user_roles.c.role_id == roles.c.role_id)
                    .where(user_roles.c.user_id == user_id)
                ).scalars()
                return set(rows)
    return _roles_of


@pytest.fixture
def login(client):
    def _login(username, password=PASSWORD):
        return client.post('/api/login', json={'username': username, 'password': password})
    return _login

from app import create_app
from auth import create_user, load_identity
from catalog import add_book
from circulation import borrow_book
from database import ensure_roles
from errors import LibraryError
from extensions import db
from models import ADMIN, LIBRARIAN, MEMBER

app = create_app({'SCHEDULER_ENABLED': False})

with app.app_context():
    # Reset the database
    db.drop_all()
    db.create_all()
    ensure_roles()
    print("🔄 Database reset")

    # Insert Users
    users = [
        {"username": "admin", "email": "admin@example.com", "password": "admin123", "roles": (MEMBER, LIBRARIAN, ADMIN)},
        {"username": "librarian", "email": "librarian@example.com", "password": "librarian123", "roles": (MEMBER, LIBRARIAN)},
        {"username": "member", "email": "member@example.com", "password": "member123", "roles": (MEMBER,)},
    ]
    created = {}
    for u in users:
        created[u["username"]] = create_user(u["username"], u["email"], u["password"], u["roles"])
    print("✅ Users inserted")

    # Insert Books
    books = [
        {"title": "Python Programming", "author": "John Zelle", "quantity_available": 5},
        {"title": "Flask Web Development", "author": "Miguel Grinberg", "quantity_available": 3},
        {"title": "Clean Code", "author": "Robert C. Martin", "quantity_available": 2},
    ]
    added = [add_book(b) for b in books]
    print("✅ Books inserted")

    # Insert a sample loan
    member = load_identity(created["member"].user_id)
    try:
        loan = borrow_book(added[0].book_id, member)
        print(f"✅ Loan inserted: {member.username} borrowed '{added[0].title}' (due {loan.due_date})")
    except LibraryError as e:
        print(f"⚠️ Could not insert loan: {e.message}")

import logging

from flask import Blueprint, jsonify, request, session
from sqlalchemy.sql import text

import catalog
from auth import authenticate, create_user, login_required, no_cache
from circulation import borrow_book, return_loan
from database import retry_db_operation
from extensions import db
from models import ADMIN, LIBRARIAN, MEMBER, Book, Loan, User
from roles import all_roles, list_users_with_roles, update_roles

logger = logging.getLogger(__name__)

api = Blueprint('api', __name__)


@api.route('/')
def home():
    return jsonify({"message": "Library Management System Backend"})


@api.route('/api/health', methods=['GET'])
@retry_db_operation()
def health():
    db.session.execute(text('SELECT 1')).scalar()
    return jsonify({'message': 'Database connection successful'}), 200


@api.route('/api/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    if not all(data.get(key) and isinstance(data[key], str) for key in ['username', 'email', 'password']):
        return jsonify({'error': 'Missing required fields'}), 400
    create_user(data['username'], data['email'], data['password'])
    return jsonify({'success': True, 'message': 'User registered successfully.'}), 201


@api.route('/api/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    if not all(data.get(key) and isinstance(data[key], str) for key in ['username', 'password']):
        logger.error("Invalid login payload")
        return jsonify({'error': 'Missing username or password'}), 400
    user = authenticate(data['username'], data['password'])
    if user is None:
        return jsonify({'success': False, 'error': 'Invalid username or password.'}), 401
    session.clear()
    session['user_id'] = user.user_id
    logger.debug(f"Session created for user: {user.username}")
    return jsonify({
        'success': True,
        'user': {'id': user.user_id, 'username': user.username, 'roles': user.role_names},
    }), 200


@api.route('/api/logout', methods=['POST'])
def logout():
    session.clear()
    logger.debug("User logged out")
    return jsonify({'success': True, 'message': 'Logged out successfully'}), 200


@api.route('/api/books', methods=['GET'])
@login_required()
@no_cache
@retry_db_operation()
def get_books(identity):
    books = catalog.list_books(request.args.get('search', ''))
    logger.debug(f"Fetched {len(books)} books")
    return jsonify({'books': [b.to_dict() for b in books], 'user': identity.to_dict()})


@api.route('/api/books/<int:book_id>', methods=['GET'])
@login_required(role=LIBRARIAN)
@no_cache
@retry_db_operation()
def get_book(identity, book_id):
    return jsonify(catalog.get_book(book_id).to_dict())


@api.route('/api/books', methods=['POST'])
@login_required(role=LIBRARIAN)
@no_cache
def add_book(identity):
    book = catalog.add_book(request.get_json(silent=True))
    return jsonify({'success': True, 'message': 'Book added successfully', 'bookId': book.book_id}), 201


@api.route('/api/books/<int:book_id>', methods=['PUT'])
@login_required(role=LIBRARIAN)
@no_cache
def edit_book(identity, book_id):
    catalog.update_book(book_id, request.get_json(silent=True))
    return jsonify({'success': True, 'message': 'Book updated successfully'})


@api.route('/api/books/<int:book_id>', methods=['DELETE'])
@login_required(role=LIBRARIAN)
@no_cache
def delete_book(identity, book_id):
    catalog.delete_book(book_id)
    return jsonify({'success': True, 'message': 'Book deleted successfully'})


@api.route('/api/books/borrow/<int:book_id>', methods=['POST'])
@login_required(role=MEMBER)
def borrow(identity, book_id):
    loan = borrow_book(book_id, identity)
    return jsonify({'success': True, 'message': 'Book borrowed successfully.', 'loan': loan.to_dict()}), 201


@api.route('/api/my-loans', methods=['GET'])
@login_required()
@no_cache
@retry_db_operation()
def my_loans(identity):
    loans = (
        Loan.query.join(Book)
        .filter(Loan.user_id == identity.user_id, Loan.return_date.is_(None))
        .order_by(Loan.due_date.asc())
        .all()
    )
    return jsonify([{
        'loan_id': l.loan_id,
        'title': l.book.title,
        'author': l.book.author,
        'loan_date': l.loan_date.isoformat(),
        'due_date': l.due_date.isoformat(),
    } for l in loans])


@api.route('/api/manage-loans', methods=['GET'])
@login_required(role=LIBRARIAN)
@no_cache
@retry_db_operation()
def manage_loans(identity):
    loans = (
        Loan.query.join(Book).join(User, Loan.user_id == User.user_id)
        .filter(Loan.return_date.is_(None))
        .order_by(Loan.due_date.asc())
        .all()
    )
    return jsonify([{
        'loan_id': l.loan_id,
        'title': l.book.title,
        'username': l.user.username,
        'loan_date': l.loan_date.isoformat(),
        'due_date': l.due_date.isoformat(),
    } for l in loans])


@api.route('/api/loans/return/<int:loan_id>', methods=['POST'])
@login_required(role=LIBRARIAN)
def return_book(identity, loan_id):
    loan = return_loan(loan_id, identity)
    return jsonify({'success': True, 'message': 'Book returned successfully.', 'loan': loan.to_dict()})


@api.route('/api/admin/users', methods=['GET'])
@login_required(role=ADMIN)
@no_cache
@retry_db_operation()
def admin_users(identity):
    return jsonify({'users': list_users_with_roles(), 'allRoles': all_roles()})


@api.route('/api/admin/users/update-roles/<int:user_id>', methods=['POST'])
@login_required(role=ADMIN)
def admin_update_roles(identity, user_id):
    data = request.get_json(silent=True) or {}
    role_ids = update_roles(user_id, data.get('roles', []), identity)
    return jsonify({'success': True, 'message': 'Roles updated successfully.', 'roles': role_ids})

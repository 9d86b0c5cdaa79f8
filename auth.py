"""Authentication helpers: bcrypt credentials, the per-request Identity and the
route decorators that gate on it.
"""
import functools
import logging
from dataclasses import dataclass

import bcrypt
from flask import jsonify, make_response, session
from sqlalchemy.exc import SQLAlchemyError

from errors import Forbidden, InvalidRequest, StorageFailure
from extensions import db
from models import MEMBER, Role, User

logger = logging.getLogger(__name__)


def hash_password(password):
    return bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt()).decode('utf-8')


def check_password(password, password_hash):
    return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))


@dataclass(frozen=True)
class Identity:
    """Who is calling, and with which roles. Passed explicitly into every
    circulation and role-assignment operation."""
    user_id: int
    username: str
    roles: frozenset = frozenset()

    def has_role(self, role):
        return role in self.roles

    def require(self, role):
        if role not in self.roles:
            logger.error(f"Access denied: Required role {role}, user_id={self.user_id} has {sorted(self.roles)}")
            raise Forbidden(f'Forbidden: {role} role required.')

    def to_dict(self):
        return {'id': self.user_id, 'username': self.username, 'roles': sorted(self.roles)}


def create_user(username, email, password, role_names=(MEMBER,)):
    """Register a user with the given roles (Member by default)."""
    if User.query.filter((User.username == username) | (User.email == email)).first():
        raise InvalidRequest('Username or email already exists.')
    roles = Role.query.filter(Role.role_name.in_(role_names)).all()
    if len(roles) != len(set(role_names)):
        logger.error(f"Default user role not found: {role_names}")
        raise StorageFailure('Default user role not found.')
    user = User(username=username, email=email, password_hash=hash_password(password), roles=roles)
    try:
        db.session.add(user)
        db.session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Registration error: {str(e)}")
        db.session.rollback()
        raise StorageFailure('Error registering user.') from e
    logger.debug(f"User registered: {username} with roles {list(role_names)}")
    return user


def authenticate(username, password):
    user = User.query.filter_by(username=username).first()
    if user is None:
        logger.debug(f"No user found for username: {username}")
        return None
    if not check_password(password, user.password_hash):
        logger.debug(f"Password mismatch for user: {username}")
        return None
    return user


def load_identity(user_id):
    user = db.session.get(User, user_id)
    if user is None:
        return None
    return Identity(user.user_id, user.username, frozenset(user.role_names))


def login_required(role=None):
    """Gate a view on a logged-in session and, optionally, a role.

    The view receives the caller's Identity as its first argument.
    """
    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            if 'user_id' not in session:
                logger.error("Unauthorized access: No user session")
                return jsonify({'error': 'You must be logged in.'}), 401
            identity = load_identity(session['user_id'])
            if identity is None:
                logger.error("Unauthorized access: Invalid user")
                session.pop('user_id', None)
                return jsonify({'error': 'You must be logged in.'}), 401
            if role and not identity.has_role(role):
                logger.error(f"Access denied: Required role {role}, got {sorted(identity.roles)}")
                return jsonify({'error': 'Forbidden: You do not have permission.'}), 403
            return f(identity, *args, **kwargs)
        return wrapped
    return decorator


def no_cache(f):
    @functools.wraps(f)
    def wrapped(*args, **kwargs):
        response = make_response(f(*args, **kwargs))
        response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, private'
        response.headers['Pragma'] = 'no-cache'
        response.headers['Expires'] = '0'
        return response
    return wrapped

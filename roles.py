"""Role assignment for the admin panel."""
import logging

from sqlalchemy import delete, insert, select

from database import transaction_scope
from errors import CannotSelfDemote, InvalidRequest, UserNotFound
from models import ADMIN, Role, User, user_roles

logger = logging.getLogger(__name__)

roles = Role.__table__
users = User.__table__


def normalize_role_ids(role_ids):
    """Accept a single id or a list of ids (as ints or numeric strings)."""
    if role_ids is None:
        return []
    if not isinstance(role_ids, (list, tuple, set)):
        role_ids = [role_ids]
    normalized = set()
    for role_id in role_ids:
        if isinstance(role_id, bool) or (isinstance(role_id, float) and not role_id.is_integer()):
            raise InvalidRequest(f'Invalid role id: {role_id!r}')
        try:
            normalized.add(int(role_id))
        except (TypeError, ValueError):
            raise InvalidRequest(f'Invalid role id: {role_id!r}') from None
    return sorted(normalized)


def update_roles(user_id, role_ids, identity):
    """Replace the full role set of ``user_id`` with ``role_ids``.

    Last writer wins: concurrent edits from another admin are overwritten,
    not merged. An admin cannot drop their own Admin role.
    """
    identity.require(ADMIN)
    user_id = int(user_id)
    new_role_ids = normalize_role_ids(role_ids)
    with transaction_scope() as conn:
        admin_role_id = conn.execute(
            select(roles.c.role_id).where(roles.c.role_name == ADMIN)
        ).scalar_one()
        if user_id == identity.user_id and admin_role_id not in new_role_ids:
            logger.debug(f"Self-demotion rejected for user_id={user_id}")
            raise CannotSelfDemote()
        if conn.execute(select(users.c.user_id).where(users.c.user_id == user_id)).first() is None:
            raise UserNotFound()
        if new_role_ids:
            known = set(conn.execute(
                select(roles.c.role_id).where(roles.c.role_id.in_(new_role_ids))
            ).scalars())
            unknown = [r for r in new_role_ids if r not in known]
            if unknown:
                raise InvalidRequest(f'Unknown role id(s): {", ".join(str(r) for r in unknown)}')
        conn.execute(delete(user_roles).where(user_roles.c.user_id == user_id))
        if new_role_ids:
            conn.execute(insert(user_roles), [{'user_id': user_id, 'role_id': r} for r in new_role_ids])
    logger.debug(f"Roles updated: user_id={user_id} -> {new_role_ids} by admin_id={identity.user_id}")
    return new_role_ids


def all_roles():
    return [{'role_id': r.role_id, 'role_name': r.role_name}
            for r in Role.query.order_by(Role.role_id).all()]


def list_users_with_roles():
    return [{
        'user_id': u.user_id,
        'username': u.username,
        'email': u.email,
        'roles': u.role_names,
    } for u in User.query.order_by(User.username).all()]

import pytest
from sqlalchemy import insert, select
from sqlalchemy.engine.base import RootTransaction
from sqlalchemy.exc import OperationalError

from database import ensure_roles, retry_db_operation, transaction_scope
from errors import StorageFailure, Unavailable
from extensions import db
from models import DEFAULT_ROLES, Role

roles = Role.__table__


def role_names():
    with db.engine.connect() as conn:
        return sorted(conn.execute(select(roles.c.role_name)).scalars())


def test_commits_on_success(ctx):
    with transaction_scope() as conn:
        conn.execute(insert(roles).values(role_name='Auditor'))

    assert 'Auditor' in role_names()


def test_rolls_back_domain_errors_and_reraises_them(ctx):
    with pytest.raises(Unavailable):
        with transaction_scope() as conn:
            conn.execute(insert(roles).values(role_name='Auditor'))
            raise Unavailable()

    assert 'Auditor' not in role_names()


def test_storage_errors_become_storage_failure(ctx):
    with pytest.raises(StorageFailure) as excinfo:
        with transaction_scope() as conn:
            conn.execute(insert(roles).values(role_name='Auditor'))
            raise OperationalError('UPDATE books', {}, Exception('connection reset'))

    assert isinstance(excinfo.value.__cause__, OperationalError)
    assert excinfo.value.status_code == 500
    assert 'Auditor' not in role_names()


def test_constraint_violation_rolls_back_earlier_writes(ctx):
    with pytest.raises(StorageFailure):
        with transaction_scope() as conn:
            conn.execute(insert(roles).values(role_name='Auditor'))
            # Duplicate role name violates the unique constraint
            conn.execute(insert(roles).values(role_name='Member'))

    assert 'Auditor' not in role_names()


def test_connection_is_released_on_every_path(ctx):
    before = db.engine.pool.checkedout()

    with transaction_scope():
        pass
    with pytest.raises(Unavailable):
        with transaction_scope():
            raise Unavailable()
    with pytest.raises(RuntimeError):
        with transaction_scope():
            raise RuntimeError('boom')

    assert db.engine.pool.checkedout() == before


def test_ensure_roles_is_idempotent(ctx):
    ensure_roles()
    ensure_roles()

    assert role_names() == sorted(DEFAULT_ROLES)


@pytest.fixture
def failing_rollback(monkeypatch):
    def rollback(self):
        raise OperationalError('ROLLBACK', {}, Exception('connection lost'))

    monkeypatch.setattr(RootTransaction, 'rollback', rollback)


def test_failed_rollback_does_not_mask_storage_error(ctx, failing_rollback, caplog):
    before = db.engine.pool.checkedout()

    with pytest.raises(StorageFailure) as excinfo:
        with transaction_scope() as conn:
            conn.execute(insert(roles).values(role_name='Auditor'))
            raise OperationalError('UPDATE books', {}, Exception('connection reset'))

    assert 'connection reset' in str(excinfo.value.__cause__)
    assert 'Rollback failed' in caplog.text
    assert db.engine.pool.checkedout() == before
    assert 'Auditor' not in role_names()


def test_failed_rollback_does_not_mask_domain_error(ctx, failing_rollback, caplog):
    before = db.engine.pool.checkedout()

    with pytest.raises(Unavailable):
        with transaction_scope() as conn:
            conn.execute(insert(roles).values(role_name='Auditor'))
            raise Unavailable()

    assert 'Rollback failed' in caplog.text
    assert db.engine.pool.checkedout() == before
    assert 'Auditor' not in role_names()


def test_retry_recovers_from_transient_error(ctx):
    calls = []

    @retry_db_operation(delay=0)
    def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise OperationalError('SELECT 1', {}, Exception('server closed the connection'))
        return 'ok'

    assert flaky() == 'ok'
    assert len(calls) == 2


def test_retry_gives_up_after_max_attempts(ctx):
    calls = []

    @retry_db_operation(max_attempts=3, delay=0)
    def broken():
        calls.append(1)
        raise OperationalError('SELECT 1', {}, Exception('server closed the connection'))

    with pytest.raises(OperationalError):
        broken()
    assert len(calls) == 3

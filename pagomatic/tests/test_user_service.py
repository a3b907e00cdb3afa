import pytest

from pagomatic.models import User, UserRole
from pagomatic.services.authorization_service import is_password_hashed
from pagomatic.services.dialog_service import static_responder
from pagomatic.services.user_service import can_access, parse_roles


def test_default_users_are_seeded_with_hashed_passwords(container):
    users = {u.username: u for u in container.user_service.get_all_users()}

    assert set(users) == {'admin', 'compras', 'despachos', 'cobranza'}
    assert is_password_hashed(users['admin'].password)
    assert users['despachos'].roles == [UserRole.DESPACHOS]


def test_login_with_password(container):
    result = container.user_service.login('admin', static_responder('123'))

    assert result['ok']
    assert result['user'].id == 'u-admin'
    assert container.session_repo.load_session()['username'] == 'admin'
    assert 'password' not in container.session_repo.load_session()


def test_login_failures(container):
    assert container.user_service.login('ghost', static_responder('x'))['reason'] == 'not_found'
    assert container.user_service.login('admin', static_responder(None))['reason'] == 'cancelled'
    assert container.user_service.login('admin', static_responder('bad'))['reason'] == 'unauthorized'
    assert container.session_repo.load_session() is None


def test_user_without_password_logs_in_directly(container):
    assert container.user_service.login('cobranza')['ok']


def test_logout_clears_session(container, admin):
    container.user_service.login('admin', static_responder('123'))
    container.user_service.logout(admin)
    assert container.user_service.restore_session() is None


def test_restore_session_migrates_legacy_role(container):
    container.session_repo.save_session({'id': 'u-box', 'username': 'cobranza', 'role': 'COBRANZA'})

    user = container.user_service.restore_session()

    assert user.roles == [UserRole.COBRANZA]
    assert container.session_repo.load_session()['roles'] == ['COBRANZA']


def test_legacy_plaintext_passwords_are_migrated(container):
    container.user_repo.update('u-compras', {'password': 'compras1'})

    result = container.user_service.migrate_passwords_to_hash()

    assert result['migrated_count'] == 1
    assert container.user_service.verify_password('compras', 'compras1')
    assert is_password_hashed(container.user_repo.get('u-compras')['password'])


def test_last_admin_is_protected(container, admin):
    other = container.user_service.get_user('u-compras')

    assert container.user_service.update_user('u-admin', {'roles': ['COMPRAS']}, other)['reason'] == 'protected'
    assert container.user_service.delete_user('u-admin', other)['reason'] == 'protected'
    assert container.user_service.delete_user('u-admin', admin)['reason'] == 'protected'
    assert container.user_service.count_admins() == 1


def test_second_admin_allows_demotion(container, admin):
    created = container.user_service.add_user('gerente', 'Gerente', ['admin'], password='456', actor=admin)

    assert container.user_service.update_user('u-admin', {'roles': ['AUDITOR']}, admin) == {'ok': True}
    assert container.authorization_service.matches_admin_password('456')
    assert not container.authorization_service.matches_admin_password('123')
    assert created['ok']


def test_add_user_validations(container, admin):
    assert container.user_service.add_user('admin', 'Otro', ['ADMIN'], actor=admin)['reason'] == 'invalid'
    assert container.user_service.add_user('nuevo', 'Nuevo', ['JEFE'], actor=admin)['reason'] == 'invalid'
    assert container.user_service.add_user('nuevo', 'Nuevo', [], actor=admin)['reason'] == 'invalid'


def test_parse_roles():
    assert parse_roles(['admin', 'ADMIN', 'cobranza']) == [UserRole.ADMIN, UserRole.COBRANZA]
    with pytest.raises(ValueError):
        parse_roles(['CHOFER'])


@pytest.mark.parametrize('role,section,allowed', [
    ('ADMIN', 'security', True),
    ('COMPRAS', 'inventory', True),
    ('COMPRAS', 'stores', False),
    ('DESPACHOS', 'dispatches', True),
    ('DESPACHOS', 'suppliers', False),
    ('COBRANZA', 'stores', True),
    ('AUDITOR', 'reports', True),
    ('AUDITOR', 'admin', False),
])
def test_menu_permissions(role, section, allowed):
    user = User(id='u', username='u', roles=[UserRole(role)])
    assert can_access(user, section) is allowed


def test_no_user_has_no_access():
    assert can_access(None, 'dashboard') is False

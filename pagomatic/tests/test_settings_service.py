import pytest


def test_defaults(container):
    settings = container.settings_service.get_all()
    assert settings == {
        'storeName': 'PAGOMATIC',
        'printerSize': '80mm',
        'requireDispatchApproval': False,
        'requirePaymentApproval': False,
        'requireInvoiceApproval': False,
    }


def test_update_normalizes_and_audits(container, admin):
    result = container.settings_service.update({'storeName': '  pocho casa matriz ', 'printerSize': '58mm'}, admin)

    assert result['ok']
    assert result['settings']['storeName'] == 'POCHO CASA MATRIZ'
    assert container.settings_service.get('printerSize') == '58mm'
    log = container.audit_service.search_logs(entity='settings')[0]
    assert log['userName'] == 'Super Administrador'


@pytest.mark.parametrize('changes', [
    {'printerSize': '110mm'},
    {'storeName': ''},
    {'theme': 'dark'},
    {'requireDispatchApproval': 'quizas'},
])
def test_invalid_updates_change_nothing(container, admin, changes):
    result = container.settings_service.update(changes, admin)

    assert result['reason'] == 'invalid'
    assert container.settings_service.get_all()['printerSize'] == '80mm'


def test_unknown_key_lookup(container):
    with pytest.raises(KeyError):
        container.settings_service.get('theme')


def test_approval_flag_changes_initial_status(container, admin):
    assert container.approval_service.initial_status('invoice') == 'approved'
    container.settings_service.update({'requireInvoiceApproval': True}, admin)
    assert container.approval_service.initial_status('invoice') == 'pending'
    assert container.approval_service.initial_status('payment') == 'approved'


def test_string_flags_are_parsed(container, admin):
    container.settings_service.update({'requirePaymentApproval': 'true'}, admin)
    assert container.settings_service.is_enabled('requirePaymentApproval')

    container.settings_service.update({'requirePaymentApproval': 'false'}, admin)
    assert not container.settings_service.is_enabled('requirePaymentApproval')

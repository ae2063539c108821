# Overview: Tests for the flask CLI command groups.

from stockcount.models import User
from stockcount.services import auth_service, catalog_service


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        'users', 'create', '--username', 'Joao', '--name', 'Joao', '--unlock-code', '4321',
    ])
    assert result.exit_code == 0, result.output
    assert 'PASS Created user joao' in result.output

    user = db_session.query(User).filter_by(username='joao').one()
    assert auth_service.verify_unlock_code('4321', user.unlock_code_hash)

    listed = runner.invoke(args=['users', 'list'])
    assert 'joao' in listed.output


def test_users_create_duplicate(app, db_session, user_a):
    runner = app.test_cli_runner()
    result = runner.invoke(args=[
        'users', 'create', '--username', 'ana', '--name', 'Ana', '--unlock-code', '4321',
    ])
    assert result.exit_code != 0
    assert 'already taken' in result.output


def test_catalog_import_and_lookup(app, db_session, catalog_owner, tmp_path):
    path = tmp_path / 'catalogo.csv'
    path.write_text('cod_item;cod_barra;des_item\nA1;B1;Widget\nA2;;Broken\n', encoding='utf-8-sig')
    runner = app.test_cli_runner()

    result = runner.invoke(args=['catalog', 'import', str(path)])
    assert result.exit_code == 0, result.output
    assert 'Imported 1 products, skipped 1 rows' in result.output
    assert 'Skipped rows: 2' in result.output
    assert catalog_service.find_by_code('B1', catalog_owner.id).code == 'A1'

    lookup = runner.invoke(args=['catalog', 'lookup', 'B1'])
    assert lookup.exit_code == 0
    assert 'Widget' in lookup.output

    missing = runner.invoke(args=['catalog', 'lookup', 'nope'])
    assert missing.exit_code != 0

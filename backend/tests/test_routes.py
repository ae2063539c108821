# Overview: HTTP-level tests for the counting API; auth, counts, catalog and history.

import io

from stockcount.models import Product

from conftest import auth_headers, get_auth_token


class TestAuthRoutes:
    def test_unlock_returns_token(self, client, user_a):
        response = client.post('/api/auth/unlock', json={'username': 'ana', 'unlock_code': '1111'})

        assert response.status_code == 200
        token = response.json['token']
        assert response.json['user']['username'] == 'ana'

        me = client.get('/api/auth/me', headers=auth_headers(token))
        assert me.status_code == 200
        assert me.json['user']['id'] == user_a.id

    def test_unlock_wrong_code(self, client, user_a):
        response = client.post('/api/auth/unlock', json={'username': 'ana', 'unlock_code': '9999'})
        assert response.status_code == 401

    def test_unlock_missing_fields(self, client, user_a):
        response = client.post('/api/auth/unlock', json={'username': 'ana'})
        assert response.status_code == 400

    def test_lock_revokes_token(self, client, user_a):
        token = get_auth_token(user_a)

        assert client.post('/api/auth/lock', headers=auth_headers(token)).status_code == 200
        assert client.get('/api/auth/me', headers=auth_headers(token)).status_code == 401

    def test_requires_token(self, client, db_session):
        assert client.get('/api/counts').status_code == 401
        assert client.get('/api/counts', headers=auth_headers('bogus')).status_code == 401


class TestHealth:
    def test_health(self, client, db_session):
        response = client.get('/health')
        assert response.status_code == 200
        assert response.json['status'] == 'healthy'


class TestProductLookup:
    def test_lookup_by_barcode(self, client, user_a, widget):
        token = get_auth_token(user_a)
        response = client.get('/api/products/lookup/B1', headers=auth_headers(token))

        assert response.status_code == 200
        assert response.json['product']['id'] == widget.id
        assert response.json['product']['barcodes'] == ['B1']

    def test_lookup_by_code(self, client, user_a, widget):
        token = get_auth_token(user_a)
        response = client.get('/api/products/lookup/A1', headers=auth_headers(token))
        assert response.json['product']['description'] == 'Widget'

    def test_lookup_not_found(self, client, user_a, widget):
        token = get_auth_token(user_a)
        response = client.get('/api/products/lookup/unknown', headers=auth_headers(token))
        assert response.status_code == 404


class TestCountRoutes:
    def test_evaluate(self, client, user_a):
        token = get_auth_token(user_a)
        response = client.post('/api/counts/evaluate', json={'expression': '10/3'}, headers=auth_headers(token))

        assert response.status_code == 200
        assert response.json['quantity'] == 3.33

    def test_evaluate_error_code(self, client, user_a):
        token = get_auth_token(user_a)
        response = client.post('/api/counts/evaluate', json={'expression': 'abc'}, headers=auth_headers(token))

        assert response.status_code == 400
        assert response.json['code'] == 'InvalidCharacters'

    def test_record_with_expression_merges(self, client, user_a, widget):
        headers = auth_headers(get_auth_token(user_a))

        first = client.post('/api/counts/items', json={
            'product_id': widget.id, 'quantity': '24+24', 'mode': 'store',
        }, headers=headers)
        assert first.status_code == 200
        assert first.json['quant_loja'] == 48

        second = client.post('/api/counts/items', json={
            'product': {'id': widget.id}, 'quantity': 2.5, 'mode': 'estoque',
        }, headers=headers)
        assert second.status_code == 200
        assert second.json['id'] == first.json['id']
        assert second.json['quant_loja'] == 48
        assert second.json['quant_estoque'] == 2.5

        items = client.get('/api/counts', headers=headers).json
        assert len(items) == 1
        assert items[0]['codigo_de_barras'] == 'B1'

    def test_record_with_expiry(self, client, user_a, widget):
        headers = auth_headers(get_auth_token(user_a))
        for expiry in (None, '2027-05-01'):
            response = client.post('/api/counts/items', json={
                'product_id': widget.id, 'quantity': 1, 'mode': 'store', 'expiry_date': expiry,
            }, headers=headers)
            assert response.status_code == 200

        items = client.get('/api/counts', headers=headers).json
        assert sorted(i['data_validade'] or '' for i in items) == ['', '2027-05-01']

    def test_record_invalid_expression(self, client, user_a, widget):
        headers = auth_headers(get_auth_token(user_a))
        response = client.post('/api/counts/items', json={
            'product_id': widget.id, 'quantity': '1/0', 'mode': 'store',
        }, headers=headers)

        assert response.status_code == 400
        assert response.json['code'] == 'InvalidResult'
        assert client.get('/api/counts', headers=headers).json == []

    def test_record_rejects_bad_input(self, client, user_a, widget):
        headers = auth_headers(get_auth_token(user_a))
        bad_bodies = [
            {'quantity': 1, 'mode': 'store'},
            {'product_id': widget.id, 'quantity': -1, 'mode': 'store'},
            {'product_id': widget.id, 'quantity': True, 'mode': 'store'},
            {'product_id': widget.id, 'quantity': 1, 'mode': 'shelf'},
            {'product_id': widget.id, 'quantity': 1, 'mode': 'store', 'expiry_date': '31/12/2026'},
        ]
        for body in bad_bodies:
            response = client.post('/api/counts/items', json=body, headers=headers)
            assert response.status_code == 400, body

    def test_record_unknown_product(self, client, user_a, widget):
        headers = auth_headers(get_auth_token(user_a))
        response = client.post('/api/counts/items', json={
            'product_id': widget.id + 1000, 'quantity': 1, 'mode': 'store',
        }, headers=headers)
        assert response.status_code == 404

    def test_remove_item_scoped_to_owner(self, client, user_a, user_b, widget):
        headers_a = auth_headers(get_auth_token(user_a))
        headers_b = auth_headers(get_auth_token(user_b))
        item = client.post('/api/counts/items', json={
            'product_id': widget.id, 'quantity': 1, 'mode': 'store',
        }, headers=headers_a).json
        client.post('/api/counts/items', json={
            'product_id': widget.id, 'quantity': 1, 'mode': 'store',
        }, headers=headers_b)

        assert client.delete(f"/api/counts/items/{item['id']}", headers=headers_b).status_code == 404
        assert client.delete(f"/api/counts/items/{item['id']}", headers=headers_a).status_code == 200
        assert client.get('/api/counts', headers=headers_a).json == []
        assert len(client.get('/api/counts', headers=headers_b).json) == 1

    def test_stats_report_and_clear(self, client, user_a, widget, gadget):
        headers = auth_headers(get_auth_token(user_a))
        client.post('/api/counts/items', json={
            'product_id': widget.id, 'quantity': '12*3+5', 'mode': 'store',
        }, headers=headers)
        client.post('/api/counts/items', json={
            'product_id': gadget.id, 'quantity': '0,5', 'mode': 'stockroom',
        }, headers=headers)

        stats = client.get('/api/counts/stats', headers=headers).json
        assert stats == {'items': 2, 'total_loja': 41, 'total_estoque': 0.5}

        report = client.get('/api/counts/report', headers=headers).json
        assert [r['codigo_produto'] for r in report] == ['A2', 'A1']
        assert report[0]['codigo_de_barras'] == '7891000000002'

        cleared = client.delete('/api/counts', headers=headers)
        assert cleared.status_code == 200
        assert cleared.json['deleted'] == 2
        assert client.get('/api/counts/stats', headers=headers).json['items'] == 0

    def test_export(self, client, user_a, widget):
        headers = auth_headers(get_auth_token(user_a))
        client.post('/api/counts/items', json={
            'product_id': widget.id, 'quantity': 3, 'mode': 'store',
        }, headers=headers)

        response = client.get('/api/counts/export', headers=headers)

        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        assert 'attachment; filename="contagem_' in response.headers['Content-Disposition']
        body = response.data.decode('utf-8')
        assert body.startswith('\ufeff"codigo_de_barras";')
        assert '"B1";"A1";"Widget";"3";"0";""' in body

    def test_export_empty_count(self, client, user_a):
        headers = auth_headers(get_auth_token(user_a))
        assert client.get('/api/counts/export', headers=headers).status_code == 400


class TestImportCatalogRoute:
    def _upload(self, client, token, content: bytes):
        return client.post(
            '/api/admin/import-catalog',
            data={'file': (io.BytesIO(content), 'catalogo.csv')},
            headers=auth_headers(token),
            content_type='multipart/form-data',
        )

    def test_owner_can_import(self, client, db_session, catalog_owner):
        token = get_auth_token(catalog_owner)
        content = 'cod_item;cod_barra;des_item\nA1;B1;Widget\nA2;;Broken\n'.encode('utf-8-sig')

        response = self._upload(client, token, content)

        assert response.status_code == 200
        assert response.json['imported'] == 1
        assert response.json['skipped'] == 1
        assert db_session.query(Product).filter_by(user_id=catalog_owner.id).count() == 1

    def test_other_users_are_forbidden(self, client, catalog_owner, user_a):
        token = get_auth_token(user_a)
        response = self._upload(client, token, b'cod_item;cod_barra;des_item\nA1;B1;Widget\n')
        assert response.status_code == 403

    def test_missing_file(self, client, catalog_owner):
        token = get_auth_token(catalog_owner)
        response = client.post('/api/admin/import-catalog', headers=auth_headers(token))
        assert response.status_code == 400

    def test_unparseable_file(self, client, catalog_owner):
        token = get_auth_token(catalog_owner)
        content = b'cod_item;cod_barra;des_item\nA1;B1;"' + b"y" * 200000 + b'"\n'

        response = self._upload(client, token, content)

        assert response.status_code == 400
        assert "could not be parsed" in response.json["error"]

    def test_missing_columns(self, client, catalog_owner):
        token = get_auth_token(catalog_owner)
        response = self._upload(client, token, b'codigo;descricao\nA1;Widget\n')
        assert response.status_code == 400


class TestHistoryRoutes:
    def test_snapshot_list_get_delete(self, client, user_a, widget):
        headers = auth_headers(get_auth_token(user_a))
        client.post('/api/counts/items', json={
            'product_id': widget.id, 'quantity': 7, 'mode': 'store',
        }, headers=headers)

        created = client.post('/api/history/snapshot', headers=headers)
        assert created.status_code == 201
        entry_id = created.json['id']
        assert created.json['item_count'] == 1

        # Saving does not clear the open count
        assert len(client.get('/api/counts', headers=headers).json) == 1

        listed = client.get('/api/history', headers=headers).json
        assert [e['id'] for e in listed] == [entry_id]

        detail = client.get(f'/api/history/{entry_id}', headers=headers).json
        assert '"B1";"A1";"Widget";"7"' in detail['csv_content']

        download = client.get(f'/api/history/{entry_id}?download=1', headers=headers)
        assert download.mimetype == 'text/csv'
        assert download.headers['Content-Disposition'].startswith('attachment; filename="contagem_')

        assert client.delete(f'/api/history/{entry_id}', headers=headers).status_code == 200
        assert client.get(f'/api/history/{entry_id}', headers=headers).status_code == 404

    def test_save_uploaded_content(self, client, user_a):
        headers = auth_headers(get_auth_token(user_a))
        response = client.post('/api/history', json={
            'fileName': 'manual.csv', 'csvContent': 'x;y\n1;2\n',
        }, headers=headers)

        assert response.status_code == 201
        assert response.json['file_name'] == 'manual.csv'
        assert response.json['item_count'] is None

    def test_save_oversized_report_csv(self, client, user_a):
        headers = auth_headers(get_auth_token(user_a))
        header = "codigo_de_barras;codigo_produto;descricao;quant_loja;quant_estoque;data_validade"
        content = header + '\nB1;A1;"' + "x" * 200000 + '";1;0;\n'

        response = client.post('/api/history', json={
            'file_name': 'big.csv', 'csv_content': content,
        }, headers=headers)

        assert response.status_code == 201
        assert response.json['item_count'] is None

    def test_save_requires_fields(self, client, user_a):
        headers = auth_headers(get_auth_token(user_a))
        assert client.post('/api/history', json={'file_name': 'a.csv'}, headers=headers).status_code == 400

    def test_snapshot_of_empty_count(self, client, user_a):
        headers = auth_headers(get_auth_token(user_a))
        assert client.post('/api/history/snapshot', headers=headers).status_code == 400

    def test_entries_are_private(self, client, user_a, user_b):
        headers_a = auth_headers(get_auth_token(user_a))
        headers_b = auth_headers(get_auth_token(user_b))
        entry_id = client.post('/api/history', json={
            'file_name': 'mine.csv', 'csv_content': 'x;y\n',
        }, headers=headers_a).json['id']

        assert client.get(f'/api/history/{entry_id}', headers=headers_b).status_code == 404
        assert client.delete(f'/api/history/{entry_id}', headers=headers_b).status_code == 404
        assert client.get('/api/history', headers=headers_b).json == []

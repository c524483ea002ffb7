"""
HTTP surface tests: status codes, error envelope and actor header handling.
"""

from datetime import timedelta

from stockledger.models import AuditLog, Product
from stockledger.services import lifecycle_service
from stockledger.time_utils import utcnow

from conftest import actor_headers


def _error_code(response):
    return response.get_json()["error"]["code"]


class TestProducts:
    def test_create_product(self, client, db_session, admin, notifier):
        response = client.post(
            "/api/products",
            json={"name": "Bolt", "unit_price": "0.25", "quantity": 3, "min_stock_threshold": 5},
            headers=actor_headers(admin.id),
        )

        assert response.status_code == 201
        body = response.get_json()
        assert body["sku"] == "SKU-000001"
        assert body["quantity"] == 3
        assert body["low_stock"] is True
        assert body["created_by_user_id"] == admin.id
        assert len(notifier.low_stock) == 1

    def test_create_requires_actor_header(self, client, db_session):
        response = client.post("/api/products", json={"name": "Bolt", "unit_price": "1"})
        assert response.status_code == 401
        assert _error_code(response) == "UNAUTHENTICATED"

        response = client.post(
            "/api/products", json={"name": "Bolt", "unit_price": "1"}, headers={"X-Actor-Id": "abc"},
        )
        assert response.status_code == 401

    def test_create_rejects_unknown_fields(self, client, db_session, admin):
        response = client.post(
            "/api/products",
            json={"name": "Bolt", "unit_price": "1", "sku": "MINE-1"},
            headers=actor_headers(admin.id),
        )
        assert response.status_code == 400
        assert _error_code(response) == "VALIDATION_ERROR"

    def test_duplicate_name_is_conflict(self, client, db_session, widget, admin):
        response = client.post(
            "/api/products",
            json={"name": "WIDGET", "unit_price": "1"},
            headers=actor_headers(admin.id),
        )
        assert response.status_code == 409
        assert _error_code(response) == "CONFLICT"

    def test_get_unknown_product(self, client, db_session):
        response = client.get("/api/products/sku/SKU-999999")
        assert response.status_code == 404
        assert _error_code(response) == "NOT_FOUND"

    def test_list_and_search(self, client, db_session, widget):
        listed = client.get("/api/products").get_json()["items"]
        assert [p["sku"] for p in listed] == [widget.sku]

        found = client.get("/api/products/search?q=hard").get_json()["items"]
        assert [p["name"] for p in found] == ["Widget"]

    def test_stock_out_and_low_stock_listing(self, client, db_session, widget, admin, notifier):
        response = client.post(
            f"/api/products/sku/{widget.sku}/stock-out",
            json={"quantity": 5, "note": "order 1001"},
            headers=actor_headers(admin.id),
        )

        assert response.status_code == 200
        assert response.get_json()["quantity"] == 7
        assert len(notifier.low_stock) == 1

        low = client.get("/api/products/low-stock").get_json()["items"]
        assert [p["sku"] for p in low] == [widget.sku]

    def test_insufficient_stock(self, client, db_session, widget, admin):
        response = client.post(
            f"/api/products/sku/{widget.sku}/stock-out",
            json={"quantity": 13},
            headers=actor_headers(admin.id),
        )

        assert response.status_code == 409
        assert _error_code(response) == "INSUFFICIENT_STOCK"
        assert db_session.get(Product, widget.id).quantity == 12

    def test_invalid_quantity(self, client, db_session, widget, admin):
        for bad in (0, -1, "5", 1.5, True, None):
            response = client.post(
                f"/api/products/sku/{widget.sku}/stock-in",
                json={"quantity": bad},
                headers=actor_headers(admin.id),
            )
            assert response.status_code == 400, bad

    def test_adjust(self, client, db_session, widget, admin):
        response = client.post(
            f"/api/products/sku/{widget.sku}/adjust",
            json={"quantity_delta": -2, "note": "cycle count"},
            headers=actor_headers(admin.id),
        )
        assert response.status_code == 200
        assert response.get_json()["quantity"] == 10

    def test_update_threshold(self, client, db_session, widget, admin, notifier):
        response = client.put(
            f"/api/products/sku/{widget.sku}/threshold",
            json={"threshold": 15},
            headers=actor_headers(admin.id),
        )

        assert response.status_code == 200
        assert response.get_json()["min_stock_threshold"] == 15
        assert len(notifier.threshold_changed) == 1
        assert len(notifier.low_stock) == 1

        missing = client.put(
            f"/api/products/sku/{widget.sku}/threshold", json={}, headers=actor_headers(admin.id),
        )
        assert missing.status_code == 400

    def test_patch_details(self, client, db_session, widget, admin):
        response = client.patch(
            f"/api/products/{widget.id}",
            json={"supplier": "Globex"},
            headers=actor_headers(admin.id),
        )
        assert response.status_code == 200
        assert response.get_json()["supplier"] == "Globex"

        blocked = client.patch(
            f"/api/products/{widget.id}", json={"quantity": 99}, headers=actor_headers(admin.id),
        )
        assert blocked.status_code == 400


class TestTransactions:
    def test_history_for_sku(self, client, db_session, widget, admin):
        client.post(
            f"/api/products/sku/{widget.sku}/stock-in",
            json={"quantity": 3},
            headers=actor_headers(admin.id),
        )

        items = client.get(f"/api/transactions/sku/{widget.sku}").get_json()["items"]
        assert [e["quantity_after"] for e in items] == [15, 12]
        assert items[0]["performed_by_user_id"] == admin.id
        assert items[0]["occurred_at"].endswith("Z")

    def test_query_validation(self, client, db_session):
        assert client.get("/api/transactions?kind=LOST").status_code == 400
        assert client.get("/api/transactions?limit=abc").status_code == 400
        assert client.get(
            "/api/transactions?start_date=2026-05-02&end_date=2026-05-01"
        ).status_code == 400


class TestAlerts:
    def test_list_summary_and_resolve(self, client, db_session, widget, admin):
        client.post(
            f"/api/products/sku/{widget.sku}/stock-out",
            json={"quantity": 5},
            headers=actor_headers(admin.id),
        )

        alerts = client.get("/api/alerts").get_json()["items"]
        assert len(alerts) == 1
        assert alerts[0]["recipients"] == ["root@stock.local", "admin@stock.local"]

        summary = client.get("/api/alerts/summary").get_json()
        assert summary["total_active_alerts"] == 1

        resolved = client.post(f"/api/alerts/{alerts[0]['id']}/resolve", headers=actor_headers(admin.id))
        assert resolved.status_code == 200
        assert resolved.get_json()["is_resolved"] is True

    def test_evaluate_product(self, client, db_session, widget, admin):
        response = client.post(
            f"/api/alerts/products/{widget.id}/evaluate", headers=actor_headers(admin.id),
        )
        assert response.status_code == 200
        assert response.get_json() == {"action": "UNCHANGED", "alert": None}


class TestLifecycle:
    def test_delete_restore_roundtrip(self, client, db_session, widget, admin):
        deleted = client.post(f"/api/lifecycle/products/{widget.id}/delete", headers=actor_headers(admin.id))
        assert deleted.status_code == 200
        assert deleted.get_json()["lifecycle_state"] == "SOFT_DELETED"

        again = client.post(f"/api/lifecycle/products/{widget.id}/delete", headers=actor_headers(admin.id))
        assert again.status_code == 409
        assert _error_code(again) == "ALREADY_DELETED"

        listed = client.get("/api/lifecycle/products/deleted").get_json()["items"]
        assert [p["id"] for p in listed] == [widget.id]

        restored = client.post(f"/api/lifecycle/products/{widget.id}/restore", headers=actor_headers(admin.id))
        assert restored.status_code == 200
        assert restored.get_json()["quantity"] == 12

    def test_restore_after_window_is_gone(self, client, db_session, widget, admin):
        lifecycle_service.soft_delete_product(
            widget.id, actor_user_id=admin.id, now=utcnow() - timedelta(days=31),
        )

        response = client.post(f"/api/lifecycle/products/{widget.id}/restore", headers=actor_headers(admin.id))
        assert response.status_code == 410
        assert _error_code(response) == "RESTORE_WINDOW_EXPIRED"

    def test_mutations_on_deleted_product_are_not_found(self, client, db_session, widget, admin):
        client.post(f"/api/lifecycle/products/{widget.id}/delete", headers=actor_headers(admin.id))

        response = client.post(
            f"/api/products/sku/{widget.sku}/stock-in",
            json={"quantity": 1},
            headers=actor_headers(admin.id),
        )
        assert response.status_code == 404

    def test_permanent_delete_requires_soft_delete(self, client, db_session, widget, admin):
        response = client.delete(f"/api/lifecycle/products/{widget.id}", headers=actor_headers(admin.id))
        assert response.status_code == 409
        assert _error_code(response) == "NOT_DELETED"

    def test_user_deletion_guards(self, client, db_session, master_admin, admin, employee):
        exempt = client.post(f"/api/lifecycle/users/{master_admin.id}/delete", headers=actor_headers(admin.id))
        assert exempt.status_code == 403

        own = client.post(f"/api/lifecycle/users/{admin.id}/delete", headers=actor_headers(admin.id))
        assert own.status_code == 403

        ok = client.post(f"/api/lifecycle/users/{employee.id}/delete", headers=actor_headers(admin.id))
        assert ok.status_code == 200
        assert ok.get_json()["status"] == "INACTIVE"

        active = client.get("/api/lifecycle/users/active").get_json()["items"]
        assert employee.id not in [u["id"] for u in active]

    def test_actor_is_recorded_in_audit(self, client, db_session, widget, admin):
        client.post(f"/api/lifecycle/products/{widget.id}/delete", headers=actor_headers(admin.id))

        entry = db_session.query(AuditLog).filter_by(action="DELETE_PRODUCT").one()
        assert entry.actor_user_id == admin.id
        assert entry.origin == "127.0.0.1"

    def test_audit_trails(self, client, db_session, widget, admin, employee):
        client.post(f"/api/lifecycle/products/{widget.id}/delete", headers=actor_headers(admin.id))
        client.post(f"/api/lifecycle/users/{employee.id}/delete", headers=actor_headers(admin.id))

        product_trail = client.get(f"/api/products/{widget.id}/audit").get_json()["items"]
        assert [e["action"] for e in product_trail] == ["DELETE_PRODUCT", "CREATE_PRODUCT"]

        user_trail = client.get(f"/api/lifecycle/users/{employee.id}/audit").get_json()["items"]
        assert [e["action"] for e in user_trail] == ["DELETE_USER"]
        assert user_trail[0]["actor_user_id"] == admin.id


class TestJobs:
    def test_reconcile_requires_actor(self, client, db_session):
        assert client.post("/api/jobs/reconcile").status_code == 401

    def test_reconcile_and_report(self, client, db_session, widget, admin):
        db_session.execute(
            Product.__table__.update().where(Product.id == widget.id).values(quantity=1)
        )
        db_session.commit()

        result = client.post("/api/jobs/reconcile", headers=actor_headers(admin.id)).get_json()
        assert result["checked"] == 1
        assert result["created"] == 1

        report = client.get("/api/jobs/low-stock-report").get_json()
        assert report == {"low_stock_count": 1}

    def test_purge(self, client, db_session, widget, admin):
        lifecycle_service.soft_delete_product(
            widget.id, actor_user_id=admin.id, now=utcnow() - timedelta(days=45),
        )

        result = client.post("/api/jobs/purge", headers=actor_headers(admin.id)).get_json()
        assert result["products_purged"] == 1
        assert result["cancelled"] is False


def test_health(client, db_session, widget):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.get_json()
    assert body["status"] == "healthy"
    assert body["checks"]["database"]["details"]["active_products"] == 1

"""
Sale Reversal tests: stock restoration, idempotence and hard-deleted products.
"""

import pytest

from tiendapos.errors import ErrorKind
from tiendapos.extensions import db
from tiendapos.models import Product, StockMovement
from tiendapos.services import sales_service
from tiendapos.services.audit_service import list_audit_events
from tiendapos.services.sales_service import SaleError


@pytest.fixture
def posted_sale(db_session, cashier, product_a, product_b):
    return sales_service.post_sale(
        [(product_a.id, 2), (product_b.id, 1)], "cash", "30.00", cashier_user_id=cashier.id,
    )


class TestVoidSale:
    def test_void_restores_stock_and_flags_sale(self, posted_sale, admin, product_a, product_b):
        sale = sales_service.void_sale(posted_sale.id, admin.id, "Cliente devolvió todo")

        assert sale.voided is True
        assert sale.voided_at is not None
        assert sale.voided_by_user_id == admin.id
        assert sale.void_reason == "Cliente devolvió todo"
        assert product_a.stock == 10
        assert product_b.stock == 10

    def test_void_keeps_sale_and_details(self, posted_sale, admin):
        sales_service.void_sale(posted_sale.id, admin.id)

        sale = sales_service.get_sale(posted_sale.id)
        assert sale.folio == posted_sale.folio
        assert len(sale.details) == 2
        assert sale.total_cents == 2500

    def test_void_writes_inverse_movements_and_audit(self, posted_sale, admin, product_a):
        sales_service.void_sale(posted_sale.id, admin.id)

        deltas = [
            m.quantity_delta
            for m in db.session.query(StockMovement)
            .filter_by(sale_id=posted_sale.id, product_id=product_a.id)
            .order_by(StockMovement.id)
        ]
        assert deltas == [-2, 2]

        events = [e.event_type for e in list_audit_events("sale", posted_sale.id)]
        assert events == ["sale.posted", "sale.voided"]

    def test_second_void_rejected_and_changes_nothing(self, posted_sale, admin, product_a):
        sales_service.void_sale(posted_sale.id, admin.id)

        with pytest.raises(SaleError) as exc:
            sales_service.void_sale(posted_sale.id, admin.id)

        assert exc.value.kind == ErrorKind.ALREADY_VOIDED
        assert product_a.stock == 10
        assert len(list_audit_events("sale", posted_sale.id)) == 2

    def test_void_unknown_sale(self, db_session):
        with pytest.raises(SaleError) as exc:
            sales_service.void_sale(12345)
        assert exc.value.kind == ErrorKind.SALE_NOT_FOUND

    def test_soft_deleted_product_still_restocked(self, posted_sale, admin, product_a):
        from tiendapos.services import catalog_service
        catalog_service.soft_delete_product(product_a.id)

        sales_service.void_sale(posted_sale.id, admin.id)

        assert db.session.get(Product, product_a.id).stock == 10

    def test_hard_deleted_product_is_skipped(self, posted_sale, admin, product_a, product_b):
        product_a_id = product_a.id
        db.session.delete(product_a)
        db.session.commit()

        sale = sales_service.void_sale(posted_sale.id, admin.id)

        assert sale.voided is True
        assert product_b.stock == 10
        voided = list_audit_events("sale", posted_sale.id)[-1]
        assert voided.payload["skipped_product_ids"] == [product_a_id]
        assert voided.payload["restocked"] == [{"product_id": product_b.id, "quantity": 1}]

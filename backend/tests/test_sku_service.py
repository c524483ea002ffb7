from decimal import Decimal

from stockledger.models import Product, SkuSequence
from stockledger.services import lifecycle_service, sku_service, stock_service


def test_first_sku_is_sequence_one(db_session):
    assert sku_service.next_sku("SKU-", 6) == "SKU-000001"
    assert sku_service.next_sku("SKU-", 6) == "SKU-000002"


def test_prefixes_have_independent_counters(db_session):
    assert sku_service.next_sku("RAW-", 4) == "RAW-0001"
    assert sku_service.next_sku("SKU-", 6) == "SKU-000001"
    assert sku_service.next_sku("RAW-", 4) == "RAW-0002"


def test_seeds_from_last_existing_sku(db_session):
    db_session.add(Product(sku="SKU-000041", name="Legacy", unit_price=Decimal("1.00"), quantity=50))
    db_session.add(Product(sku="SKU-000007", name="Older", unit_price=Decimal("1.00"), quantity=50))
    db_session.commit()

    assert sku_service.next_sku("SKU-", 6) == "SKU-000042"
    assert db_session.get(SkuSequence, "SKU-").last_number == 42


def test_unparseable_suffix_seeds_from_zero(db_session):
    db_session.add(Product(sku="SKU-LEGACY", name="Legacy", unit_price=Decimal("1.00"), quantity=50))
    db_session.commit()

    assert sku_service.next_sku("SKU-", 6) == "SKU-000001"


def test_numbers_are_not_reused_after_purge(db_session, admin):
    first = stock_service.create_product(name="One", unit_price="1", quantity=20)
    lifecycle_service.soft_delete_product(first.id, actor_user_id=admin.id)
    lifecycle_service.permanent_delete_product(first.id, actor_user_id=admin.id)

    second = stock_service.create_product(name="Two", unit_price="1", quantity=20)
    assert second.sku == "SKU-000002"


def test_parse_sku_number():
    assert sku_service.parse_sku_number("SKU-000123", "SKU-") == 123
    assert sku_service.parse_sku_number("SKU-12a", "SKU-") == 0
    assert sku_service.parse_sku_number("ABC-000123", "SKU-") == 0
    assert sku_service.parse_sku_number(None, "SKU-") == 0

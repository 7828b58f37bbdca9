"""
Integration tests for purchase writes and their effect on product stock/cost.
"""

import pytest
from datetime import date
from decimal import Decimal

from backoffice.exceptions import NotFoundError, ProductNotFound, ValidationError, InvalidCostRecalculation
from backoffice.models import Product, Purchase, PurchaseDetail, AuditLog, AuditAction
from backoffice.services.audit_service import get_audit_logs
from backoffice.services.purchase_service import (
    create_purchase, update_purchase, delete_purchase, generate_purchase_number
)
from backoffice.utils.purchase_payload import PurchaseInput, PurchaseLineInput


def _payload(*lines, **header):
    """Build a PurchaseInput from (product_id, quantity, unit_cost) tuples."""
    header.setdefault('date', date(2024, 3, 1))
    return PurchaseInput(
        lines=[PurchaseLineInput(str(pid), Decimal(qty), Decimal(cost)) for pid, qty, cost in lines],
        **header
    )


def _state(session, product_id):
    product = session.get(Product, product_id)
    session.refresh(product)
    return product.in_stock, product.cost


class TestCreatePurchase:
    """Tests for create_purchase."""

    def test_blends_into_product(self, session, product, supplier):
        result = create_purchase(
            session,
            _payload((product.id, '10', '7'), supplier_id=str(supplier.id), reference_number='INV-1')
        )

        assert _state(session, product.id) == (Decimal('20'), Decimal('6.00'))

        purchase = session.get(Purchase, result.purchase_id)
        assert purchase.number == generate_purchase_number(purchase.id)
        assert purchase.supplier_id == supplier.id
        assert purchase.reference_number == 'INV-1'
        assert len(purchase.details) == 1
        assert purchase.details[0].cost == Decimal('7')
        assert purchase.details[0].quantity == Decimal('10')

        assert len(result.adjustments) == 1
        assert result.adjustments[0]['direction'] == 'apply'
        assert result.adjustments[0]['new_cost'] == Decimal('6.00')

    def test_first_purchase_number(self, session, product):
        result = create_purchase(session, _payload((product.id, '1', '5')))
        assert session.get(Purchase, result.purchase_id).number == 'PUR-000001'

    def test_lines_applied_in_input_order(self, session, product):
        """Same product twice: 10@5 +10@7 -> 20@6, then +20@1 -> 40@3.50."""
        create_purchase(session, _payload((product.id, '10', '7'), (product.id, '20', '1')))

        assert _state(session, product.id) == (Decimal('40'), Decimal('3.50'))

    def test_unknown_product_aborts_everything(self, session, product):
        with pytest.raises(ProductNotFound) as exc_info:
            create_purchase(session, _payload((product.id, '10', '7'), ('999', '1', '1')))

        assert exc_info.value.product_id == '999'
        assert exc_info.value.line == 1
        assert _state(session, product.id) == (Decimal('10'), Decimal('5.00'))
        assert session.query(Purchase).count() == 0
        assert session.query(PurchaseDetail).count() == 0
        assert session.query(AuditLog).count() == 0

    def test_non_numeric_product_id_not_found(self, session, product):
        with pytest.raises(ProductNotFound) as exc_info:
            create_purchase(session, _payload(('abc', '1', '1')))

        assert exc_info.value.line == 0

    def test_unknown_supplier(self, session, product):
        with pytest.raises(ValidationError) as exc_info:
            create_purchase(session, _payload((product.id, '1', '1'), supplier_id='404'))

        assert exc_info.value.field == 'supplier'
        assert session.query(Purchase).count() == 0

    def test_zero_resulting_stock_rolls_back(self, session, product, other_product):
        """A zero-quantity line on an empty product cannot be averaged."""
        with pytest.raises(InvalidCostRecalculation):
            create_purchase(session, _payload((product.id, '10', '7'), (other_product.id, '0', '3')))

        assert _state(session, product.id) == (Decimal('10'), Decimal('5.00'))
        assert session.query(Purchase).count() == 0

    def test_cost_places(self, session, product):
        create_purchase(session, _payload((product.id, '20', '1')), places=4)

        # (10*5 + 20*1) / 30 = 2.3333...
        assert _state(session, product.id) == (Decimal('30'), Decimal('2.3333'))


class TestDeletePurchase:
    """Tests for delete_purchase."""

    def test_delete_is_inverse_of_create(self, session, product, other_product):
        result = create_purchase(session, _payload((product.id, '10', '7'), (other_product.id, '5', '2')))
        create_purchase(session, _payload((other_product.id, '5', '4')))

        delete_purchase(session, result.purchase_id)

        assert _state(session, product.id) == (Decimal('10'), Decimal('5.00'))
        assert _state(session, other_product.id) == (Decimal('5'), Decimal('4.00'))
        assert session.get(Purchase, result.purchase_id) is None
        assert session.query(PurchaseDetail).filter(
            PurchaseDetail.purchase_id == result.purchase_id
        ).count() == 0

    def test_delete_reports_reversals(self, session, product):
        created = create_purchase(session, _payload((product.id, '10', '7')))

        result = delete_purchase(session, created.purchase_id)

        assert result.purchase is None
        assert [a['direction'] for a in result.adjustments] == ['reverse']
        assert result.adjustments[0]['old_stock'] == Decimal('20')
        assert result.adjustments[0]['new_stock'] == Decimal('10')

    def test_delete_unknown_purchase(self, session):
        with pytest.raises(NotFoundError):
            delete_purchase(session, 12345)

    def test_delete_emptying_product_is_rejected(self, session, other_product):
        created = create_purchase(session, _payload((other_product.id, '10', '3')))

        with pytest.raises(InvalidCostRecalculation):
            delete_purchase(session, created.purchase_id)

        assert session.get(Purchase, created.purchase_id) is not None
        assert _state(session, other_product.id) == (Decimal('10'), Decimal('3.00'))

    def test_dangling_product_keeps_purchase(self, session, product, other_product):
        created = create_purchase(session, _payload((product.id, '10', '7'), (other_product.id, '5', '2')))
        other_id = other_product.id

        session.delete(other_product)
        session.commit()

        with pytest.raises(ProductNotFound) as exc_info:
            delete_purchase(session, created.purchase_id)

        assert exc_info.value.detail_id is not None
        assert session.get(Purchase, created.purchase_id) is not None
        assert _state(session, product.id) == (Decimal('20'), Decimal('6.00'))
        assert session.get(Product, other_id) is None


class TestUpdatePurchase:
    """Tests for update_purchase."""

    def test_update_equals_delete_then_create(self, session, product):
        created = create_purchase(session, _payload((product.id, '10', '7')))

        result = update_purchase(
            session, created.purchase_id,
            _payload((product.id, '4', '8'), reference_number='INV-2', date=date(2024, 4, 2))
        )

        # reverse 10@7 -> 10@5.00, apply 4@8 -> (50 + 32) / 14 = 5.857 -> 5.86
        assert _state(session, product.id) == (Decimal('14'), Decimal('5.86'))
        assert [a['direction'] for a in result.adjustments] == ['reverse', 'apply']

        purchase = session.get(Purchase, created.purchase_id)
        assert purchase.reference_number == 'INV-2'
        assert purchase.date == date(2024, 4, 2)
        assert purchase.number == generate_purchase_number(created.purchase_id)
        assert [(d.quantity, d.cost) for d in purchase.details] == [(Decimal('4'), Decimal('8'))]
        assert session.query(PurchaseDetail).count() == 1

    def test_update_with_identical_lines_is_neutral(self, session, product):
        created = create_purchase(session, _payload((product.id, '10', '7')))

        update_purchase(session, created.purchase_id, _payload((product.id, '10', '7')))

        assert _state(session, product.id) == (Decimal('20'), Decimal('6.00'))

    def test_update_moves_stock_between_products(self, session, product, other_product):
        created = create_purchase(session, _payload((product.id, '10', '7')))

        update_purchase(session, created.purchase_id, _payload((other_product.id, '10', '7')))

        assert _state(session, product.id) == (Decimal('10'), Decimal('5.00'))
        assert _state(session, other_product.id) == (Decimal('10'), Decimal('7.00'))

    def test_unknown_new_product_leaves_purchase_untouched(self, session, product):
        created = create_purchase(session, _payload((product.id, '10', '7'), reference_number='INV-1'))

        with pytest.raises(ProductNotFound) as exc_info:
            update_purchase(
                session, created.purchase_id,
                _payload((product.id, '2', '2'), ('777', '1', '1'), reference_number='INV-2')
            )

        assert exc_info.value.line == 1
        assert _state(session, product.id) == (Decimal('20'), Decimal('6.00'))
        purchase = session.get(Purchase, created.purchase_id)
        session.refresh(purchase)
        assert purchase.reference_number == 'INV-1'
        assert [(d.quantity, d.cost) for d in purchase.details] == [(Decimal('10'), Decimal('7'))]

    def test_failure_after_partial_reversal_rolls_back(self, session, product, other_product):
        """Second old line empties its product after the first was already reversed."""
        created = create_purchase(session, _payload((product.id, '10', '7'), (other_product.id, '10', '3')))

        with pytest.raises(InvalidCostRecalculation):
            update_purchase(session, created.purchase_id, _payload((product.id, '5', '6')))

        assert _state(session, product.id) == (Decimal('20'), Decimal('6.00'))
        assert _state(session, other_product.id) == (Decimal('10'), Decimal('3.00'))
        assert session.query(PurchaseDetail).count() == 2

    def test_update_unknown_purchase(self, session, product):
        with pytest.raises(NotFoundError):
            update_purchase(session, 999, _payload((product.id, '1', '1')))

    def test_update_changes_supplier(self, session, product, supplier):
        created = create_purchase(session, _payload((product.id, '1', '5')))

        update_purchase(session, created.purchase_id, _payload((product.id, '1', '5'), supplier_id=supplier.id))

        assert session.get(Purchase, created.purchase_id).supplier.name == 'Acme Wholesale'


class TestPurchaseAudit:
    """Audit entries are written with each purchase write."""

    def test_audit_trail(self, session, product):
        created = create_purchase(session, _payload((product.id, '10', '7')))
        update_purchase(session, created.purchase_id, _payload((product.id, '5', '7')))
        delete_purchase(session, created.purchase_id)

        logs = get_audit_logs(session, resource_type_filter='purchase', resource_id_filter=created.purchase_id)

        assert [log.action for log in logs] == [
            AuditAction.PURCHASE_DELETED,
            AuditAction.PURCHASE_UPDATED,
            AuditAction.PURCHASE_CREATED,
        ]
        assert 'PUR-000001' in logs[-1].details


def _product_at(session, name, stock, cost):
    product = Product(name=name, in_stock=Decimal(stock), cost=Decimal(cost))
    session.add(product)
    session.commit()
    return product


AWKWARD_LINE_SETS = [
    [('9', '3.33')],
    [('9', '3.33'), ('0.125', '7.1234')],
    [('2.5', '0.0199'), ('0.333', '99.9999'), ('14', '1.01')],
]


class TestExactReversal:
    """Deleting a purchase restores its products exactly, whatever the line values."""

    def test_small_stock_large_purchase(self, session):
        tea = _product_at(session, 'Tea', '1', '10.00')

        created = create_purchase(session, _payload((tea.id, '9', '3.33')))
        assert _state(session, tea.id) == (Decimal('10'), Decimal('4.00'))

        delete_purchase(session, created.purchase_id)
        assert _state(session, tea.id) == (Decimal('1'), Decimal('10.00'))

    @pytest.mark.parametrize('lines', AWKWARD_LINE_SETS)
    def test_create_then_delete_restores_state(self, session, lines):
        tea = _product_at(session, 'Tea', '1', '10.00')
        cups = _product_at(session, 'Cups', '2.5', '3.17')

        created = create_purchase(session, _payload(
            *[(tea.id, qty, cost) for qty, cost in lines],
            *[(cups.id, qty, cost) for qty, cost in reversed(lines)]
        ))
        delete_purchase(session, created.purchase_id)

        assert _state(session, tea.id) == (Decimal('1'), Decimal('10.00'))
        assert _state(session, cups.id) == (Decimal('2.5'), Decimal('3.17'))

    @pytest.mark.parametrize('old_lines, new_lines', [
        (AWKWARD_LINE_SETS[0], AWKWARD_LINE_SETS[2]),
        (AWKWARD_LINE_SETS[2], AWKWARD_LINE_SETS[1]),
    ])
    def test_update_matches_delete_then_create(self, session, old_lines, new_lines):
        updated = _product_at(session, 'Tea A', '1', '10.00')
        recreated = _product_at(session, 'Tea B', '1', '10.00')

        first = create_purchase(session, _payload(*[(updated.id, q, c) for q, c in old_lines]))
        update_purchase(session, first.purchase_id, _payload(*[(updated.id, q, c) for q, c in new_lines]))

        second = create_purchase(session, _payload(*[(recreated.id, q, c) for q, c in old_lines]))
        delete_purchase(session, second.purchase_id)
        create_purchase(session, _payload(*[(recreated.id, q, c) for q, c in new_lines]))

        assert _state(session, updated.id) == _state(session, recreated.id)
        assert session.get(Product, updated.id).inventory_value == session.get(Product, recreated.id).inventory_value


class TestIdentifierResolution:
    """Identifiers that cannot name a row resolve to not-found errors."""

    @pytest.mark.parametrize('product_id', ['²', '٣', '9' * 25, str(2 ** 63), '-1', '1.0'])
    def test_unresolvable_product_id(self, session, product, product_id):
        with pytest.raises(ProductNotFound) as exc_info:
            create_purchase(session, _payload((product_id, '1', '1')))

        assert exc_info.value.product_id == product_id
        assert session.query(Purchase).count() == 0

    @pytest.mark.parametrize('supplier_id', ['²', '9' * 25])
    def test_unresolvable_supplier_id(self, session, product, supplier_id):
        with pytest.raises(ValidationError) as exc_info:
            create_purchase(session, _payload((product.id, '1', '1'), supplier_id=supplier_id))

        assert exc_info.value.field == 'supplier'

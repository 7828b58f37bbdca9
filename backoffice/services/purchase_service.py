"""
Purchase service with transactional inventory costing.

Each operation runs as a single transaction on the given session:
- every touched product row is locked (SELECT ... FOR UPDATE, ascending id)
  before the first mutation, so purchases sharing products serialize
- any product that cannot be resolved aborts before anything is mutated
- any error rolls back products, lines, header and audit entry together
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from backoffice.exceptions import BackofficeError, NotFoundError, ProductNotFound, ValidationError
from backoffice.models import Product, Supplier, Purchase, PurchaseDetail, AuditAction
from backoffice.services.audit_service import log_action
from backoffice.services.costing_service import (
    DEFAULT_COST_PLACES, apply_line_to_product, reverse_line_from_product
)
from backoffice.utils.purchase_payload import PurchaseInput

logger = logging.getLogger(__name__)

PURCHASE_FORM_CACHE_MODULE = 'purchase_form'

MAX_BIGINT = 2 ** 63 - 1


@dataclass
class PurchaseResult:
    """Outcome of a purchase write: the persisted purchase and per-line product changes."""
    purchase_id: int
    purchase: Optional[Purchase] = None
    adjustments: List[dict] = field(default_factory=list)


def generate_purchase_number(purchase_id: int) -> str:
    """Generate the human-facing purchase number from its id."""
    return f"PUR-{str(purchase_id).zfill(6)}"


def _int_id(value) -> Optional[int]:
    """Row id for an identifier, or None when it cannot name a BIGINT row."""
    if value is None:
        return None
    text = str(value).strip()
    # ASCII only: '²' is a digit and '٣' is decimal, neither is an id
    if not (text.isascii() and text.isdigit()):
        return None
    try:
        number = int(text)
    except ValueError:
        return None
    return number if number <= MAX_BIGINT else None


def _resolve_supplier(session, supplier_id) -> Optional[int]:
    if supplier_id is None:
        return None
    key = _int_id(supplier_id)
    supplier = session.get(Supplier, key) if key is not None else None
    if not supplier:
        raise ValidationError(f'Supplier {supplier_id} not found', field='supplier')
    return supplier.id


def _lock_purchase(session, purchase_id: int) -> Purchase:
    purchase = session.query(Purchase).filter(
        Purchase.id == purchase_id
    ).with_for_update().first()

    if not purchase:
        raise NotFoundError(f'Purchase {purchase_id} not found')
    return purchase


def _lock_products(session, product_ids) -> dict:
    """Lock products in ascending id order and map them by id."""
    ids = sorted({pid for pid in product_ids if pid is not None})
    if not ids:
        return {}

    products = session.query(Product).filter(
        Product.id.in_(ids)
    ).order_by(Product.id).with_for_update().all()

    return {product.id: product for product in products}


def _require_line_products(products: dict, payload: PurchaseInput) -> None:
    for index, line in enumerate(payload.lines):
        if products.get(_int_id(line.product_id)) is None:
            raise ProductNotFound(line.product_id, line=index)


def _require_detail_products(products: dict, details) -> None:
    for detail in details:
        if detail.product_id is None or products.get(detail.product_id) is None:
            raise ProductNotFound(detail.product_id, detail_id=detail.id)


def _apply_lines(purchase: Purchase, payload: PurchaseInput, products: dict, places: int) -> List[dict]:
    """Apply each input line in order and attach a new PurchaseDetail for it."""
    adjustments = []
    for index, line in enumerate(payload.lines):
        product = products[_int_id(line.product_id)]

        adjustment = apply_line_to_product(product, line.quantity, line.unit_cost, places)
        adjustment.update({'direction': 'apply', 'line': index,
                           'quantity': line.quantity, 'unit_cost': line.unit_cost})
        adjustments.append(adjustment)

        purchase.details.append(PurchaseDetail(
            product_id=product.id,
            cost=line.unit_cost,
            quantity=line.quantity
        ))
    return adjustments


def _reverse_details(purchase: Purchase, details, products: dict, places: int, remove: bool) -> List[dict]:
    """Back each stored line out of its product, optionally detaching the line."""
    adjustments = []
    for detail in details:
        product = products[detail.product_id]

        adjustment = reverse_line_from_product(product, detail.quantity, detail.cost, places)
        adjustment.update({'direction': 'reverse', 'detail_id': detail.id,
                           'quantity': detail.quantity, 'unit_cost': detail.cost})
        adjustments.append(adjustment)

        if remove:
            purchase.details.remove(detail)
    return adjustments


def _invalidate_purchase_form_cache() -> None:
    """Product stock/cost changed: drop the cached purchase-form payload."""
    from backoffice.services.cache_service import get_cache
    try:
        get_cache().invalidate_module(PURCHASE_FORM_CACHE_MODULE)
    except RuntimeError:
        # Cache not initialized (service used outside the app factory)
        pass


def create_purchase(session, payload: PurchaseInput, places: int = DEFAULT_COST_PLACES) -> PurchaseResult:
    """
    Create a purchase with its lines and blend each line into product stock/cost.

    Steps:
    1. Resolve supplier
    2. Lock every referenced product; abort on the first unknown one
    3. Create purchase header and assign its number
    4. For each line in input order: apply_inbound, attach PurchaseDetail
    5. Audit and commit

    Args:
        session: SQLAlchemy session
        payload: Validated PurchaseInput
        places: Decimal places kept on product average cost

    Returns:
        PurchaseResult with the created purchase and product adjustments

    Raises:
        ValidationError: Unknown supplier
        ProductNotFound: A line references an unknown product
        InvalidCostRecalculation: A line would leave a product at zero stock
    """
    try:
        supplier_id = _resolve_supplier(session, payload.supplier_id)

        products = _lock_products(session, [_int_id(line.product_id) for line in payload.lines])
        _require_line_products(products, payload)

        purchase = Purchase(supplier_id=supplier_id, **payload.header_fields())
        session.add(purchase)
        session.flush()  # Get purchase.id
        purchase.number = generate_purchase_number(purchase.id)

        adjustments = _apply_lines(purchase, payload, products, places)

        log_action(
            session,
            AuditAction.PURCHASE_CREATED,
            resource_type='purchase',
            resource_id=purchase.id,
            details={'number': purchase.number, 'adjustments': adjustments}
        )

        session.commit()

    except BackofficeError:
        session.rollback()
        raise

    except Exception:
        session.rollback()
        logger.exception("Unexpected error creating purchase")
        raise

    logger.info(f"Purchase {purchase.id} created with {len(adjustments)} lines")
    _invalidate_purchase_form_cache()

    return PurchaseResult(purchase_id=purchase.id, purchase=purchase, adjustments=adjustments)


def update_purchase(session, purchase_id: int, payload: PurchaseInput,
                    places: int = DEFAULT_COST_PLACES) -> PurchaseResult:
    """
    Replace a purchase's header and full line set.

    Net effect on products is "reverse every old line, then apply every new
    line", in that order; a product present in both sets gets both steps.

    Raises:
        NotFoundError: Unknown purchase
        ValidationError: Unknown supplier
        ProductNotFound: An old or new line references an unknown product
        InvalidCostRecalculation: A step would leave a product at zero stock
    """
    try:
        purchase = _lock_purchase(session, purchase_id)
        supplier_id = _resolve_supplier(session, payload.supplier_id)

        old_details = list(purchase.details)
        products = _lock_products(
            session,
            [detail.product_id for detail in old_details]
            + [_int_id(line.product_id) for line in payload.lines]
        )
        _require_detail_products(products, old_details)
        _require_line_products(products, payload)

        for name, value in payload.header_fields().items():
            setattr(purchase, name, value)
        purchase.supplier_id = supplier_id

        adjustments = _reverse_details(purchase, old_details, products, places, remove=True)
        adjustments += _apply_lines(purchase, payload, products, places)

        log_action(
            session,
            AuditAction.PURCHASE_UPDATED,
            resource_type='purchase',
            resource_id=purchase.id,
            details={'number': purchase.number, 'adjustments': adjustments}
        )

        session.commit()

    except BackofficeError:
        session.rollback()
        raise

    except Exception:
        session.rollback()
        logger.exception(f"Unexpected error updating purchase {purchase_id}")
        raise

    logger.info(f"Purchase {purchase_id} updated: {len(old_details)} lines reversed, "
                f"{len(payload.lines)} lines applied")
    _invalidate_purchase_form_cache()

    return PurchaseResult(purchase_id=purchase_id, purchase=purchase, adjustments=adjustments)


def delete_purchase(session, purchase_id: int, places: int = DEFAULT_COST_PLACES) -> PurchaseResult:
    """
    Delete a purchase and back all of its lines out of product stock/cost.

    If any line's product cannot be resolved, nothing is reversed and the
    purchase is kept.

    Raises:
        NotFoundError: Unknown purchase
        ProductNotFound: A line references an unknown product
        InvalidCostRecalculation: A reversal would leave a product at zero stock
    """
    try:
        purchase = _lock_purchase(session, purchase_id)

        details = list(purchase.details)
        products = _lock_products(session, [detail.product_id for detail in details])
        _require_detail_products(products, details)

        adjustments = _reverse_details(purchase, details, products, places, remove=False)

        number = purchase.number
        session.delete(purchase)  # Lines cascade

        log_action(
            session,
            AuditAction.PURCHASE_DELETED,
            resource_type='purchase',
            resource_id=purchase_id,
            details={'number': number, 'adjustments': adjustments}
        )

        session.commit()

    except BackofficeError:
        session.rollback()
        raise

    except Exception:
        session.rollback()
        logger.exception(f"Unexpected error deleting purchase {purchase_id}")
        raise

    logger.info(f"Purchase {purchase_id} deleted, {len(adjustments)} lines reversed")
    _invalidate_purchase_form_cache()

    return PurchaseResult(purchase_id=purchase_id, adjustments=adjustments)

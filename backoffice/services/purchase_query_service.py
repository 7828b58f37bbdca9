"""Read-side projections for purchases: listing, detail and create-form data."""
from typing import Optional

from sqlalchemy import or_, func, cast, String
from sqlalchemy.orm import selectinload, joinedload

from backoffice.exceptions import NotFoundError
from backoffice.models import Category, Product, Supplier, Purchase, PurchaseDetail, Setting
from backoffice.services.purchase_service import PURCHASE_FORM_CACHE_MODULE
from backoffice.utils.formatters import fmt_amount, fmt_unit_cost, fmt_quantity, fmt_date
from backoffice.utils.media import placeholder_image_url

UNCATEGORIZED = 'Uncategorized'


def _like(value: str) -> str:
    return f'%{value.strip().lower()}%'


def list_purchase_products(
    session,
    search_query: Optional[str] = None,
    supplier_name: Optional[str] = None,
    date: Optional[str] = None,
    purchase_number: Optional[str] = None,
    page: int = 1,
    per_page: int = 20,
    places: int = 2
) -> list:
    """
    List purchased products grouped by product category.

    Purchases are filtered, ordered by date (newest first) and paged; their
    lines are then grouped into category buckets in order of first
    appearance. Lines whose product cannot be resolved are skipped.

    Returns:
        List of {'id', 'name', 'image_url', 'products': [...]} buckets
    """
    query = session.query(Purchase).options(
        joinedload(Purchase.supplier),
        selectinload(Purchase.details)
        .selectinload(PurchaseDetail.product)
        .selectinload(Product.category)
    )

    if search_query and search_query.strip():
        pattern = _like(search_query)
        query = query.filter(or_(
            func.lower(Purchase.number).like(pattern),
            func.lower(Purchase.reference_number).like(pattern),
            func.lower(Purchase.notes).like(pattern),
            func.lower(Purchase.shipment_name).like(pattern)
        ))

    if supplier_name and supplier_name.strip():
        query = query.join(Supplier, Purchase.supplier_id == Supplier.id).filter(
            func.lower(Supplier.name).like(_like(supplier_name))
        )

    if date and date.strip():
        query = query.filter(cast(Purchase.date, String).like(f'%{date.strip()}%'))

    if purchase_number and purchase_number.strip():
        query = query.filter(func.lower(Purchase.number).like(_like(purchase_number)))

    purchases = (query
                 .order_by(Purchase.date.desc(), Purchase.id.desc())
                 .limit(per_page)
                 .offset((page - 1) * per_page)
                 .all())

    buckets = {}
    for purchase in purchases:
        for detail in purchase.details:
            product = detail.product
            if product is None:
                continue

            bucket = buckets.get(product.category_id)
            if bucket is None:
                bucket = _category_bucket(product)
                buckets[product.category_id] = bucket

            bucket['products'].append(_product_entry(product, detail, purchase, places))

    return list(buckets.values())


def _category_bucket(product: Product) -> dict:
    category = product.category
    if category is None:
        return {
            'id': None,
            'name': UNCATEGORIZED,
            'image_url': placeholder_image_url(),
            'products': []
        }
    return {
        'id': category.id,
        'name': category.name,
        'image_url': category.image_url or placeholder_image_url(),
        'products': []
    }


def _product_entry(product: Product, detail: PurchaseDetail, purchase: Purchase, places: int) -> dict:
    return {
        'id': product.id,
        'purchase_id': purchase.id,
        'purchase_number': purchase.number,
        'full_name': product.full_name or product.name,
        'name': product.name,
        'quantity': fmt_quantity(detail.quantity),
        'unit_cost': fmt_unit_cost(detail.cost),
        'line_total_cost': fmt_amount(detail.line_total_cost, places),
        'wholesale_price': fmt_amount(product.wholesale_price),
        'retailsale_price': fmt_amount(product.retailsale_price),
        'image_url': product.image_url or placeholder_image_url(),
        'barcode': product.barcode,
        'wholesale_barcode': product.wholesale_barcode,
        'retail_barcode': product.retail_barcode,
        'sku': product.sku,
        'wholesale_sku': product.wholesale_sku,
        'retail_sku': product.retail_sku,
        'in_stock': fmt_quantity(product.in_stock),
        'track_stock': product.track_stock,
        'continue_selling_when_out_of_stock': product.continue_selling_when_out_of_stock,
    }


def get_purchase(session, purchase_id: int) -> Purchase:
    """Load a purchase with its lines or raise NotFoundError."""
    purchase = session.query(Purchase).options(
        joinedload(Purchase.supplier),
        selectinload(Purchase.details).selectinload(PurchaseDetail.product)
    ).filter(Purchase.id == purchase_id).first()

    if not purchase:
        raise NotFoundError(f'Purchase {purchase_id} not found')
    return purchase


def serialize_purchase(purchase: Purchase, places: int = 2) -> dict:
    """Purchase header, supplier summary and lines as a JSON-ready dict."""
    supplier = purchase.supplier
    details = []
    total = 0
    for detail in purchase.details:
        product = detail.product
        details.append({
            'id': detail.id,
            'product_id': detail.product_id,
            'product_name': product.name if product else None,
            'quantity': fmt_quantity(detail.quantity),
            'cost': fmt_unit_cost(detail.cost),
            'line_total_cost': fmt_amount(detail.line_total_cost, places),
        })
        total += detail.line_total_cost

    return {
        'id': purchase.id,
        'number': purchase.number,
        'supplier_id': purchase.supplier_id,
        'supplier': {'id': supplier.id, 'name': supplier.name} if supplier else None,
        'reference_number': purchase.reference_number,
        'notes': purchase.notes,
        'date': fmt_date(purchase.date),
        'shipment_name': purchase.shipment_name,
        'package_country': purchase.package_country,
        'mode': purchase.mode,
        'barcode': purchase.barcode,
        'details': details,
        'total_cost': fmt_amount(total, places),
        'created_at': fmt_date(purchase.created_at),
        'updated_at': fmt_date(purchase.updated_at),
    }


def serialize_adjustment(adjustment: dict, places: int = 2) -> dict:
    """Product stock/cost change produced by one applied or reversed line."""
    rv = {
        'product_id': adjustment['product_id'],
        'product_name': adjustment.get('product_name'),
        'direction': adjustment.get('direction'),
        'quantity': fmt_quantity(adjustment.get('quantity')),
        'unit_cost': fmt_unit_cost(adjustment.get('unit_cost')),
        'old_stock': fmt_quantity(adjustment['old_stock']),
        'new_stock': fmt_quantity(adjustment['new_stock']),
        'old_cost': fmt_amount(adjustment['old_cost'], places),
        'new_cost': fmt_amount(adjustment['new_cost'], places),
    }
    if 'line' in adjustment:
        rv['line'] = adjustment['line']
    if 'detail_id' in adjustment:
        rv['detail_id'] = adjustment['detail_id']
    return rv


def purchase_form_data(session, default_currency: str = '$', ttl: Optional[int] = None,
                       places: int = 2) -> dict:
    """
    Lookups needed to compose a purchase: suppliers, categories with their
    products, and the currency symbol. Cached until the next purchase write.
    """
    def load():
        suppliers = session.query(Supplier).order_by(Supplier.name).all()
        categories = (session.query(Category)
                      .options(selectinload(Category.products))
                      .order_by(Category.sort_order, Category.name)
                      .all())
        return {
            'suppliers': [
                {'id': s.id, 'name': s.name, 'phone': s.phone, 'email': s.email}
                for s in suppliers
            ],
            'categories': [
                {
                    'id': c.id,
                    'name': c.name,
                    'sort_order': c.sort_order,
                    'image_url': c.image_url or placeholder_image_url(),
                    'products': [
                        {
                            'id': p.id,
                            'name': p.name,
                            'full_name': p.full_name or p.name,
                            'sku': p.sku,
                            'barcode': p.barcode,
                            'in_stock': fmt_quantity(p.in_stock),
                            'cost': fmt_amount(p.cost, places),
                        }
                        for p in c.products
                    ],
                }
                for c in categories
            ],
            'currency': Setting.get_value(session, Setting.CURRENCY_SYMBOL, default_currency),
        }

    from backoffice.services.cache_service import get_cache
    try:
        cache = get_cache()
    except RuntimeError:
        return load()
    return cache.memoize(PURCHASE_FORM_CACHE_MODULE, 'payload', load, ttl)

"""
Weighted-average cost engine.

Every purchase line moves a product's running stock and its inventory value
(the exact sum of quantity * unit cost held), and the average cost is derived
from them:

    apply:   new_stock = stock + qty
             new_value = value + qty * unit_cost
    reverse: new_stock = stock - qty
             new_value = value - qty * unit_cost

             new_cost  = new_value / new_stock

Stock and value are never rounded, so a reversal is the exact inverse of the
application it undoes. The derived cost is rounded to the currency minor unit
(ROUND_HALF_UP) in both directions. When no value is recorded yet it is taken
as stock * cost.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import NamedTuple

from backoffice.exceptions import InvalidCostRecalculation

logger = logging.getLogger(__name__)

DEFAULT_COST_PLACES = 2


class CostResult(NamedTuple):
    """Product stock, average cost and exact inventory value after one line."""
    in_stock: Decimal
    cost: Decimal
    value: Decimal


def to_decimal(value) -> Decimal:
    """Convert int/float/str/Decimal/None into a Decimal (None -> 0)."""
    if value is None:
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f'Invalid numeric value: {value!r}')


def round_cost(value: Decimal, places: int = DEFAULT_COST_PLACES) -> Decimal:
    """Round an average cost to ``places`` decimals, half away from zero."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def holding_value(in_stock, cost, value=None) -> Decimal:
    """Recorded inventory value, or stock * cost when none is recorded."""
    if value is not None:
        return to_decimal(value)
    return to_decimal(in_stock) * to_decimal(cost)


def _recalculate(in_stock, cost, quantity, unit_cost, sign, places, product_id=None, value=None) -> CostResult:
    in_stock = to_decimal(in_stock)
    quantity = to_decimal(quantity)
    unit_cost = to_decimal(unit_cost)
    value = holding_value(in_stock, cost, value)

    new_stock = in_stock + sign * quantity
    if new_stock == 0:
        raise InvalidCostRecalculation(product_id=product_id, resulting_stock=new_stock)

    new_value = value + sign * quantity * unit_cost
    return CostResult(in_stock=new_stock, cost=round_cost(new_value / new_stock, places), value=new_value)


def apply_inbound(in_stock, cost, quantity, unit_cost, places: int = DEFAULT_COST_PLACES,
                  product_id=None, value=None) -> CostResult:
    """
    Add a received lot to a product's holdings.

    Args:
        in_stock: Current stock quantity
        cost: Current average unit cost
        quantity: Units received
        unit_cost: Unit cost of the received lot
        places: Decimal places kept on the resulting cost
        product_id: Only used to label errors
        value: Current exact inventory value (defaults to in_stock * cost)

    Returns:
        CostResult with the new stock, blended average cost and inventory value

    Raises:
        InvalidCostRecalculation: If the resulting stock is exactly zero
    """
    return _recalculate(in_stock, cost, quantity, unit_cost, 1, places, product_id, value)


def reverse_inbound(in_stock, cost, quantity, unit_cost, places: int = DEFAULT_COST_PLACES,
                    product_id=None, value=None) -> CostResult:
    """
    Back a previously applied lot out of a product's holdings.

    Given the value returned by the matching apply_inbound, the previous
    stock and value come back exactly. Other stock/cost mutations in between
    make the result an approximation.

    Raises:
        InvalidCostRecalculation: If the resulting stock is exactly zero
    """
    return _recalculate(in_stock, cost, quantity, unit_cost, -1, places, product_id, value)


def _adjust_product(product, quantity, unit_cost, places, fn) -> dict:
    old_stock = to_decimal(product.in_stock)
    old_cost = to_decimal(product.cost)

    result = fn(old_stock, old_cost, quantity, unit_cost, places=places,
                product_id=product.id, value=product.inventory_value)

    product.in_stock = result.in_stock
    product.cost = result.cost
    product.inventory_value = result.value

    if result.in_stock < 0:
        logger.warning(
            f"Product {product.id} stock went negative: {old_stock} -> {result.in_stock}"
        )

    return {
        'product_id': product.id,
        'product_name': product.name,
        'old_stock': old_stock,
        'new_stock': result.in_stock,
        'old_cost': old_cost,
        'new_cost': result.cost,
    }


def apply_line_to_product(product, quantity, unit_cost, places: int = DEFAULT_COST_PLACES) -> dict:
    """Apply a purchase line to an ORM product in place and describe the change."""
    return _adjust_product(product, quantity, unit_cost, places, apply_inbound)


def reverse_line_from_product(product, quantity, unit_cost, places: int = DEFAULT_COST_PLACES) -> dict:
    """Reverse a purchase line from an ORM product in place and describe the change."""
    return _adjust_product(product, quantity, unit_cost, places, reverse_inbound)

"""Validation of purchase write bodies into structured line records."""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Optional

from backoffice.exceptions import ValidationError, EmptyLineSet

QTY_QUANT = Decimal('0.001')
UNIT_COST_QUANT = Decimal('0.0001')

REFERENCE_NUMBER_MAX = 150
SHIPMENT_NAME_MAX = 150
SHORT_TEXT_MAX = 255


@dataclass(frozen=True)
class PurchaseLineInput:
    product_id: str
    quantity: Decimal
    unit_cost: Decimal


@dataclass
class PurchaseInput:
    date: date
    supplier_id: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    shipment_name: Optional[str] = None
    package_country: Optional[str] = None
    mode: Optional[str] = None
    barcode: Optional[str] = None
    lines: List[PurchaseLineInput] = field(default_factory=list)

    def header_fields(self) -> dict:
        """Column values for the Purchase header (supplier resolved by the caller)."""
        return {
            'reference_number': self.reference_number,
            'notes': self.notes,
            'date': self.date,
            'shipment_name': self.shipment_name,
            'package_country': self.package_country,
            'mode': self.mode,
            'barcode': self.barcode,
        }


def parse_non_negative(value, field_name: str, quant: Decimal) -> Decimal:
    """
    Parse an optional non-negative number.

    Rules:
    - None or blank string -> 0
    - int, float, Decimal or numeric string accepted; booleans rejected
    - Negative values rejected
    - Quantized to ``quant`` (ROUND_HALF_UP)

    Raises:
        ValidationError: if the value is not numeric or is negative.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal('0').quantize(quant)

    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        raise ValidationError(f'{field_name} must be numeric', field=field_name)

    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f'{field_name} must be numeric', field=field_name)

    if not number.is_finite():
        raise ValidationError(f'{field_name} must be numeric', field=field_name)
    if number < 0:
        raise ValidationError(f'{field_name} must be at least 0', field=field_name)

    return number.quantize(quant, rounding=ROUND_HALF_UP)


def parse_date(value, field_name: str = 'date') -> date:
    """Parse a required ISO date; datetime strings are truncated to their date."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError('date is required', field=field_name)
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError('date must be a valid date', field=field_name)

    cleaned = value.strip()
    try:
        return date.fromisoformat(cleaned[:10])
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(cleaned).date()
    except ValueError:
        raise ValidationError('date must be a valid date', field=field_name)


def parse_optional_text(data: dict, key: str, max_length: Optional[int] = None) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f'{key} must be a string', field=key)
    value = value.strip()
    if not value:
        return None
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f'{key} may not be greater than {max_length} characters', field=key)
    return value


def parse_identifier(value, field_name: str, required: bool = True) -> Optional[str]:
    """Identifiers arrive as non-empty strings or integers."""
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f'{field_name} is required', field=field_name)
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValidationError(f'{field_name} must be a string identifier', field=field_name)
    return str(value).strip()


def _array(data: dict, name: str):
    """Read a legacy parallel array sent as ``name[]`` or ``name``."""
    for key in (f'{name}[]', name):
        if key in data and data[key] is not None:
            value = data[key]
            if not isinstance(value, list):
                raise ValidationError(f'{name} must be an array', field=name)
            return value
    return None


def _raw_lines(data: dict) -> list:
    """Collect raw line dicts from structured ``lines`` or legacy parallel arrays."""
    if data.get('lines') is not None:
        lines = data['lines']
        if not isinstance(lines, list):
            raise ValidationError('lines must be an array', field='lines')
        for index, line in enumerate(lines):
            if not isinstance(line, dict):
                raise ValidationError(f'lines.{index} must be an object', field=f'lines.{index}')
        return lines

    items = _array(data, 'item') or []
    costs = _array(data, 'cost')
    quantities = _array(data, 'quantity')

    for name, values in (('cost', costs), ('quantity', quantities)):
        if values is not None and len(values) != len(items):
            raise ValidationError(f'{name} must have one entry per item', field=name)

    return [
        {
            'product_id': product_id,
            'quantity': quantities[index] if quantities is not None else None,
            'unit_cost': costs[index] if costs is not None else None,
        }
        for index, product_id in enumerate(items)
    ]


def parse_purchase_payload(data) -> PurchaseInput:
    """
    Validate a purchase create/update body.

    Args:
        data: Decoded JSON object with date, supplier, reference_number, notes,
            shipment metadata and either ``lines`` or ``item[]/cost[]/quantity[]``

    Returns:
        PurchaseInput with lines in input order

    Raises:
        ValidationError: For malformed fields (checked before emptiness)
        EmptyLineSet: When no line items are supplied
    """
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    raw_lines = _raw_lines(data)

    lines = []
    for index, raw in enumerate(raw_lines):
        prefix = f'lines.{index}'
        lines.append(PurchaseLineInput(
            product_id=parse_identifier(raw.get('product_id'), f'{prefix}.product_id'),
            quantity=parse_non_negative(raw.get('quantity'), f'{prefix}.quantity', QTY_QUANT),
            unit_cost=parse_non_negative(raw.get('unit_cost'), f'{prefix}.unit_cost', UNIT_COST_QUANT),
        ))

    payload = PurchaseInput(
        date=parse_date(data.get('date')),
        supplier_id=parse_identifier(data.get('supplier'), 'supplier', required=False),
        reference_number=parse_optional_text(data, 'reference_number', REFERENCE_NUMBER_MAX),
        notes=parse_optional_text(data, 'notes'),
        shipment_name=parse_optional_text(data, 'shipment_name', SHIPMENT_NAME_MAX),
        package_country=parse_optional_text(data, 'package_country', SHORT_TEXT_MAX),
        mode=parse_optional_text(data, 'mode', SHORT_TEXT_MAX),
        barcode=parse_optional_text(data, 'barcode', SHORT_TEXT_MAX),
        lines=lines,
    )

    if not payload.lines:
        raise EmptyLineSet()

    return payload

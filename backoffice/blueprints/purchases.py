"""Purchases blueprint: JSON API for stock replenishment shipments."""
from flask import Blueprint, request, jsonify, current_app

from backoffice.database import get_session
from backoffice.exceptions import ValidationError
from backoffice.blueprints.metrics import track_purchase_operation, count_purchase_lines
from backoffice.services.purchase_service import create_purchase, update_purchase, delete_purchase
from backoffice.services.purchase_query_service import (
    list_purchase_products, get_purchase, serialize_purchase, serialize_adjustment, purchase_form_data
)
from backoffice.utils.purchase_payload import parse_purchase_payload

purchases_bp = Blueprint('purchases', __name__, url_prefix='/purchases')

MAX_PAGE = 1_000_000


def _places() -> int:
    return current_app.config.get('COST_DECIMAL_PLACES', 2)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _positive_int_arg(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == '':
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f'{name} must be a positive integer', field=name)
    if value < 1 or value > MAX_PAGE:
        raise ValidationError(f'{name} must be between 1 and {MAX_PAGE}', field=name)
    return value


def _write_response(result, message, places, data=None, status=200):
    count_purchase_lines(result.adjustments)
    return jsonify({
        'success': True,
        'message': message,
        'data': data if data is not None else serialize_purchase(result.purchase, places),
        'adjustments': [serialize_adjustment(a, places) for a in result.adjustments]
    }), status


@purchases_bp.route('', methods=['GET'])
def list_purchases():
    """List purchased products grouped by category, with optional filters."""
    session = get_session()
    page = _positive_int_arg('page', 1)

    data = list_purchase_products(
        session,
        search_query=request.args.get('search_query', ''),
        supplier_name=request.args.get('supplier_name', ''),
        date=request.args.get('date', ''),
        purchase_number=request.args.get('purchase_number', ''),
        page=page,
        per_page=current_app.config.get('PURCHASES_PER_PAGE', 20),
        places=_places()
    )

    return jsonify({'status': 'ok', 'page': page, 'data': data})


@purchases_bp.route('/create', methods=['GET'])
def new_purchase():
    """Suppliers, categories with products and currency needed to compose a purchase."""
    session = get_session()
    data = purchase_form_data(
        session,
        default_currency=current_app.config.get('CURRENCY_SYMBOL', '$'),
        ttl=current_app.config.get('CACHE_PURCHASE_FORM_TTL'),
        places=_places()
    )
    return jsonify({'success': True, 'data': data})


@purchases_bp.route('/<int(max=9223372036854775807):purchase_id>', methods=['GET'])
def show_purchase(purchase_id):
    session = get_session()
    purchase = get_purchase(session, purchase_id)
    return jsonify({'success': True, 'data': serialize_purchase(purchase, _places())})


@purchases_bp.route('', methods=['POST'])
def store_purchase():
    """Create a purchase and apply its lines to product stock/cost."""
    session = get_session()
    places = _places()

    with track_purchase_operation('create'):
        payload = parse_purchase_payload(_json_body())
        result = create_purchase(session, payload, places)

    return _write_response(result, 'Purchase created successfully', places, status=201)


@purchases_bp.route('/<int(max=9223372036854775807):purchase_id>', methods=['PUT'])
def replace_purchase(purchase_id):
    """Replace a purchase's header and lines (old lines reversed, new lines applied)."""
    session = get_session()
    places = _places()

    with track_purchase_operation('update'):
        payload = parse_purchase_payload(_json_body())
        result = update_purchase(session, purchase_id, payload, places)

    return _write_response(result, 'Purchase updated successfully', places)


@purchases_bp.route('/<int(max=9223372036854775807):purchase_id>', methods=['DELETE'])
def destroy_purchase(purchase_id):
    """Delete a purchase and reverse its lines from product stock/cost."""
    session = get_session()
    places = _places()

    with track_purchase_operation('delete'):
        result = delete_purchase(session, purchase_id, places)

    return _write_response(result, 'Purchase deleted successfully', places, data={'id': result.purchase_id})

import functools
import hashlib
import json
from datetime import timezone as dt_timezone
from decimal import Decimal, InvalidOperation

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from mirror.exceptions import InvalidPayload


def to_money(value, allow_blank=False):
    """Normalise a remote amount to an exact-decimal string."""
    if value is None or value == '':
        if allow_blank:
            return ''
        raise InvalidPayload("missing amount")
    if isinstance(value, bool):
        raise InvalidPayload(f"non-numeric amount ({value!r})")
    try:
        # str() first so floats keep their shortest repr instead of binary noise
        amount = Decimal(str(value))
    except InvalidOperation:
        raise InvalidPayload(f"non-numeric amount ({value!r})") from None
    if not amount.is_finite():
        raise InvalidPayload(f"non-numeric amount ({value!r})")
    return str(amount)


def to_datetime(raw, field):
    """Read a remote timestamp, preferring the ``<field>_gmt`` variant."""
    value = raw.get(f'{field}_gmt') or raw.get(field)
    if not value:
        raise InvalidPayload(f"missing {field}")
    try:
        parsed = parse_datetime(value)
    except (TypeError, ValueError):
        parsed = None
    if parsed is None:
        raise InvalidPayload(f"unparseable {field} ({value!r})")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def _to_int(value, field, default=None):
    if value is None or value == '':
        if default is not None:
            return default
        raise InvalidPayload(f"missing {field}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidPayload(f"non-integer {field} ({value!r})") from None


def _is_identifier(value):
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value > 0
    return isinstance(value, str) and value.isdigit() and int(value) > 0


def structural(func):
    """Report shape errors inside a payload (wrong nesting, wrong types) as InvalidPayload."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (KeyError, TypeError, AttributeError) as exc:
            raise InvalidPayload(f"malformed payload: {exc!r}") from exc
    return wrapper


def validate_order(raw):
    """Returns (is_valid, reason)."""
    if not isinstance(raw, dict):
        return False, "payload is not an object"

    order_id = raw.get('id')
    if not order_id:
        return False, "missing order id"
    if not _is_identifier(order_id):
        return False, f"malformed order id {order_id!r}"

    if not raw.get('status'):
        return False, f"{order_id}: missing status"

    line_items = raw.get('line_items')
    if line_items is None:
        return False, f"{order_id}: missing line items"
    if not isinstance(line_items, list):
        return False, f"{order_id}: line items is not a list"
    for item in line_items:
        if not isinstance(item, dict) or 'product_id' not in item:
            return False, f"{order_id}: line item without product_id"

    return True, ""


def transform_line_item(item):
    quantity = _to_int(item.get('quantity'), 'quantity')
    if quantity < 1:
        raise InvalidPayload(f"non-positive quantity ({quantity})")
    return {
        'product_remote_id': _to_int(item.get('product_id'), 'product_id'),
        'name': item.get('name') or '',
        'sku': item.get('sku') or '',
        'quantity': quantity,
        'price': to_money(item.get('price')),
        'total': to_money(item.get('total')),
    }


@structural
def transform_order(raw):
    """Map a remote order to ``(remote_id, order_fields, line_items)``.

    Raises InvalidPayload when a field cannot be mapped structurally.
    """
    remote_id = _to_int(raw['id'], 'id')
    fields = {
        'number': str(raw.get('number') or remote_id),
        'order_key': raw.get('order_key') or '',
        'status': raw['status'],
        'currency': raw.get('currency') or '',
        'total': to_money(raw.get('total')),
        'customer_id': _to_int(raw.get('customer_id'), 'customer_id', default=0),
        'customer_note': raw.get('customer_note') or '',
        'billing': raw.get('billing') or {},
        'shipping': raw.get('shipping') or {},
        'date_created': to_datetime(raw, 'date_created'),
        'last_modified': to_datetime(raw, 'date_modified'),
    }
    line_items = [transform_line_item(item) for item in raw['line_items']]
    return remote_id, fields, line_items


def referenced_product_ids(line_items):
    """Distinct product ids in first-seen order, skipping the deleted-product marker 0."""
    seen = {}
    for item in line_items:
        product_id = item['product_remote_id']
        if product_id:
            seen[product_id] = None
    return list(seen)


def validate_product(raw):
    """Returns (is_valid, reason)."""
    if not isinstance(raw, dict):
        return False, "payload is not an object"

    product_id = raw.get('id')
    if not product_id:
        return False, "missing product id"
    if not _is_identifier(product_id):
        return False, f"malformed product id {product_id!r}"

    if not raw.get('name'):
        return False, f"{product_id}: missing name"

    return True, ""


@structural
def transform_product(raw):
    remote_id = _to_int(raw['id'], 'id')
    stock_quantity = raw.get('stock_quantity')
    fields = {
        'name': raw['name'],
        'slug': raw.get('slug') or '',
        'type': raw.get('type') or 'simple',
        'status': raw.get('status') or 'publish',
        'featured': bool(raw.get('featured')),
        'catalog_visibility': raw.get('catalog_visibility') or 'visible',
        'description': raw.get('description') or '',
        'short_description': raw.get('short_description') or '',
        'sku': raw.get('sku') or '',
        'price': to_money(raw.get('price'), allow_blank=True),
        'regular_price': to_money(raw.get('regular_price'), allow_blank=True),
        'sale_price': to_money(raw.get('sale_price'), allow_blank=True),
        'on_sale': bool(raw.get('on_sale')),
        'purchasable': bool(raw.get('purchasable', True)),
        'total_sales': _to_int(raw.get('total_sales'), 'total_sales', default=0),
        'virtual': bool(raw.get('virtual')),
        'downloadable': bool(raw.get('downloadable')),
        'tax_status': raw.get('tax_status') or 'taxable',
        'tax_class': raw.get('tax_class') or '',
        'manage_stock': bool(raw.get('manage_stock')),
        'stock_quantity': None if stock_quantity is None else _to_int(stock_quantity, 'stock_quantity'),
        'stock_status': raw.get('stock_status') or 'instock',
        'backorders': raw.get('backorders') or 'no',
        'backorders_allowed': bool(raw.get('backorders_allowed')),
        'backordered': bool(raw.get('backordered')),
        'sold_individually': bool(raw.get('sold_individually')),
        'weight': raw.get('weight') or '',
        'dimensions': raw.get('dimensions') or {},
        'shipping_required': bool(raw.get('shipping_required', True)),
        'shipping_taxable': bool(raw.get('shipping_taxable', True)),
        'shipping_class': raw.get('shipping_class') or '',
        'shipping_class_id': _to_int(raw.get('shipping_class_id'), 'shipping_class_id', default=0),
        'reviews_allowed': bool(raw.get('reviews_allowed', True)),
        'images': [
            {key: image.get(key) for key in ('id', 'src', 'name', 'alt')}
            for image in raw.get('images') or []
        ],
        'categories': [
            {key: category.get(key) for key in ('id', 'name', 'slug')}
            for category in raw.get('categories') or []
        ],
        'tags': [
            {key: tag.get(key) for key in ('id', 'name', 'slug')}
            for tag in raw.get('tags') or []
        ],
        'average_rating': str(raw.get('average_rating') or '0'),
        'rating_count': _to_int(raw.get('rating_count'), 'rating_count', default=0),
        'date_created': to_datetime(raw, 'date_created'),
        'date_modified': to_datetime(raw, 'date_modified'),
    }
    return remote_id, fields


def compute_hash(payload):
    canonical = json.dumps(payload, sort_keys=True, ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()

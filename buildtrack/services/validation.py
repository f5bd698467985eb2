# buildtrack/services/validation.py
"""
Request body validation for the entity endpoints.

Each ``validate_*`` function takes the decoded JSON body (camelCase keys, as
sent by the frontend) and returns a dict of model attribute names to cleaned
values. With ``partial=True`` only the keys present in the body are checked
and returned, which is what the PUT handlers use. Unknown keys are ignored.
"""
import re
from decimal import Decimal, InvalidOperation

from ..errors import ValidationError
from ..models import PROJECT_STATUSES, CONTRACT_TYPES, CONTRACT_STATUSES, RECEIPT_STATUSES
from .date_utils import parse_datetime

EMAIL_PATTERN = re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$')
TRUE_STRINGS = ('true', '1', 'yes', 'on')
FALSE_STRINGS = ('false', '0', 'no', 'off')


# --- field parsers ---------------------------------------------------------

def required_text(value, field):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field}' is required")
    return value.strip()


def optional_text(value, field):
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"'{field}' must be a string")
    return value.strip() or None


def email_address(value, field):
    email = optional_text(value, field)
    if email and not EMAIL_PATTERN.match(email):
        raise ValidationError('Please enter a valid email address')
    return email


def identifier(value, field):
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    return required_text(value, field)


def optional_identifier(value, field):
    if value is None or value == '':
        return None
    return identifier(value, field)


def decimal_value(value, field):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f"'{field}' must be a number")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"'{field}' must be a number")
    if not number.is_finite():
        raise ValidationError(f"'{field}' must be a finite number")
    return number


def required_decimal(value, field):
    number = decimal_value(value, field)
    if number is None:
        raise ValidationError(f"'{field}' is required")
    return number


def boolean(value, field):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
    raise ValidationError(f"'{field}' must be true or false")


def datetime_value(value, field):
    try:
        return parse_datetime(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{field}' must be an ISO-8601 date")


def choice(options):
    def parser(value, field):
        if value not in options:
            raise ValidationError(f"'{field}' must be one of: {', '.join(options)}")
        return value
    return parser


# --- entity schemas --------------------------------------------------------

CLIENT_FIELDS = {
    'name': ('name', required_text),
    'email': ('email', email_address),
    'phone': ('phone', optional_text),
    'address': ('address', optional_text),
    'notes': ('notes', optional_text),
}

PROJECT_FIELDS = {
    'clientId': ('client_id', identifier),
    'name': ('name', required_text),
    'description': ('description', optional_text),
    'status': ('status', choice(PROJECT_STATUSES)),
    'budget': ('budget', decimal_value),
    'actualCost': ('actual_cost', required_decimal),
    'startDate': ('start_date', datetime_value),
    'endDate': ('end_date', datetime_value),
}

CONTRACT_FIELDS = {
    'projectId': ('project_id', identifier),
    'parentContractId': ('parent_contract_id', optional_identifier),
    'contractNumber': ('contract_number', optional_text),
    'title': ('title', required_text),
    'type': ('type', choice(CONTRACT_TYPES)),
    'isChangeOrder': ('is_change_order', boolean),
    'status': ('status', choice(CONTRACT_STATUSES)),
    'totalAmount': ('total_amount', required_decimal),
    'contractDate': ('contract_date', datetime_value),
}

LINE_ITEM_FIELDS = {
    'contractId': ('contract_id', identifier),
    'sku': ('sku', optional_text),
    'description': ('description', required_text),
    'quantity': ('quantity', required_decimal),
    'unitPrice': ('unit_price', required_decimal),
    'totalPrice': ('total_price', required_decimal),
    'notes': ('notes', optional_text),
}

RECEIPT_FIELDS = {
    'projectId': ('project_id', optional_identifier),
    'contractId': ('contract_id', optional_identifier),
    'vendor': ('vendor', optional_text),
    'receiptDate': ('receipt_date', datetime_value),
    'totalAmount': ('total_amount', decimal_value),
    'status': ('status', choice(RECEIPT_STATUSES)),
}

PRODUCT_FIELDS = {
    'sku': ('sku', optional_text),
    'name': ('name', required_text),
    'description': ('description', optional_text),
    'category': ('category', optional_text),
    'unitPrice': ('unit_price', decimal_value),
    'unit': ('unit', optional_text),
}


def _clean(data, fields, required, partial):
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')

    cleaned = {}
    for key, (attribute, parser) in fields.items():
        if key in data:
            cleaned[attribute] = parser(data[key], key)
        elif not partial and key in required:
            raise ValidationError(f"'{key}' is required")
    return cleaned


def validate_client(data, partial=False):
    return _clean(data, CLIENT_FIELDS, ('name',), partial)


def validate_project(data, partial=False):
    cleaned = _clean(data, PROJECT_FIELDS, ('clientId', 'name'), partial)
    start, end = cleaned.get('start_date'), cleaned.get('end_date')
    if start and end and end < start:
        raise ValidationError("'endDate' cannot be before 'startDate'")
    return cleaned


def validate_contract(data, partial=False):
    return _clean(data, CONTRACT_FIELDS, ('projectId', 'title'), partial)


def validate_line_item(data, partial=False):
    cleaned = _clean(data, LINE_ITEM_FIELDS, ('contractId', 'description', 'quantity', 'unitPrice'), partial)
    if not partial and 'total_price' not in cleaned:
        cleaned['total_price'] = cleaned['quantity'] * cleaned['unit_price']
    return cleaned


def validate_receipt_update(data):
    return _clean(data, RECEIPT_FIELDS, (), True)


def validate_product(data, partial=False):
    cleaned = _clean(data, PRODUCT_FIELDS, ('name',), partial)
    if not partial and not cleaned.get('unit'):
        cleaned['unit'] = 'each'
    return cleaned

# buildtrack/services/receipt_parser.py
"""
AI receipt parsing.

``ReceiptParser`` turns a stored receipt image or PDF into vendor, date,
total and line items. The extraction service is injected; production uses
``OpenAIReceiptExtractor`` and tests pass a fake with the same ``extract``
method.
"""
import base64
import json
import logging
from decimal import Decimal, InvalidOperation

from openai import OpenAI, OpenAIError

from ..errors import ExternalServiceError
from .date_utils import parse_receipt_date
from .receipt_upload import mime_type_for
from .storage import storage as default_storage

logger = logging.getLogger(__name__)

RECEIPT_PROMPT = """
Analyze this receipt image and extract the following information in JSON format:

{
  "vendor": "store/vendor name",
  "date": "YYYY-MM-DD format",
  "total": "total amount as number",
  "lineItems": [
    {
      "description": "item description",
      "quantity": "quantity as number",
      "unitPrice": "unit price as number",
      "totalPrice": "total price for this item as number",
      "sku": "SKU or item code if available"
    }
  ]
}

Important rules:
1. If you find Home Depot "Pro Xtra" discount lines, subtract them from the item above and do not treat as separate items
2. Extract individual line items, not just the total
3. Convert all prices to numbers without currency symbols
4. Use null for missing values
5. Be precise with item descriptions
6. Handle tax and discount lines appropriately

Respond only with valid JSON.
"""


class OpenAIReceiptExtractor:
    """Sends a receipt to an OpenAI vision model and returns the raw JSON reply."""

    def __init__(self, api_key, model='gpt-4o', timeout=120.0, max_tokens=1000, client=None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self._client = client

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise ExternalServiceError('OPENAI_API_KEY is not configured')
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    def _attachment(self, encoded_content, mime_type):
        data_url = f"data:{mime_type};base64,{encoded_content}"
        if mime_type == 'application/pdf':
            return {'type': 'file', 'file': {'filename': 'receipt.pdf', 'file_data': data_url}}
        return {'type': 'image_url', 'image_url': {'url': data_url}}

    def extract(self, encoded_content, mime_type):
        """
        Args:
            encoded_content (str): Base64 encoded receipt file
            mime_type (str): image/jpeg, image/png or application/pdf

        Returns:
            str: The model's JSON reply, unparsed
        """
        logger.info(f"Sending receipt ({mime_type}) to OpenAI model {self.model}")
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        'role': 'user',
                        'content': [
                            {'type': 'text', 'text': RECEIPT_PROMPT},
                            self._attachment(encoded_content, mime_type),
                        ],
                    }
                ],
                response_format={'type': 'json_object'},
                max_tokens=self.max_tokens,
            )
        except OpenAIError as e:
            raise ExternalServiceError(f"Receipt extraction request failed: {e}") from e

        return response.choices[0].message.content or '{}'


def create_extractor(config):
    """Build the default extractor from Flask config."""
    return OpenAIReceiptExtractor(
        api_key=config.get('OPENAI_API_KEY'),
        model=config.get('OPENAI_MODEL', 'gpt-4o'),
        timeout=config.get('OPENAI_TIMEOUT', 120.0),
    )


def _decimal(value, field):
    if isinstance(value, bool):
        raise ValueError(f"'{field}' is not a number: {value!r}")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"'{field}' is not a number: {value!r}")
    if not number.is_finite():
        raise ValueError(f"'{field}' is not a finite number: {value!r}")
    return number


def _text(value):
    if value is None:
        return None
    return str(value).strip() or None


def parse_extraction_reply(reply):
    """Strict JSON parse of the extraction reply; it must be a single object."""
    payload = json.loads(reply)
    if not isinstance(payload, dict):
        raise ValueError(f"Expected a JSON object, got {type(payload).__name__}")
    return payload


def build_receipt_update(payload):
    """
    Map an extraction payload onto receipt columns and line item rows.

    Returns:
        tuple: (receipt fields dict, list of ReceiptLineItem field dicts)

    Raises:
        ValueError: A line item lacks description or totalPrice, or a number
            does not parse. Nothing has been written when this is raised.
    """
    # A null or missing total is kept as NULL; the rest of the receipt still counts as parsed
    total = payload.get('total')
    fields = {
        'vendor': _text(payload.get('vendor')),
        'receipt_date': parse_receipt_date(payload.get('date')),
        'total_amount': _decimal(total, 'total') if total is not None else None,
        'parsed_data': payload,
        'ai_parsed': True,
    }

    raw_items = payload.get('lineItems') or []
    if not isinstance(raw_items, list):
        raise ValueError("'lineItems' must be a list")

    line_items = []
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict):
            raise ValueError(f"Line item {index} is not an object")

        description = _text(item.get('description'))
        if not description:
            raise ValueError(f"Line item {index} is missing a description")
        if item.get('totalPrice') is None:
            raise ValueError(f"Line item {index} is missing totalPrice")

        quantity = item.get('quantity')
        unit_price = item.get('unitPrice')
        line_items.append({
            'description': description,
            'quantity': _decimal(quantity, 'quantity') if quantity is not None else Decimal('1'),
            'unit_price': _decimal(unit_price, 'unitPrice') if unit_price is not None else Decimal('0'),
            'total_price': _decimal(item['totalPrice'], 'totalPrice'),
            'sku': _text(item.get('sku')),
        })

    return fields, line_items


class ReceiptParser:
    """Reads a stored receipt, asks the extractor about it and records the outcome."""

    def __init__(self, extractor, storage=None):
        self.extractor = extractor
        self.storage = storage or default_storage

    def parse(self, receipt_id, file_path):
        """
        Parse one receipt. Never raises.

        Returns:
            bool: True when the receipt was updated with extracted data,
            False when it was marked as failed.
        """
        try:
            with open(file_path, 'rb') as receipt_file:
                content = receipt_file.read()
            encoded = base64.b64encode(content).decode('ascii')

            reply = self.extractor.extract(encoded, mime_type_for(file_path))
            logger.debug(f"Extraction reply for receipt {receipt_id}: {reply}")

            payload = parse_extraction_reply(reply)
            fields, line_items = build_receipt_update(payload)
            self.storage.apply_receipt_extraction(receipt_id, fields, line_items)

            logger.info(f"Receipt {receipt_id} parsed: vendor={fields['vendor']!r}, {len(line_items)} line items")
            return True

        except Exception as e:
            logger.error(f"AI parsing failed for receipt {receipt_id}: {e}")

        try:
            self.storage.mark_receipt_parse_failed(receipt_id)
        except Exception as mark_error:
            logger.error(f"Could not record parse failure for receipt {receipt_id}: {mark_error}")
        return False

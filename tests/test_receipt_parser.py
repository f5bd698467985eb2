import json
from datetime import datetime
from decimal import Decimal

import pytest

from buildtrack.errors import ExternalServiceError
from buildtrack.models import db, Receipt, ReceiptLineItem
from buildtrack.services.receipt_parser import (
    OpenAIReceiptExtractor, ReceiptParser, build_receipt_update, parse_extraction_reply,
)
from buildtrack.services.storage import storage

from conftest import FakeExtractor, PDF_BYTES, PNG_BYTES


@pytest.fixture()
def stored_receipt(ctx, tmp_path):
    path = tmp_path / 'stored.png'
    path.write_bytes(PNG_BYTES)
    receipt = storage.create_receipt({'file_name': 'receipt.png', 'file_path': str(path)})
    return receipt


def line_items_for(receipt_id):
    return ReceiptLineItem.query.filter_by(receipt_id=receipt_id).all()


def test_successful_extraction_updates_receipt(stored_receipt):
    parser = ReceiptParser(FakeExtractor())

    assert parser.parse(stored_receipt.id, stored_receipt.file_path) is True

    receipt = db.session.get(Receipt, stored_receipt.id)
    data = receipt.to_dict()
    assert data['vendor'] == 'Acme'
    assert receipt.receipt_date == datetime(2024, 3, 1)
    assert data['totalAmount'] == '45.50'
    assert data['aiParsed'] is True
    assert data['parsedData']['vendor'] == 'Acme'
    assert data['status'] == 'pending'

    items = line_items_for(receipt.id)
    assert len(items) == 1
    item = items[0].to_dict()
    assert item['description'] == 'Bolt'
    assert item['quantity'] == '2'
    assert item['unitPrice'] == '1.25'
    assert item['totalPrice'] == '2.50'


def test_extractor_receives_base64_image(stored_receipt):
    extractor = FakeExtractor()
    ReceiptParser(extractor).parse(stored_receipt.id, stored_receipt.file_path)

    assert extractor.calls[0]['mime_type'] == 'image/png'
    assert extractor.calls[0]['content'].startswith('iVBORw0KGgo')


def test_pdf_is_sent_as_pdf(ctx, tmp_path):
    path = tmp_path / 'stored.pdf'
    path.write_bytes(PDF_BYTES)
    receipt = storage.create_receipt({'file_name': 'receipt.pdf', 'file_path': str(path)})
    extractor = FakeExtractor()

    ReceiptParser(extractor).parse(receipt.id, str(path))

    assert extractor.calls[0]['mime_type'] == 'application/pdf'


@pytest.mark.parametrize('failing', [
    FakeExtractor(error=ExternalServiceError('service unavailable')),
    FakeExtractor(error=TimeoutError('timed out')),
    FakeExtractor(reply='this is not json'),
    FakeExtractor(reply='["a", "list"]'),
])
def test_failed_extraction_marks_receipt(stored_receipt, failing):
    assert ReceiptParser(failing).parse(stored_receipt.id, stored_receipt.file_path) is False

    receipt = db.session.get(Receipt, stored_receipt.id)
    assert receipt.ai_parsed is False
    assert receipt.parsed_data == {'error': 'AI parsing failed'}
    assert line_items_for(receipt.id) == []


def test_missing_total_price_fails_whole_receipt(stored_receipt):
    reply = json.dumps({
        'vendor': 'Acme',
        'total': 10,
        'lineItems': [
            {'description': 'Nails', 'totalPrice': 4},
            {'description': 'Glue', 'quantity': 1},
        ],
    })

    assert ReceiptParser(FakeExtractor(reply=reply)).parse(stored_receipt.id, stored_receipt.file_path) is False

    receipt = db.session.get(Receipt, stored_receipt.id)
    assert receipt.vendor is None
    assert receipt.ai_parsed is False
    assert line_items_for(receipt.id) == []


def test_missing_file_marks_receipt_failed(ctx, tmp_path):
    receipt = storage.create_receipt({'file_name': 'gone.png', 'file_path': str(tmp_path / 'gone.png')})
    extractor = FakeExtractor()

    assert ReceiptParser(extractor).parse(receipt.id, receipt.file_path) is False
    assert extractor.calls == []
    assert db.session.get(Receipt, receipt.id).parsed_data == {'error': 'AI parsing failed'}


def test_parsing_twice_appends_line_items(stored_receipt):
    parser = ReceiptParser(FakeExtractor())
    parser.parse(stored_receipt.id, stored_receipt.file_path)
    parser.parse(stored_receipt.id, stored_receipt.file_path)

    assert len(line_items_for(stored_receipt.id)) == 2


def test_build_receipt_update_defaults():
    fields, items = build_receipt_update({
        'vendor': '  Home Depot ',
        'date': 'not a date',
        'total': None,
        'lineItems': [{'description': '2x4 stud', 'totalPrice': '3.98', 'sku': 'HD-123'}],
    })

    assert fields['vendor'] == 'Home Depot'
    assert fields['receipt_date'] is None
    assert fields['total_amount'] is None
    assert fields['ai_parsed'] is True
    assert items == [{
        'description': '2x4 stud',
        'quantity': Decimal('1'),
        'unit_price': Decimal('0'),
        'total_price': Decimal('3.98'),
        'sku': 'HD-123',
    }]


def test_build_receipt_update_rejects_bad_numbers():
    with pytest.raises(ValueError):
        build_receipt_update({'total': 'forty', 'lineItems': []})
    with pytest.raises(ValueError):
        build_receipt_update({'lineItems': [{'description': 'x', 'totalPrice': True}]})
    with pytest.raises(ValueError):
        build_receipt_update({'lineItems': {'description': 'x'}})


def test_parse_extraction_reply_requires_object():
    assert parse_extraction_reply('{"vendor": null}') == {'vendor': None}
    with pytest.raises(ValueError):
        parse_extraction_reply('[]')


class _FakeCompletions:
    def __init__(self):
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        message = type('Message', (), {'content': '{"vendor": "Acme"}'})()
        choice = type('Choice', (), {'message': message})()
        return type('Response', (), {'choices': [choice]})()


class _FakeOpenAI:
    def __init__(self):
        self.completions = _FakeCompletions()
        self.chat = type('Chat', (), {'completions': self.completions})()


def test_openai_extractor_request_shape():
    fake = _FakeOpenAI()
    extractor = OpenAIReceiptExtractor(api_key='test', model='gpt-4o', client=fake)

    assert extractor.extract('AAAA', 'application/pdf') == '{"vendor": "Acme"}'

    kwargs = fake.completions.kwargs
    assert kwargs['model'] == 'gpt-4o'
    assert kwargs['response_format'] == {'type': 'json_object'}
    content = kwargs['messages'][0]['content']
    assert 'Pro Xtra' in content[0]['text']
    assert content[1]['type'] == 'file'
    assert content[1]['file']['file_data'] == 'data:application/pdf;base64,AAAA'


def test_openai_extractor_without_key_raises():
    with pytest.raises(ExternalServiceError):
        OpenAIReceiptExtractor(api_key=None).extract('AAAA', 'image/png')

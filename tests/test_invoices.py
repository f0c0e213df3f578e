import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from fulfillment_api.core.settings import AppSettings
from fulfillment_api.schemas.invoices import ConfirmPayment, GenerateInvoice
from fulfillment_api.services import invoices as invoices_service
from fulfillment_api.services.invoices import InvoiceService
from fulfillment_api.services.storage import InvoiceStorage
from tests.conftest import PLATFORM_ID, FakeSession, make_user

COMPANY_ID = uuid.uuid4()


def _now():
    return datetime.now(tz=timezone.utc)


class FakeS3:
    def __init__(self):
        self.objects = {}

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[Key] = Body


class FakeInvoiceRepo:
    store = {}

    def __init__(self, _session):
        pass

    async def get_for_order(self, platform_id, order_id):
        return next((i for i in self.store.values() if i.order_id == order_id), None)

    async def get_by_invoice_id(self, platform_id, invoice_id):
        return next((i for i in self.store.values() if i.invoice_id == invoice_id), None)

    async def latest_invoice_id_for_day(self, platform_id, day):
        ids = sorted(i.invoice_id for i in self.store.values())
        return ids[-1] if ids else None

    async def create(self, platform_id, fields):
        invoice = SimpleNamespace(id=uuid.uuid4(), platform_id=platform_id, invoice_paid_at=None, **fields)
        self.store[invoice.id] = invoice
        return invoice

    async def update(self, invoice, fields):
        for key, value in fields.items():
            setattr(invoice, key, value)
        return invoice


class FakeOrderRepo:
    store = {}
    financial = []

    def __init__(self, _session):
        pass

    async def get(self, platform_id, ref):
        return self.store.get(ref)

    async def update_order(self, order, fields):
        for key, value in fields.items():
            setattr(order, key, value)
        return order

    async def add_financial_history(self, order, status, notes, user_id):
        self.financial.append((order.id, status, notes))


class FakeCompanyRepo:
    def __init__(self, _session):
        pass

    async def get(self, platform_id, company_id):
        return SimpleNamespace(id=company_id, name="Acme Events")


class FakeNotifier:
    def __init__(self):
        self.sent = []

    async def notify_order(self, order, notification_type):
        self.sent.append(notification_type.value)


@pytest.fixture
def s3():
    return FakeS3()


@pytest.fixture
def service(monkeypatch, s3):
    FakeInvoiceRepo.store = {}
    FakeOrderRepo.store = {}
    FakeOrderRepo.financial = []
    monkeypatch.setattr(invoices_service, "InvoiceRepository", FakeInvoiceRepo, raising=True)
    monkeypatch.setattr(invoices_service, "OrderRepository", FakeOrderRepo, raising=True)
    monkeypatch.setattr(invoices_service, "CompanyRepository", FakeCompanyRepo, raising=True)
    monkeypatch.setattr(invoices_service, "render_invoice_pdf", lambda *args: b"%PDF-1.4 test", raising=True)
    storage = InvoiceStorage(
        settings=AppSettings(AWS_BUCKET_NAME="invoices-test", AWS_REGION="me-central-1"), client=s3
    )
    return InvoiceService(FakeSession(), storage=storage, notifier=FakeNotifier())


def seed_order(status="CONFIRMED", financial="QUOTE_ACCEPTED", company_id=COMPANY_ID):
    order = SimpleNamespace(
        id=uuid.uuid4(),
        order_id="ORD-20250114-001",
        platform_id=PLATFORM_ID,
        company_id=company_id,
        order_status=status,
        financial_status=financial,
    )
    FakeOrderRepo.store[order.id] = order
    return order


def payment(**overrides):
    values = dict(payment_method="BANK_TRANSFER", payment_reference="TRX-991")
    values.update(overrides)
    return ConfirmPayment(**values)


@pytest.mark.anyio
async def test_orders_before_confirmation_cannot_be_invoiced(service):
    order = seed_order("QUOTED", "QUOTE_SENT")
    with pytest.raises(HTTPException) as info:
        await service.generate(make_user("ADMIN"), GenerateInvoice(order_id=order.id))
    assert info.value.status_code == 400
    assert info.value.detail == "Cannot generate invoice for order in QUOTED status"


@pytest.mark.anyio
async def test_generate_uploads_pdf_and_marks_order_invoiced(service, s3):
    order = seed_order()
    invoice = await service.generate(make_user("ADMIN"), GenerateInvoice(order_id=order.id))
    today = _now().strftime("%Y%m%d")
    assert invoice.invoice_id == f"INV-{today}-001"
    key = f"invoices/{PLATFORM_ID}/{invoice.invoice_id}.pdf"
    assert s3.objects[key] == b"%PDF-1.4 test"
    assert invoice.invoice_pdf_url == f"https://invoices-test.s3.me-central-1.amazonaws.com/{key}"
    assert order.financial_status == "INVOICED"
    assert FakeOrderRepo.financial == [(order.id, "INVOICED", "Invoice generated")]
    assert service.notifier.sent == ["INVOICE_GENERATED"]
    assert service.session.commits == 1


@pytest.mark.anyio
async def test_invoiced_order_needs_regenerate_flag(service):
    order = seed_order()
    first = await service.generate(make_user("ADMIN"), GenerateInvoice(order_id=order.id))
    with pytest.raises(HTTPException) as info:
        await service.generate(make_user("ADMIN"), GenerateInvoice(order_id=order.id))
    assert info.value.status_code == 400
    assert info.value.detail == "Order is already invoiced"

    again = await service.generate(make_user("ADMIN"), GenerateInvoice(order_id=order.id, regenerate=True))
    assert again.id == first.id
    assert again.invoice_id == first.invoice_id
    assert len(FakeInvoiceRepo.store) == 1
    assert FakeOrderRepo.financial[-1][2] == "Invoice regenerated"


@pytest.mark.anyio
async def test_paid_invoice_cannot_be_regenerated(service):
    order = seed_order()
    invoice = await service.generate(make_user("ADMIN"), GenerateInvoice(order_id=order.id))
    invoice.invoice_paid_at = _now()
    with pytest.raises(HTTPException) as info:
        await service.generate(make_user("ADMIN"), GenerateInvoice(order_id=order.id, regenerate=True))
    assert info.value.detail == "Invoice is already paid"


@pytest.mark.anyio
async def test_payment_date_in_the_future_is_rejected(service):
    order = seed_order()
    await service.generate(make_user("ADMIN"), GenerateInvoice(order_id=order.id))
    future = _now() + timedelta(days=1)
    with pytest.raises(HTTPException) as info:
        await service.confirm_payment(make_user("ADMIN"), order.id, payment(payment_date=future))
    assert info.value.status_code == 400
    assert info.value.detail == "Payment date cannot be in the future"
    assert order.financial_status == "INVOICED"


@pytest.mark.anyio
async def test_confirm_payment_once(service):
    order = seed_order()
    await service.generate(make_user("ADMIN"), GenerateInvoice(order_id=order.id))
    paid = await service.confirm_payment(
        make_user("ADMIN"), order.id, payment(payment_date=datetime(2025, 1, 20, 9, 30))
    )
    assert paid.invoice_paid_at == datetime(2025, 1, 20, 9, 30, tzinfo=timezone.utc)
    assert paid.payment_reference == "TRX-991"
    assert order.financial_status == "PAID"
    assert FakeOrderRepo.financial[-1] == (order.id, "PAID", "Payment confirmed via BANK_TRANSFER")

    with pytest.raises(HTTPException) as info:
        await service.confirm_payment(make_user("ADMIN"), order.id, payment())
    assert info.value.status_code == 400
    assert info.value.detail == "Payment already confirmed for this invoice"


@pytest.mark.anyio
async def test_payment_without_invoice_is_404(service):
    order = seed_order()
    with pytest.raises(HTTPException) as info:
        await service.confirm_payment(make_user("ADMIN"), order.id, payment())
    assert info.value.status_code == 404
    assert info.value.detail == "Invoice not found"


@pytest.mark.anyio
async def test_client_cannot_read_another_company_invoice(service):
    order = seed_order(company_id=uuid.uuid4())
    invoice = await service.generate(make_user("ADMIN"), GenerateInvoice(order_id=order.id))
    with pytest.raises(HTTPException) as info:
        await service.get(make_user("CLIENT", company_id=COMPANY_ID), invoice.invoice_id)
    assert info.value.status_code == 403

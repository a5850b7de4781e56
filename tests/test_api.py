import fitz
import pytest
from fastapi.testclient import TestClient

from api.main import app

from conftest import BUY_TEXT, DIVIDEND_TEXT

VALID_BUY_LINES = "\n".join([
    "S Broker AG & Co. KG",
    "Kauf",
    "Gattungsbezeichnung ISIN",
    "ACME CORP DE000A0H0785",
    "STK 1,000 EUR 500,00",
    "Handelstag 05.05.2021 EUR 500,00",
    "Handelszeit 09:04",
    "Ausmachender Betrag 500,00- EUR",
])


@pytest.fixture
def client():
    return TestClient(app)


def test_root_and_health(client):
    assert client.get("/").status_code == 200

    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_list_extractors(client):
    response = client.get("/extractors")
    assert response.json()["extractors"]["sbroker"] == "S Broker AG & Co. KG / Sparkasse"


def test_extract_text(client):
    response = client.post("/extract", json={"text": DIVIDEND_TEXT, "source": "dividende.txt"})

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "dividende.txt"
    assert data["summary"]["valid_transactions"] == 1
    dividend = data["transactions"][0]
    assert dividend["kind"] == "dividends"
    assert dividend["amount"] == "52.36"
    assert dividend["gross_value"] == {"currency": "USD", "amount": "76.69"}
    assert dividend["tax_total"] == "9.24"


def test_extract_empty_text(client):
    assert client.post("/extract", json={"text": "   "}).status_code == 400


def test_invalid_transactions_are_not_returned(client):
    # no security, shares or date: the buy is extracted but fails validation
    response = client.post("/extract", json={"text": "S Broker AG & Co. KG\nKauf\nAusmachender Betrag 500,00- EUR"})

    assert response.status_code == 200
    data = response.json()
    assert data["transactions"] == []
    assert data["summary"]["total_transactions"] == 1
    assert data["summary"]["valid_transactions"] == 0
    assert data["summary"]["validation"]["invalid"] == 1


def test_extract_unrecognized(client):
    response = client.post("/extract", json={"text": "Musterbank AG\nKauf"})
    assert response.status_code == 422


def test_extract_text_file(client):
    response = client.post(
        "/extract/file",
        files={"file": ("kauf.txt", BUY_TEXT.encode("utf-8"), "text/plain")},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["source"] == "kauf.txt"
    assert data["transactions"][0]["fee_total"] == "13.19"


def test_extract_pdf_file(client):
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), VALID_BUY_LINES)
    content = doc.tobytes()
    doc.close()

    response = client.post("/extract/file", files={"file": ("kauf.pdf", content, "application/pdf")})

    assert response.status_code == 200
    assert response.json()["transactions"][0]["amount"] == "500.00"


@pytest.mark.parametrize("name, content", [
    ("kauf.docx", b"content"),
    ("kauf.txt", b""),
    ("kauf.pdf", b"this is not a pdf"),
])
def test_extract_file_rejected(client, name, content):
    response = client.post("/extract/file", files={"file": (name, content, "application/octet-stream")})
    assert response.status_code == 400

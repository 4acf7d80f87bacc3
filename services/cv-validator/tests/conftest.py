"""Shared test fixtures for CV validator tests."""

import json
import sys
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from models import FormData  # noqa: E402


@pytest.fixture
def form_data() -> FormData:
    return FormData(
        full_name="Jane Doe",
        email="jane.doe@example.com",
        phone="+44 20 7946 0958",
        skills="Python, SQL",
        experience="5 years backend development",
    )


@pytest.fixture
def minimal_form_data() -> FormData:
    return FormData(full_name="Jane Doe", email="jane.doe@example.com")


@pytest.fixture
def pdf_bytes() -> bytes:
    """Smallest thing that passes the PDF magic-byte check."""
    return b"%PDF-1.4\n1 0 obj\n<< /Type /Catalog >>\nendobj\ntrailer\n<< /Root 1 0 R >>\n%%EOF\n"


@pytest.fixture
def sample_image_bytes() -> bytes:
    """Generate a small valid JPEG image for testing."""
    import cv2

    img = np.zeros((300, 200, 3), dtype=np.uint8)
    img[:] = (240, 240, 240)
    cv2.rectangle(img, (20, 30), (180, 50), (30, 30, 30), -1)
    cv2.rectangle(img, (20, 70), (160, 90), (30, 30, 30), -1)

    _, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, 90])
    return buf.tobytes()


@pytest.fixture
def large_png_bytes() -> bytes:
    """A PNG larger than the default downscale limit."""
    import cv2

    img = np.zeros((3000, 4000, 3), dtype=np.uint8)
    img[:] = (200, 200, 200)
    _, buf = cv2.imencode(".png", img)
    return buf.tobytes()


@pytest.fixture
def invalid_bytes() -> bytes:
    return b"this is not a document at all"


@pytest.fixture
def all_match_reply() -> str:
    """Mock model reply where every field matches."""
    return json.dumps({
        "fields": [
            {"field": "fullName", "status": "match", "confidence": 0.95,
             "reason": "Name in header", "extractedValue": "Jane Doe"},
            {"field": "email", "status": "match", "confidence": 0.9,
             "reason": "Email in contact block", "extractedValue": "jane.doe@example.com"},
            {"field": "phone", "status": "match", "confidence": 0.85,
             "reason": "Phone in contact block", "extractedValue": "+44 20 7946 0958"},
        ]
    })


@pytest.fixture
def no_match_reply() -> str:
    """Mock model reply with a contradicted email."""
    return json.dumps({
        "fields": [
            {"field": "fullName", "status": "match", "confidence": 0.95, "reason": "Name in header"},
            {"field": "email", "status": "no_match", "confidence": 0.9,
             "reason": "CV lists j.doe@other.org", "extractedValue": "j.doe@other.org"},
        ]
    })


@pytest.fixture
def fenced_reply(all_match_reply: str) -> str:
    """Mock model reply wrapped in a markdown code fence."""
    return f"```json\n{all_match_reply}\n```"

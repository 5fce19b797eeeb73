import base64

import pytest
from conftest import FakeAnalyzer

from aiva.api.deps import get_content_analyzer
from aiva.core.exceptions import ContentValidationError
from aiva.main import app
from aiva.services.verification_service import evaluate_upload, normalize_verdict, parse_data_url


def verdict(**overrides):
    base = {"is_fake": False, "confidence_score": 0, "detected_issues": []}
    base.update(overrides)
    return base


def test_restricted_issue_blocks_regardless_of_confidence():
    decision = evaluate_upload(verdict(confidence_score=5, detected_issues=["Violence against a person"]))
    assert decision.blocked
    assert decision.reason == "restricted"
    assert decision.message == "Content contains restricted material and cannot be uploaded"


def test_confident_fake_blocks():
    decision = evaluate_upload(verdict(is_fake=True, confidence_score=81, detected_issues=["Cloned region"]))
    assert decision.blocked
    assert decision.message == "Content appears to be fake/manipulated and cannot be uploaded"


def test_uncertain_fake_only_warns():
    decision = evaluate_upload(verdict(is_fake=True, confidence_score=80))
    assert not decision.blocked
    assert decision.warnings == ["Content may be fake or manipulated. Please review before proceeding."]


def test_clean_content_passes():
    decision = evaluate_upload(verdict(detected_issues=["Low resolution"]))
    assert not decision.blocked
    assert decision.warnings == []


def test_verdicts_are_normalized():
    normalized = normalize_verdict({"is_fake": 1, "confidence_score": "140", "detected_issues": "Blurry"})
    assert normalized["is_fake"] is True
    assert normalized["confidence_score"] == 100.0
    assert normalized["detected_issues"] == ["Blurry"]
    assert normalized["analysis_summary"] == ""


def test_data_urls_are_decoded():
    payload = base64.b64encode(b"img").decode()
    assert parse_data_url(f"data:image/png;base64,{payload}") == ("image/png", b"img")

    with pytest.raises(ContentValidationError):
        parse_data_url("https://example.com/cat.png")
    with pytest.raises(ContentValidationError):
        parse_data_url("data:text/plain;base64,aGk=")


async def test_verify_text_persists_result(client, auth_headers, analyzer):
    response = await client.post(
        "/api/v1/verifications/",
        json={"contentType": "text", "contentText": "The moon is made of cheese."},
        headers=auth_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["result"]["content_type"] == "text"
    assert body["result"]["confidence_score"] == 12
    assert "misinformation" in analyzer.calls[0][0]

    history = await client.get("/api/v1/verifications/", headers=auth_headers)
    assert len(history.json()) == 1


async def test_verify_rejects_empty_text(client, auth_headers):
    response = await client.post(
        "/api/v1/verifications/",
        json={"contentType": "text", "contentText": "   "},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json() == {"error": "No text content provided"}


async def test_upload_check_reports_decision(client, auth_headers):
    app.dependency_overrides[get_content_analyzer] = lambda: FakeAnalyzer(
        verdict(is_fake=True, confidence_score=95, detected_issues=["AI generated face"])
    )
    response = await client.post(
        "/api/v1/verifications/upload-check",
        files={"file": ("face.jpg", b"jpeg", "image/jpeg")},
        headers=auth_headers,
    )
    assert response.json()["blocked"] is True
    assert response.json()["reason"] == "fake"

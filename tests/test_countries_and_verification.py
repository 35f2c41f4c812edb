from compliance_service import schemas
from compliance_service.countries import (
    COUNTRY_NAMES,
    PROFESSIONAL_TITLES,
    country_display_name,
    professional_titles,
    to_country_code,
)
from compliance_service.document_verification import (
    MB,
    analyze_document,
    max_file_size,
    verify_document,
)

Verdict = schemas.DocumentVerificationStatus


def test_country_maps_cover_supported_countries():
    assert len(COUNTRY_NAMES) == 55
    assert set(COUNTRY_NAMES) - {"UK"} == set(PROFESSIONAL_TITLES)


def test_to_country_code():
    assert to_country_code("India") == "IN"
    assert to_country_code("united states") == "US"
    assert to_country_code("sg") == "SG"
    assert to_country_code("UK") == "GB"
    assert to_country_code("United Kingdom") == "GB"
    assert to_country_code("  Atlantis ") == "Atlantis"
    assert to_country_code(None) == ""


def test_country_display_name():
    assert country_display_name("IN") == "India"
    assert country_display_name("India") == "India"
    assert country_display_name("uk") == "United Kingdom"
    assert country_display_name("Atlantis") == "Atlantis"
    assert country_display_name("") == "Unknown"


def test_professional_titles():
    assert professional_titles("IN") == ("Chartered Accountant", "Company Secretary")
    assert professional_titles("US") == ("CPA", "Corporate Secretary")
    assert professional_titles("AT").cs_title == "Management"
    assert professional_titles("UK").ca_title == "Chartered Accountant"
    assert professional_titles("ZZ") == ("CA", "CS")


def test_clean_pdf_is_auto_verified():
    result = verify_document("incorporation.pdf", "application/pdf", 200 * 1024)
    assert result.status == Verdict.verified
    assert result.confidence == 0.8
    assert result.auto_verified is True
    assert result.reasons == ["File passed automated validation"]


def test_wrong_type_is_rejected():
    result = verify_document("photo.png", "image/png", 200 * 1024, "compliance_document")
    assert result.status == Verdict.rejected
    assert result.confidence == 0.0
    assert result.reasons[0].startswith("Invalid file type: image/png")


def test_oversize_file_is_rejected():
    result = verify_document("id.pdf", "application/pdf", 6 * MB, "government_id")
    assert result.status == Verdict.rejected
    assert "File too large" in result.reasons[0]


def test_global_upload_cap_lowers_type_limit():
    assert max_file_size("compliance_document") == 50 * MB
    assert max_file_size("compliance_document", max_upload_bytes=20 * MB) == 20 * MB
    assert max_file_size("unknown_kind") == 10 * MB


def test_suspicious_name_drops_confidence_to_rejection():
    result = verify_document("payload.exe", "application/pdf", 200 * 1024)
    assert result.status == Verdict.rejected
    assert result.confidence == 0.0
    assert "Suspicious file name detected" in result.reasons
    assert "Suspicious file extension detected" in result.reasons


def test_weak_analysis_goes_to_review():
    result = verify_document("draft copy.pdf", "application/pdf", 8 * 1024)
    assert result.status == Verdict.under_review
    assert result.confidence == 0.5
    assert result.auto_verified is False
    assert "Document authenticity score below threshold" in result.reasons
    assert "Document quality below acceptable level" in result.reasons


def test_analysis_is_deterministic_and_clamped():
    analysis = analyze_document("fake suspicious low scan temp.pdf", 5 * 1024)
    assert analysis == analyze_document("fake suspicious low scan temp.pdf", 5 * 1024)
    assert analysis.authenticity == 0.35
    assert analysis.quality == 0.3
    assert analysis.risk_score == 0.6
    assert analysis.passes is False


def test_link_without_metadata_needs_review():
    result = verify_document("board-minutes", None, None)
    assert result.status == Verdict.under_review


def test_status_enums_only_carry_produced_values():
    assert {item.value for item in Verdict} == {"pending", "verified", "rejected", "under_review"}
    assert {item.value for item in schemas.ComplianceStatus} == {
        "Compliant",
        "Pending",
        "Non-Compliant",
        "Verified",
        "Rejected",
    }

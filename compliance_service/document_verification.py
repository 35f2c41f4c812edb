"""
Automated checks run on an upload's metadata before it is recorded.

No file bytes reach this service, so the verdict is built from the declared
MIME type, the size and the file name: hard limits per document type first,
then suspicious-name penalties, then a deterministic heuristic analysis.
"""

from dataclasses import dataclass
from typing import List, Optional

from . import schemas

MB = 1024 * 1024

PDF = "application/pdf"
DOC = "application/msword"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLS = "application/vnd.ms-excel"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV = "text/csv"
JPEG = "image/jpeg"
PNG = "image/png"
GIF = "image/gif"

ALLOWED_FILE_TYPES = {
    "compliance_document": (PDF, DOC, DOCX),
    "ip_trademark_document": (PDF, JPEG, PNG, GIF),
    "financial_document": (PDF, XLS, XLSX, CSV),
    "government_id": (PDF, JPEG, PNG),
    "license_document": (PDF, JPEG, PNG),
}
DEFAULT_ALLOWED_FILE_TYPES = (PDF,)

MAX_FILE_SIZES = {
    "compliance_document": 50 * MB,
    "ip_trademark_document": 25 * MB,
    "financial_document": 10 * MB,
    "government_id": 5 * MB,
    "license_document": 10 * MB,
}
DEFAULT_MAX_FILE_SIZE = 10 * MB

SUSPICIOUS_NAME_SUFFIXES = (".exe", ".bat", ".cmd", ".scr", ".pif", ".com", ".vbs", ".js", ".jar", ".zip", ".rar", ".7z")
SUSPICIOUS_EXTENSIONS = (".exe", ".bat", ".cmd", ".scr", ".pif", ".com", ".vbs", ".js", ".jar")

BASE_CONFIDENCE = 0.5
AUTO_VERIFIED_CONFIDENCE = 0.8
REVIEW_CONFIDENCE_FLOOR = 0.3


@dataclass(frozen=True)
class DocumentAnalysis:
    authenticity: float
    quality: float
    risk_score: float

    @property
    def passes(self) -> bool:
        return self.authenticity >= 0.8 and self.quality >= 0.7 and self.risk_score <= 0.3

    def findings(self) -> List[str]:
        reasons = []
        if self.authenticity < 0.8:
            reasons.append("Document authenticity score below threshold")
        if self.quality < 0.7:
            reasons.append("Document quality below acceptable level")
        if self.risk_score > 0.3:
            reasons.append("High risk score detected")
        return reasons


def allowed_file_types(document_type: str) -> tuple[str, ...]:
    return ALLOWED_FILE_TYPES.get(document_type, DEFAULT_ALLOWED_FILE_TYPES)


def max_file_size(document_type: str, max_upload_bytes: Optional[int] = None) -> int:
    limit = MAX_FILE_SIZES.get(document_type, DEFAULT_MAX_FILE_SIZE)
    if max_upload_bytes is not None:
        limit = min(limit, max_upload_bytes)
    return limit


def _extension(file_name: str) -> str:
    dot = file_name.rfind(".")
    return file_name[dot:].lower() if dot != -1 else ""


def is_suspicious_file_name(file_name: str) -> bool:
    return file_name.lower().endswith(SUSPICIOUS_NAME_SUFFIXES)


def is_suspicious_extension(file_name: str) -> bool:
    return _extension(file_name) in SUSPICIOUS_EXTENSIONS


def _clamp(value: float) -> float:
    return round(max(0.0, min(1.0, value)), 2)


def analyze_document(file_name: str, file_size: int) -> DocumentAnalysis:
    name = file_name.lower()

    authenticity = 0.8
    if "copy" in name or "scan" in name:
        authenticity -= 0.1
    if file_size < 10 * 1024:
        authenticity -= 0.2
    if "temp" in name or "draft" in name:
        authenticity -= 0.15

    quality = 0.8
    if file_size < 50 * 1024:
        quality -= 0.2
    if "low" in name or "poor" in name:
        quality -= 0.3

    risk_score = 0.2
    if "suspicious" in name or "fake" in name:
        risk_score += 0.4
    if file_size > 10 * MB:
        risk_score += 0.2

    return DocumentAnalysis(_clamp(authenticity), _clamp(quality), _clamp(risk_score))


def _result(status, confidence, reasons, auto_verified=False, analysis=None) -> schemas.DocumentVerificationResult:
    return schemas.DocumentVerificationResult(
        status=status,
        confidence=round(confidence, 2),
        reasons=reasons,
        auto_verified=auto_verified,
        authenticity=analysis.authenticity if analysis else None,
        quality=analysis.quality if analysis else None,
        risk_score=analysis.risk_score if analysis else None,
    )


def verify_document(
    file_name: str,
    file_type: Optional[str],
    file_size: Optional[int],
    document_type: str = "compliance_document",
    max_upload_bytes: Optional[int] = None,
) -> schemas.DocumentVerificationResult:
    status = schemas.DocumentVerificationStatus

    if file_type is None and file_size is None:
        return _result(status.under_review, BASE_CONFIDENCE, ["Linked document requires manual review"])

    allowed = allowed_file_types(document_type)
    if file_type not in allowed:
        return _result(
            status.rejected,
            0.0,
            [f"Invalid file type: {file_type}. Allowed: {', '.join(allowed)}"],
        )

    size = file_size or 0
    limit = max_file_size(document_type, max_upload_bytes)
    if size > limit:
        return _result(
            status.rejected,
            0.0,
            [f"File too large: {size / MB:.2f}MB. Max: {limit / MB:.2f}MB"],
        )

    reasons: List[str] = []
    confidence = BASE_CONFIDENCE
    if is_suspicious_file_name(file_name):
        reasons.append("Suspicious file name detected")
        confidence -= 0.2
    if is_suspicious_extension(file_name):
        reasons.append("Suspicious file extension detected")
        confidence -= 0.3

    analysis = analyze_document(file_name, size)
    if not reasons and analysis.passes:
        return _result(
            status.verified,
            AUTO_VERIFIED_CONFIDENCE,
            ["File passed automated validation"],
            auto_verified=True,
            analysis=analysis,
        )

    reasons.extend(analysis.findings())
    verdict = status.under_review if confidence > REVIEW_CONFIDENCE_FLOOR else status.rejected
    return _result(verdict, confidence, reasons, analysis=analysis)

"""
vlayer PHI Exposure Scanner

Detects protected health information hardcoded in source or leaking into
logs and URLs: SSNs, medical record numbers, dates of birth, ICD-10
diagnosis codes and patient identifiers.
"""

from __future__ import annotations

from vlayer.core.finding import Category, Confidence, Severity
from vlayer.core.patterns import PatternRule, PatternScanner

PHI_REFERENCE = "§164.502, §164.514"


class PHIScanner(PatternScanner):
    """Hardcoded or leaked PHI identifiers."""

    name = "PHI Exposure Scanner"
    category = Category.PHI_EXPOSURE
    id_prefix = "phi"
    compliance_reference = PHI_REFERENCE

    rules = [
        PatternRule(
            "ssn-hardcoded", "Potential SSN detected",
            "A pattern matching Social Security Number format was found in the code.",
            Severity.CRITICAL,
            (r"\b\d{3}-\d{2}-\d{4}\b",),
            "Remove hardcoded SSN. Use secure storage and encryption for sensitive identifiers.",
        ),
        PatternRule(
            "patient-name-log", "Patient name in console output",
            "Patient names may be logged to console, exposing PHI.",
            Severity.HIGH,
            (
                r"(?i)console\.(log|info|debug|warn|error)\s*\([^)]*patient.*name",
                r"(?i)(?:print|logger\.\w+|logging\.\w+)\s*\([^)]*patient.*name",
            ),
            "Remove patient identifiers from logs. Use anonymized IDs for debugging.",
        ),
        PatternRule(
            "medical-record-number", "Medical Record Number exposure",
            "A hardcoded medical record number was detected.",
            Severity.HIGH,
            (r"""(?i)\b(mrn|medical.?record.?number)\s*[:=]\s*['"`]\d+['"`]""",),
            "Never hardcode MRNs. Fetch from secure, encrypted storage.",
        ),
        PatternRule(
            "dob-exposed", "Date of birth exposure",
            "Date of birth information may be hardcoded or improperly handled.",
            Severity.HIGH,
            (r"""(?i)\b(date.?of.?birth|dob|birth.?date)\s*[:=]\s*['"`]""",),
            "Encrypt DOB at rest and in transit. Apply minimum necessary principle.",
        ),
        PatternRule(
            "diagnosis-code", "Diagnosis code in source",
            "ICD-10 diagnosis codes found in source code.",
            Severity.MEDIUM,
            (r"""(?i)\b(icd.?10|diagnosis.?code|icd.?code)\s*[:=]\s*['"`][A-Z]\d{2}""",),
            "Load diagnosis codes from secure configuration, not source code.",
        ),
        PatternRule(
            "phi-in-url", "PHI identifier in URL pattern",
            "URL pattern suggests PHI may be exposed in URLs.",
            Severity.HIGH,
            (r"(?i)/(patient|user)/\d+/(ssn|dob|mrn|diagnosis)",),
            "Never include PHI in URLs. Use opaque tokens or encrypted identifiers.",
        ),
        PatternRule(
            "email-phi-context", "Patient email handling detected",
            "Code handles patient email addresses which are PHI.",
            Severity.MEDIUM,
            (r"(?i)patient.*email|email.*patient",),
            "Ensure patient emails are encrypted and access is logged.",
            confidence=Confidence.MEDIUM,
        ),
    ]

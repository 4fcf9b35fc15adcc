"""
vlayer Compliance Score

Turns the final finding list into a 0-100 score. Only active findings
(not baseline, not suppressed) count. Each costs a fixed penalty by
severity; acknowledged findings cost a quarter of it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from vlayer.core.finding import Finding, Severity

SEVERITY_PENALTIES = {
    Severity.CRITICAL: 10,
    Severity.HIGH: 5,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFO: 0,
}

ACKNOWLEDGED_REDUCTION = 0.25

# (minimum score, grade, status), checked top-down
GRADE_BANDS = [
    (90, "A", "excellent"),
    (80, "B", "good"),
    (70, "C", "fair"),
    (60, "D", "poor"),
]
FAILING_GRADE = ("F", "critical")

_COUNTED = (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW)


@dataclass
class ComplianceScore:
    score: int
    grade: str
    status: str
    breakdown: dict[str, int] = field(default_factory=dict)
    penalties: dict[str, float] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "grade": self.grade,
            "status": self.status,
            "breakdown": dict(self.breakdown),
            "penalties": dict(self.penalties),
            "recommendations": list(self.recommendations),
        }


def finding_penalty(finding: Finding) -> float:
    base = SEVERITY_PENALTIES[finding.severity]
    return base * ACKNOWLEDGED_REDUCTION if finding.acknowledged else float(base)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def grade_for(score: int) -> tuple[str, str]:
    for minimum, grade, status in GRADE_BANDS:
        if score >= minimum:
            return grade, status
    return FAILING_GRADE


def calculate_compliance_score(findings: list[Finding]) -> ComplianceScore:
    breakdown = {"total": 0, "critical": 0, "high": 0, "medium": 0, "low": 0, "acknowledged": 0}
    penalties: dict[str, float] = {"critical": 0, "high": 0, "medium": 0, "low": 0, "total": 0}

    for finding in findings:
        if not finding.is_active:
            continue

        breakdown["total"] += 1
        if finding.acknowledged:
            breakdown["acknowledged"] += 1

        penalty = finding_penalty(finding)
        if finding.severity in _COUNTED:
            key = finding.severity.value
            breakdown[key] += 1
            penalties[key] += penalty
        penalties["total"] += penalty

    score = round_half_up(max(0.0, 100 - penalties["total"]))
    grade, status = grade_for(score)

    return ComplianceScore(
        score=score,
        grade=grade,
        status=status,
        breakdown=breakdown,
        penalties=penalties,
        recommendations=generate_recommendations(breakdown, score),
    )


def generate_recommendations(breakdown: dict[str, int], score: int) -> list[str]:
    recommendations = []

    if breakdown["critical"] > 0:
        recommendations.append(
            f"Address {breakdown['critical']} critical issue(s) immediately - "
            "these pose severe HIPAA compliance risks"
        )
    if breakdown["high"] > 0:
        recommendations.append(
            f"Resolve {breakdown['high']} high severity issue(s) as soon as possible"
        )
    if breakdown["medium"] > 10:
        recommendations.append(
            f"Review and remediate {breakdown['medium']} medium severity findings "
            "to improve compliance posture"
        )
    if breakdown["acknowledged"] > 0:
        recommendations.append(
            f"{breakdown['acknowledged']} finding(s) are acknowledged but should still "
            "be addressed when possible"
        )
    if score < 70:
        recommendations.append(
            "Your compliance score is below acceptable levels. "
            "Consider a comprehensive security audit"
        )

    if score >= 90 and breakdown["total"] == 0:
        recommendations.append("Excellent! No active compliance issues found. Maintain regular scanning.")
    elif score >= 90:
        recommendations.append(
            "Great compliance posture! Continue monitoring and maintaining best practices."
        )

    if not recommendations:
        recommendations.append("Continue regular scanning to maintain HIPAA compliance")
    return recommendations


def format_score(score: ComplianceScore) -> str:
    return f"{score.score}/100 ({score.grade}) - {score.status.upper()}"


def score_color(value: int) -> str:
    if value >= 80:
        return "green"
    if value >= 60:
        return "yellow"
    return "red"


def _points(value: float) -> str:
    return f"{value:g}"


def score_summary(score: ComplianceScore) -> str:
    b = score.breakdown
    p = score.penalties
    lines = [
        f"HIPAA Compliance Score: {score.score}/100 (Grade {score.grade})",
        f"Status: {score.status.upper()}",
        "",
        "Findings Breakdown:",
        f"  Critical: {b['critical']}",
        f"  High: {b['high']}",
        f"  Medium: {b['medium']}",
        f"  Low: {b['low']}",
        f"  Total Active: {b['total']}",
    ]
    if b["acknowledged"] > 0:
        lines.append(f"  Acknowledged: {b['acknowledged']}")
    lines += [
        "",
        "Penalty Points:",
        f"  Critical: -{_points(p['critical'])}",
        f"  High: -{_points(p['high'])}",
        f"  Medium: -{_points(p['medium'])}",
        f"  Low: -{_points(p['low'])}",
        f"  Total: -{_points(p['total'])}",
    ]
    return "\n".join(lines) + "\n"

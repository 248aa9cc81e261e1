"""
Text Report - Plain-text rendering of a ScanResult.
"""

from datetime import datetime
from typing import List, Optional

from .core.orchestrator import ScanResult


RULE = "=" * 43


def generate_report(result: ScanResult, generated_at: Optional[datetime] = None) -> str:
    """
    Render a scan result as a human-readable report.

    Args:
        result: Completed scan
        generated_at: Timestamp printed in the overview (defaults to now)

    Returns:
        Multi-line report text
    """
    generated_at = generated_at or datetime.now()
    score = result.score
    tls = result.tls

    lines: List[str] = [
        "",
        "=========== WEB SECURITY REPORT ===========",
        "",
        "== Overview ==",
        f"Generated: {generated_at.isoformat(timespec='seconds')}",
        f"URL analyzed: {result.url}",
        f"Final URL: {result.final_url}",
        f"HTTP Status: {result.http_status}",
        f"Score: {score.score}/100 ({score.risk_level.value.upper()})",
        "",
        "== Transport Security ==",
        f"HTTPS supported: {tls.supports_https}",
        f"Certificate valid: {tls.certificate_valid}",
        f"Expiration: {tls.expiration_date.isoformat() if tls.expiration_date else None}",
        f"Days remaining: {tls.days_remaining}",
        f"Forces HTTPS redirect: {result.redirects_to_https}",
        "",
        "== Security Headers ==",
    ]
    lines.extend(f"{name}: {status}" for name, status in result.headers.items())

    lines += [
        "",
        "== Application Security ==",
        f"Active mode: {result.active_mode}",
        f"Input surface detected: {result.input_surface_detected}",
        f"DB error leakage suspected: {result.db_error_leakage_suspected}",
        f"XSS probe executed: {result.xss_probe_performed}",
        f"Reflected XSS suspected: {result.reflected_xss_suspected}",
        "",
        "== Network Exposure (Active Mode) ==",
    ]

    if not result.open_ports:
        lines += ["No common open ports detected or active mode disabled.", ""]
    else:
        for finding in result.open_ports:
            lines.append(
                f"- Port {finding.port} ({finding.service}) [{finding.severity.value.upper()}]"
            )
            if finding.evidence:
                lines.append(f"  Evidence: {finding.evidence}")
            lines.append(f"  Impact: {finding.impact}")
            lines.append(f"  Recommendation: {finding.recommendation}")
            lines.append("")

    lines.append("== Issues Summary ==")
    if not score.issues:
        lines.append("No significant issues detected.")
    else:
        for issue in score.issues:
            lines += [
                "",
                f"- {issue.title} [{issue.id}]",
                f"  Severity: {issue.severity.value.upper()}",
                f"  Impact: {issue.impact}",
                f"  Recommendation: {issue.recommendation}",
            ]

    lines += ["", "== Scoring Notes =="]
    lines.extend(f"- {note}" for note in score.notes)

    lines += ["", RULE, ""]
    return "\n".join(lines)

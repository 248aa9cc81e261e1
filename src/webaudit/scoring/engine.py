"""
Risk Scoring Engine - Turns collected scan signals into a 0-100 score.

The engine is a pure function of its inputs. It starts from 100 and applies
deductions in a fixed order, appending one note per rule that fires and a
SecurityIssue for material findings:

    1. SSL (exactly one of: no HTTPS / invalid / expiry tiers)
    2. HTTP to HTTPS redirect
    3. Security headers (HSTS, X-Content-Type-Options, CSP, X-Frame-Options)
    4. Active probes (DB error leakage, reflected marker)
    5. Open ports (active mode only)

The final score is clamped to [0, 100] and the risk level is derived from it.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple
from dataclasses import dataclass
from enum import Enum

import structlog

from ..scanners.base_scanner import SeverityLevel
from ..scanners.header_analyzer import (
    CONTENT_TYPE_OPTIONS,
    CSP,
    ERROR_KEY,
    FRAME_OPTIONS,
    HSTS,
)
from ..scanners.port_scanner import PortFinding, PortState
from ..scanners.tls_validator import TlsFinding


class RiskLevel(Enum):
    """Risk tier derived from the final score"""
    SECURE = "secure"
    WARNING = "warning"
    CRITICAL = "critical"


SECURE_THRESHOLD = 80
WARNING_THRESHOLD = 50


def classify(score: int) -> RiskLevel:
    """Map a clamped score to its risk tier"""
    if score >= SECURE_THRESHOLD:
        return RiskLevel.SECURE
    if score >= WARNING_THRESHOLD:
        return RiskLevel.WARNING
    return RiskLevel.CRITICAL


@dataclass(frozen=True)
class SecurityIssue:
    """One material finding with a stable catalog id"""
    id: str
    title: str
    severity: SeverityLevel
    impact: str
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "severity": self.severity.value,
            "impact": self.impact,
            "recommendation": self.recommendation,
        }


@dataclass(frozen=True)
class ScoreResult:
    """Final score with the notes and issues that produced it (immutable)"""
    score: int
    notes: Tuple[str, ...] = ()
    issues: Tuple[SecurityIssue, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "score", max(0, min(100, self.score)))
        object.__setattr__(self, "notes", tuple(self.notes))
        object.__setattr__(self, "issues", tuple(self.issues))

    @property
    def risk_level(self) -> RiskLevel:
        return classify(self.score)

    @property
    def issue_ids(self) -> List[str]:
        return [issue.id for issue in self.issues]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "risk_level": self.risk_level.value,
            "notes": list(self.notes),
            "issues": [issue.to_dict() for issue in self.issues],
        }


def _issue(issue_id, title, severity, impact, recommendation) -> SecurityIssue:
    return SecurityIssue(issue_id, title, severity, impact, recommendation)


ISSUE_CATALOG: Dict[str, SecurityIssue] = {
    issue.id: issue
    for issue in (
        _issue(
            "NO_HTTPS_SUPPORT", "HTTPS not supported", SeverityLevel.HIGH,
            "Data can be intercepted by third parties while travelling over HTTP.",
            "Enable HTTPS with a valid certificate (e.g. Let's Encrypt) and serve the site over HTTPS.",
        ),
        _issue(
            "SSL_INVALID", "Invalid SSL certificate", SeverityLevel.HIGH,
            "Users may get security warnings and the connection may be insecure.",
            "Renew or correctly configure the certificate and its intermediate chain.",
        ),
        _issue(
            "SSL_EXPIRED", "SSL certificate expired", SeverityLevel.HIGH,
            "Browsers may block access or warn users.",
            "Renew the certificate immediately.",
        ),
        _issue(
            "SSL_EXPIRING_SOON", "SSL certificate close to expiry", SeverityLevel.MEDIUM,
            "The site may become unavailable or show warnings once it expires.",
            "Renew the certificate before it expires.",
        ),
        _issue(
            "HTTP_NOT_REDIRECTING", "HTTP does not redirect to HTTPS", SeverityLevel.MEDIUM,
            "Users typing http:// may browse the site without encryption.",
            "Configure a 301 redirect from HTTP to HTTPS and enable HSTS.",
        ),
        _issue(
            "HSTS_MISSING", "Strict-Transport-Security missing", SeverityLevel.HIGH,
            "Downgrade attacks to HTTP remain possible even though HTTPS is available.",
            "Add: Strict-Transport-Security: max-age=31536000; includeSubDomains",
        ),
        _issue(
            "HSTS_WEAK", "Strict-Transport-Security weak", SeverityLevel.MEDIUM,
            "An incomplete policy reduces protection against downgrade attacks.",
            "Use an adequate max-age (e.g. 31536000) and consider includeSubDomains.",
        ),
        _issue(
            "CONTENT_TYPE_MISSING", "X-Content-Type-Options missing", SeverityLevel.MEDIUM,
            "Browsers may MIME-sniff responses and execute content unexpectedly.",
            "Add: X-Content-Type-Options: nosniff",
        ),
        _issue(
            "CONTENT_TYPE_WEAK", "X-Content-Type-Options weak", SeverityLevel.LOW,
            "A non-standard value weakens protection against MIME sniffing.",
            "Use exactly: X-Content-Type-Options: nosniff",
        ),
        _issue(
            "CSP_MISSING", "Content-Security-Policy missing", SeverityLevel.HIGH,
            "Raises the risk of XSS and content injection.",
            "Add a CSP header, starting simple: Content-Security-Policy: default-src 'self'",
        ),
        _issue(
            "CSP_WEAK", "Content-Security-Policy weak", SeverityLevel.MEDIUM,
            "A permissive policy may not prevent XSS or injection.",
            "Tighten allowed sources and avoid 'unsafe-inline' where possible.",
        ),
        _issue(
            "XFO_MISSING", "X-Frame-Options missing", SeverityLevel.MEDIUM,
            "Raises clickjacking risk in browsers that still rely on this header.",
            "Add X-Frame-Options: DENY (or SAMEORIGIN if framing is required).",
        ),
        _issue(
            "CLICKJACKING_RISK", "Weak clickjacking protection", SeverityLevel.MEDIUM,
            "The page can be embedded in an iframe in some contexts.",
            "Prefer X-Frame-Options: DENY if the site never needs to be framed.",
        ),
        _issue(
            "DB_ERROR_LEAKAGE_SUSPECTED", "Database error leakage suspected", SeverityLevel.HIGH,
            "Detailed error messages can reveal database structure and ease attacks. "
            "This does not confirm SQL injection but shows poor error handling.",
            "Hide detailed errors in production, return generic messages, log errors "
            "server-side only and use parameterized queries.",
        ),
        _issue(
            "REFLECTED_XSS_SUSPECTED", "Reflected XSS suspected (marker reflected)", SeverityLevel.HIGH,
            "Input appears to be reflected without proper escaping, which may allow "
            "script execution depending on context.",
            "Apply context-aware output encoding, validate inputs and deploy a restrictive CSP.",
        ),
    )
}


@dataclass(frozen=True)
class _HeaderRule:
    header: str
    label: str
    missing_id: str
    weak_id: Optional[str]


HEADER_RULES = (
    _HeaderRule(HSTS, "HSTS", "HSTS_MISSING", "HSTS_WEAK"),
    _HeaderRule(CONTENT_TYPE_OPTIONS, "X-Content-Type-Options", "CONTENT_TYPE_MISSING", "CONTENT_TYPE_WEAK"),
    _HeaderRule(CSP, "Content-Security-Policy", "CSP_MISSING", "CSP_WEAK"),
    _HeaderRule(FRAME_OPTIONS, "X-Frame-Options", "XFO_MISSING", "CLICKJACKING_RISK"),
)

HEADER_MISSING_PENALTY = 10
HEADER_WEAK_PENALTY = 5
HEADER_UNKNOWN_PENALTY = 3
HEADER_FETCH_ERROR_PENALTY = 15

EXPECTED_WEB_PORTS = frozenset({80, 443, 8080, 8443})
PLAINTEXT_REMOTE_PORTS = frozenset({21, 23})
DATA_STORE_PORTS = frozenset({1433, 1521, 3306, 5432, 6379, 9200, 27017})
SSH_PORTS = frozenset({22})


def port_penalty(port: int) -> int:
    """Deduction for one open, non-web port in active mode"""
    if port in PLAINTEXT_REMOTE_PORTS:
        return 25
    if port in DATA_STORE_PORTS:
        return 20
    if port in SSH_PORTS:
        return 10
    return 0


class RiskScoringEngine:
    """
    Deterministic scoring of scan signals.

    Example:
        >>> engine = RiskScoringEngine()
        >>> result = engine.calculate(tls, headers, redirects_to_https=True)
        >>> result.score, result.risk_level
        (100, <RiskLevel.SECURE: 'secure'>)
    """

    def __init__(self):
        self.logger = structlog.get_logger(__name__)

    def calculate(
        self,
        tls: TlsFinding,
        headers: Mapping[str, str],
        redirects_to_https: bool,
        active_mode: bool = False,
        input_surface_detected: bool = False,
        db_leak_suspected: bool = False,
        xss_probed: bool = False,
        xss_suspected: bool = False,
        open_ports: Optional[Sequence[PortFinding]] = None,
    ) -> ScoreResult:
        """
        Score one scan.

        Args:
            tls: Certificate check outcome
            headers: Analyzed security headers, or the {"error": ...} sentinel
            redirects_to_https: Whether http:// ends up on https://
            active_mode: Whether active probes were allowed
            input_surface_detected: Whether the final URL carries parameters
            db_leak_suspected: Error disclosure probe outcome
            xss_probed: Whether the reflected marker probe ran
            xss_suspected: Reflected marker probe outcome
            open_ports: OPEN port findings from the sweep

        Returns:
            ScoreResult with clamped score, notes and issues
        """
        state = _Tally()

        self._score_tls(state, tls)
        self._score_redirect(state, tls, redirects_to_https)
        self._score_headers(state, headers)
        self._score_active_probes(
            state, active_mode, input_surface_detected,
            db_leak_suspected, xss_probed, xss_suspected,
        )
        if active_mode:
            self._score_ports(state, open_ports or ())

        result = ScoreResult(score=state.score, notes=state.notes, issues=state.issues)

        self.logger.debug(
            "score_calculated",
            score=result.score,
            risk_level=result.risk_level.value,
            issues=result.issue_ids,
        )
        return result

    @staticmethod
    def _score_tls(state: "_Tally", tls: TlsFinding):
        if not tls.supports_https:
            state.deduct(40, "HTTPS not supported: -40", "NO_HTTPS_SUPPORT")
            return

        if not tls.certificate_valid:
            state.deduct(35, "Invalid/expired certificate or check error: -35", "SSL_INVALID")
            return

        state.note("HTTPS and valid certificate: OK")

        days = tls.days_remaining
        if days <= 0:
            state.deduct(35, "Certificate expired: -35", "SSL_EXPIRED")
        elif days <= 30:
            state.deduct(20, "Certificate expires within 30 days: -20", "SSL_EXPIRING_SOON")
        elif days <= 90:
            state.deduct(10, "Certificate expires within 90 days: -10")

    @staticmethod
    def _score_redirect(state: "_Tally", tls: TlsFinding, redirects_to_https: bool):
        if tls.supports_https and tls.certificate_valid and not redirects_to_https:
            state.deduct(10, "HTTP is not forced to HTTPS: -10", "HTTP_NOT_REDIRECTING")

    @staticmethod
    def _score_headers(state: "_Tally", headers: Mapping[str, str]):
        lowered = {name.lower(): status for name, status in headers.items()}

        if lowered.get(ERROR_KEY) is not None:
            state.deduct(HEADER_FETCH_ERROR_PENALTY, "Error fetching headers: -15")
            return

        for rule in HEADER_RULES:
            status = lowered.get(rule.header.lower())
            if status is None:
                continue

            if status.startswith("MISSING"):
                state.deduct(
                    HEADER_MISSING_PENALTY,
                    f"{rule.label} missing: -{HEADER_MISSING_PENALTY}",
                    rule.missing_id,
                )
            elif status.startswith("WEAK"):
                state.deduct(
                    HEADER_WEAK_PENALTY,
                    f"{rule.label} weak: -{HEADER_WEAK_PENALTY}",
                    rule.weak_id,
                )
            elif status.startswith("UNKNOWN"):
                state.deduct(
                    HEADER_UNKNOWN_PENALTY,
                    f"{rule.label} unusual value: -{HEADER_UNKNOWN_PENALTY}",
                )

    @staticmethod
    def _score_active_probes(
        state: "_Tally",
        active_mode: bool,
        input_surface_detected: bool,
        db_leak_suspected: bool,
        xss_probed: bool,
        xss_suspected: bool,
    ):
        if input_surface_detected:
            state.note("Input surface detected (URL parameters): INFO")

        if active_mode and db_leak_suspected:
            state.deduct(
                15,
                "Possible database/SQL error disclosure (active mode): -15",
                "DB_ERROR_LEAKAGE_SUSPECTED",
            )

        if active_mode and xss_probed and xss_suspected:
            state.deduct(
                25,
                "Reflected XSS suspected (marker reflected in HTML): -25",
                "REFLECTED_XSS_SUSPECTED",
            )

    @staticmethod
    def _score_ports(state: "_Tally", open_ports: Sequence[PortFinding]):
        for finding in sorted(open_ports, key=lambda f: f.port):
            if finding.state is not PortState.OPEN or finding.port in EXPECTED_WEB_PORTS:
                continue

            penalty = port_penalty(finding.port)
            label = f"Open port {finding.port} ({finding.service})"
            if penalty:
                state.deduct(penalty, f"{label}: -{penalty}")
            else:
                state.note(f"{label}: INFO")


class _Tally:
    """Running score, notes and issues for one calculation"""

    def __init__(self):
        self.score = 100
        self.notes: List[str] = []
        self.issues: List[SecurityIssue] = []

    def note(self, text: str):
        self.notes.append(text)

    def deduct(self, points: int, text: str, issue_id: Optional[str] = None):
        self.score -= points
        self.notes.append(text)
        if issue_id is not None:
            self.issues.append(ISSUE_CATALOG[issue_id])

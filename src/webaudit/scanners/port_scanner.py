"""
Port Scanner - Bounded-concurrency TCP connect sweep of well-known ports.

Concurrency model:
- A fixed pool of asyncio worker tasks drains a queue of ports
- Live sockets are gated separately by a semaphore, held for the connect and
  for evidence collection, so pool size and concurrent connections are tuned
  independently
- One scan-wide deadline bounds the whole sweep; ports still in flight at the
  deadline are dropped from the result

Each port is classified OPEN, CLOSED (refused) or FILTERED (timeout or other
socket error). OPEN web and plaintext mail/file-transfer ports get a short
piece of evidence (HTTP status line and Server header, or the greeting
banner). Nothing is ever sent to other services.
"""

import asyncio
import socket
import ssl
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple
from dataclasses import dataclass, field, replace
from enum import Enum

import structlog

from .base_scanner import SeverityLevel
from ..config import PortScanSettings


class PortState(Enum):
    """Connect outcome for one port"""
    OPEN = "open"
    CLOSED = "closed"
    FILTERED = "filtered"


EVIDENCE_HTTP = "http"
EVIDENCE_HTTPS = "https"
EVIDENCE_BANNER = "banner"


@dataclass(frozen=True)
class PortProfile:
    """Static policy row for one port"""
    port: int
    service: str
    connect_timeout: float
    read_timeout: float
    severity: SeverityLevel
    impact: str
    recommendation: str
    evidence: Optional[str] = None


@dataclass(frozen=True)
class PortFinding:
    """Classification of one attempted port"""
    port: int
    service: str
    state: PortState
    severity: SeverityLevel
    latency_ms: int
    evidence: Optional[str] = None
    impact: str = ""
    recommendation: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "port": self.port,
            "service": self.service,
            "state": self.state.value,
            "severity": self.severity.value,
            "latency_ms": self.latency_ms,
            "evidence": self.evidence,
            "impact": self.impact,
            "recommendation": self.recommendation,
        }


_PLAINTEXT_REMOTE_IMPACT = "Credentials and session data travel unencrypted and can be captured."
_DATABASE_IMPACT = (
    "A publicly reachable database or cache daemon invites brute force, "
    "exploitation and data leakage."
)
_DATABASE_RECOMMENDATION = (
    "Restrict the service to private networks (firewall/VPC), expose it "
    "internally only and require strong authentication."
)
_MAIL_IMPACT = "Mail service reachable from the internet; misconfiguration may allow relay or credential attacks."
_MAIL_RECOMMENDATION = "Confirm the service is intended to be public, enforce TLS and authentication."
_GENERIC_IMPACT = "Open port detected."
_GENERIC_RECOMMENDATION = "Check whether the service is needed; otherwise close or restrict it."


def _database(port: int, service: str, connect_timeout: float) -> PortProfile:
    return PortProfile(
        port, service, connect_timeout, 1.0,
        SeverityLevel.HIGH, _DATABASE_IMPACT, _DATABASE_RECOMMENDATION,
    )


def _mail(port: int, service: str, evidence: Optional[str]) -> PortProfile:
    return PortProfile(
        port, service, 1.2, 1.5,
        SeverityLevel.LOW, _MAIL_IMPACT, _MAIL_RECOMMENDATION, evidence,
    )


COMMON_PORT_PROFILES: Tuple[PortProfile, ...] = (
    PortProfile(
        21, "FTP", 1.2, 1.5, SeverityLevel.HIGH,
        "FTP can expose credentials and data when not protected.",
        "Disable FTP or migrate to SFTP/FTPS and restrict access with a firewall.",
        EVIDENCE_BANNER,
    ),
    PortProfile(
        22, "SSH", 1.2, 1.0, SeverityLevel.MEDIUM,
        "Exposed SSH is a brute-force target when not hardened.",
        "Restrict by IP, disable password login, use keys and MFA where possible.",
    ),
    PortProfile(
        23, "TELNET", 1.2, 1.0, SeverityLevel.HIGH,
        _PLAINTEXT_REMOTE_IMPACT,
        "Disable Telnet and use SSH (port 22) with a secure configuration.",
    ),
    _mail(25, "SMTP", EVIDENCE_BANNER),
    PortProfile(
        53, "DNS", 1.2, 1.0, SeverityLevel.LOW,
        "DNS over TCP is reachable; open resolvers can be abused for amplification.",
        "Allow recursion only for trusted clients and restrict zone transfers.",
    ),
    PortProfile(
        80, "HTTP", 1.2, 1.5, SeverityLevel.LOW,
        "Plain HTTP may allow unencrypted access depending on configuration.",
        "Force HTTPS with a 301 redirect and enable HSTS.",
        EVIDENCE_HTTP,
    ),
    _mail(110, "POP3", EVIDENCE_BANNER),
    _mail(143, "IMAP", EVIDENCE_BANNER),
    PortProfile(
        443, "HTTPS", 1.3, 1.5, SeverityLevel.INFO,
        "HTTPS open (expected).",
        "Keep TLS up to date and the certificate valid.",
        EVIDENCE_HTTPS,
    ),
    _mail(465, "SMTPS", None),
    _mail(587, "SMTP Submission", EVIDENCE_BANNER),
    _mail(993, "IMAPS", None),
    _mail(995, "POP3S", None),
    _database(1433, "MS SQL Server", 1.8),
    _database(1521, "Oracle", 1.8),
    _database(3306, "MySQL", 1.6),
    _database(5432, "PostgreSQL", 1.6),
    _database(6379, "Redis", 1.6),
    PortProfile(
        8080, "HTTP Alt", 1.4, 1.5, SeverityLevel.LOW,
        "Plain HTTP may allow unencrypted access depending on configuration.",
        "Force HTTPS with a 301 redirect and enable HSTS.",
        EVIDENCE_HTTP,
    ),
    PortProfile(
        8443, "HTTPS Alt", 1.5, 1.5, SeverityLevel.INFO,
        "HTTPS on an alternate port (often an admin or staging surface).",
        "Confirm the service is meant to be public and keep TLS up to date.",
        EVIDENCE_HTTPS,
    ),
    _database(9200, "Elasticsearch", 1.6),
    _database(27017, "MongoDB", 1.8),
)


def default_profile(port: int) -> PortProfile:
    """Profile used for ports missing from the table"""
    return PortProfile(
        port, "UNKNOWN", 1.2, 1.0, SeverityLevel.LOW,
        _GENERIC_IMPACT, _GENERIC_RECOMMENDATION,
    )


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


@dataclass
class _ScanState:
    """Per-scan mutable state shared by the workers of one sweep"""
    host: str
    address: str
    semaphore: asyncio.Semaphore
    results: Dict[int, PortFinding] = field(default_factory=dict)
    timeouts_seen: int = 0


class PortScanner:
    """
    Concurrent TCP connect scanner.

    Example:
        >>> scanner = PortScanner()
        >>> open_ports = await scanner.scan_common_ports("example.com")
        >>> [(f.port, f.service) for f in open_ports]
        [(80, 'HTTP'), (443, 'HTTPS')]
    """

    def __init__(
        self,
        settings: Optional[PortScanSettings] = None,
        profiles: Optional[Iterable[PortProfile]] = None,
        user_agent: str = "WEBAUDIT/1.0 Security Scanner",
    ):
        """
        Args:
            settings: Worker pool, semaphore, deadline and back-off settings
            profiles: Port table to scan (defaults to COMMON_PORT_PROFILES)
            user_agent: User-Agent sent with evidence HEAD requests
        """
        self.settings = settings or PortScanSettings()
        self.profiles: Dict[int, PortProfile] = {
            p.port: p for p in (profiles if profiles is not None else COMMON_PORT_PROFILES)
        }
        self.user_agent = user_agent
        self.logger = structlog.get_logger(__name__)

    async def scan_common_ports(self, host: Optional[str]) -> List[PortFinding]:
        """
        Scan the port table and return OPEN ports only, ascending.
        """
        findings = await self.scan_all(host)
        return [f for f in findings if f.state is PortState.OPEN]

    async def scan_all(self, host: Optional[str]) -> List[PortFinding]:
        """
        Scan the port table and return every classified port, ascending.

        Ports that did not finish before the deadline, or whose check failed
        unexpectedly, are absent. Name resolution shares the deadline budget.
        """
        if not host or not host.strip():
            return []

        try:
            address = await asyncio.wait_for(
                self._resolve(host), timeout=self.settings.deadline_seconds
            )
        except asyncio.TimeoutError:
            address = None
        if address is None:
            self.logger.warning("port_scan_resolution_failed", host=host)
            return []

        state = _ScanState(
            host=host,
            address=address,
            semaphore=asyncio.Semaphore(self.settings.connect_permits),
        )

        queue: asyncio.Queue = asyncio.Queue()
        for port in sorted(self.profiles):
            queue.put_nowait(port)

        worker_count = max(1, min(self.settings.workers, queue.qsize()))
        started = time.perf_counter()

        self.logger.info(
            "port_scan_started",
            host=host,
            address=address,
            ports=queue.qsize(),
            workers=worker_count,
            connect_permits=self.settings.connect_permits,
        )

        workers = [
            asyncio.create_task(self._worker(queue, state))
            for _ in range(worker_count)
        ]
        try:
            _, pending = await asyncio.wait(workers, timeout=self.settings.deadline_seconds)
            if pending:
                self.logger.warning(
                    "port_scan_deadline_exceeded",
                    host=host,
                    deadline=self.settings.deadline_seconds,
                    completed=len(state.results),
                )
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        findings = sorted(state.results.values(), key=lambda f: f.port)

        self.logger.info(
            "port_scan_complete",
            host=host,
            scanned=len(findings),
            open=sum(1 for f in findings if f.state is PortState.OPEN),
            timeouts=state.timeouts_seen,
            elapsed=f"{time.perf_counter() - started:.2f}s",
        )
        return findings

    async def _worker(self, queue: asyncio.Queue, state: _ScanState):
        while True:
            try:
                port = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                state.results[port] = await self._probe_port(port, state)
            except Exception as e:
                # Unexpected failure on one port drops that port only
                self.logger.error(
                    "port_probe_failed",
                    host=state.host,
                    port=port,
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

    def _connect_timeout(self, profile: PortProfile, state: _ScanState) -> float:
        timeout = profile.connect_timeout
        if state.timeouts_seen >= self.settings.timeout_backoff_threshold:
            timeout += self.settings.timeout_backoff_extra
        return timeout

    async def _probe_port(self, port: int, state: _ScanState) -> PortFinding:
        profile = self.profiles.get(port) or default_profile(port)

        async with state.semaphore:
            connect_timeout = self._connect_timeout(profile, state)
            started = time.perf_counter()
            try:
                reader, writer = await asyncio.wait_for(
                    self._connect(state.address, port),
                    timeout=connect_timeout,
                )
            except ConnectionRefusedError:
                return self._finding(profile, PortState.CLOSED, started)
            except asyncio.TimeoutError:
                state.timeouts_seen += 1
                return self._finding(
                    profile,
                    PortState.FILTERED,
                    started,
                    f"no response within {int(connect_timeout * 1000)}ms "
                    f"(likely filtered by firewall)",
                )
            except OSError as e:
                return self._finding(profile, PortState.FILTERED, started, type(e).__name__)

            finding = self._finding(profile, PortState.OPEN, started)
            try:
                evidence = await self._collect_evidence(profile, reader, writer, state)
            finally:
                await self._close(writer)
            finding = replace(finding, evidence=evidence)

        self.logger.debug(
            "port_open",
            port=port,
            service=profile.service,
            latency_ms=finding.latency_ms,
            evidence=finding.evidence,
        )
        return finding

    def _finding(
        self,
        profile: PortProfile,
        port_state: PortState,
        started: float,
        evidence: Optional[str] = None,
    ) -> PortFinding:
        return PortFinding(
            port=profile.port,
            service=profile.service,
            state=port_state,
            severity=profile.severity,
            latency_ms=int((time.perf_counter() - started) * 1000),
            evidence=evidence,
            impact=profile.impact,
            recommendation=profile.recommendation,
        )

    async def _resolve(self, host: str) -> Optional[str]:
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        except (OSError, UnicodeError):
            return None
        if not infos:
            return None
        return infos[0][4][0]

    async def _connect(self, address: str, port: int):
        return await asyncio.open_connection(address, port)

    async def _collect_evidence(
        self,
        profile: PortProfile,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        state: _ScanState,
    ) -> Optional[str]:
        """Gather a short diagnostic string; failures leave evidence empty"""
        if profile.evidence is None:
            return None

        try:
            if profile.evidence == EVIDENCE_HTTP:
                text = await self._http_head(reader, writer, state.host, profile.read_timeout)
            elif profile.evidence == EVIDENCE_HTTPS:
                text = await self._https_head(profile, state)
            elif profile.evidence == EVIDENCE_BANNER:
                line = await asyncio.wait_for(reader.readline(), timeout=profile.read_timeout)
                text = line.decode("utf-8", errors="replace").strip()
            else:
                return None
        except (OSError, asyncio.TimeoutError, EOFError, ValueError) as e:
            self.logger.debug(
                "evidence_collection_failed",
                port=profile.port,
                error_type=type(e).__name__,
            )
            return None

        if not text:
            return None
        return _truncate(text, self.settings.evidence_max_length)

    async def _https_head(self, profile: PortProfile, state: _ScanState) -> Optional[str]:
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE

        reader, writer = await asyncio.wait_for(
            asyncio.open_connection(
                state.address, profile.port, ssl=context, server_hostname=state.host
            ),
            timeout=self._connect_timeout(profile, state),
        )
        try:
            return await self._http_head(reader, writer, state.host, profile.read_timeout)
        finally:
            await self._close(writer)

    async def _http_head(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        host: str,
        read_timeout: float,
    ) -> Optional[str]:
        request = (
            f"HEAD / HTTP/1.1\r\n"
            f"Host: {host}\r\n"
            f"User-Agent: {self.user_agent}\r\n"
            f"Connection: close\r\n\r\n"
        )
        writer.write(request.encode("ascii", errors="replace"))
        await writer.drain()

        lines = await asyncio.wait_for(self._read_head_lines(reader), timeout=read_timeout)
        if not lines:
            return None

        summary = lines[0]
        for line in lines[1:]:
            name, _, value = line.partition(":")
            if name.strip().lower() == "server":
                summary += f" | Server: {value.strip()}"
                break
        return summary

    @staticmethod
    async def _read_head_lines(reader: asyncio.StreamReader, max_lines: int = 32) -> List[str]:
        lines: List[str] = []
        while len(lines) < max_lines:
            raw = await reader.readline()
            if not raw or raw in (b"\r\n", b"\n"):
                break
            lines.append(raw.decode("latin-1").strip())
        return lines

    @staticmethod
    async def _close(writer):
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass

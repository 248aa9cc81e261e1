#!/usr/bin/env python3
"""
WEBAUDIT - Web Security Posture Scanner

Main entry point for the scanner CLI.

Usage:
    webaudit scan --target example.com
    webaudit scan --target "https://shop.example.com/item?id=7" --active
    webaudit scan --target example.com --report --output result.json
"""

import asyncio
import json
import logging
import sys
from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.table import Table
from rich.progress import Progress, SpinnerColumn, TextColumn

from webaudit import __version__
from webaudit.config import ConfigError, load_settings
from webaudit.core import RateLimitExceeded, ScanOrchestrator, ScanResult
from webaudit.report import generate_report


console = Console()

RISK_STYLES = {
    "secure": "bold green",
    "warning": "bold yellow",
    "critical": "bold red",
}

SEVERITY_STYLES = {
    "high": "red",
    "medium": "yellow",
    "low": "cyan",
    "info": "dim",
}


def configure_logging(verbose: bool):
    """Route structlog output to stderr at the requested level"""
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.DEBUG if verbose else logging.WARNING
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


@click.group()
@click.version_option(version=__version__, prog_name="WEBAUDIT")
def cli():
    """
    WEBAUDIT - Web Security Posture Scanner

    Checks TLS, security headers and HTTPS redirection, and optionally
    probes for reflected input, error disclosure and exposed ports.
    """
    pass


@cli.command()
@click.option('--target', required=True, help='Target URL or host to scan')
@click.option('--active/--passive', default=False, help='Enable active probes and port sweep (default: passive)')
@click.option('--config', 'config_path', type=click.Path(), help='YAML settings file')
@click.option('--report', 'show_report', is_flag=True, help='Print the plain-text report')
@click.option('--output', type=click.Path(), help='Save results to JSON file')
@click.option('--verbose', is_flag=True, help='Show debug logs')
def scan(
    target: str,
    active: bool,
    config_path: str,
    show_report: bool,
    output: str,
    verbose: bool,
):
    """
    Scan one URL and print its security score.

    Example:
        webaudit scan --target example.com
        webaudit scan --target "https://example.com/search?q=x" --active
    """
    configure_logging(verbose)

    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        sys.exit(2)

    console.print("\n" + "=" * 80)
    console.print("WEBAUDIT - Web Security Posture Scanner")
    console.print("=" * 80 + "\n")

    console.print(f"[green]Target:[/green] {target}")
    console.print(f"[green]Mode:[/green] {'[bold red]Active[/bold red]' if active else 'Passive'}")
    console.print()

    orchestrator = ScanOrchestrator(settings=settings)

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("[cyan]Scanning...", total=None)
            result = asyncio.run(orchestrator.scan(target, active=active))
            progress.update(task, description="[green]Scan complete!")

    except RateLimitExceeded as e:
        console.print(f"\n[bold red]Rate limited:[/bold red] {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        console.print("\n\n[yellow]Scan interrupted by user[/yellow]")
        sys.exit(1)

    print_result(result)

    if show_report:
        console.print(generate_report(result), markup=False, highlight=False)

    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w') as f:
            json.dump(result.to_dict(), f, indent=2)

        console.print(f"\n[green]Results saved to:[/green] {output_path}")


def print_result(result: ScanResult):
    """Render the score, issues and open ports"""
    score = result.score
    style = RISK_STYLES[score.risk_level.value]

    console.print("\n" + "=" * 80)
    console.print(
        f"Score: [{style}]{score.score}/100 ({score.risk_level.value.upper()})[/{style}]"
    )
    console.print(f"Final URL: {result.final_url} (HTTP {result.http_status})")
    console.print(f"TLS: {result.tls.message}")

    if score.issues:
        table = Table(title="Issues")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Severity")
        table.add_column("Title")
        for issue in score.issues:
            sev = issue.severity.value
            table.add_row(issue.id, f"[{SEVERITY_STYLES[sev]}]{sev.upper()}[/]", issue.title)
        console.print(table)
    else:
        console.print("[bold green]No significant issues detected[/bold green]")

    if result.open_ports:
        table = Table(title="Open Ports")
        table.add_column("Port", style="cyan", no_wrap=True)
        table.add_column("Service")
        table.add_column("Severity")
        table.add_column("Latency")
        table.add_column("Evidence", style="dim")
        for finding in result.open_ports:
            sev = finding.severity.value
            table.add_row(
                str(finding.port),
                finding.service,
                f"[{SEVERITY_STYLES[sev]}]{sev.upper()}[/]",
                f"{finding.latency_ms}ms",
                finding.evidence or "",
            )
        console.print(table)

    console.print("=" * 80 + "\n")


@cli.command()
def version():
    """Show version information and capabilities"""
    console.print(f"\n[bold cyan]WEBAUDIT Scanner v{__version__}[/bold cyan]")
    console.print("[cyan]Web Security Posture Scanner[/cyan]\n")

    table = Table(title="Checks")
    table.add_column("Check", style="cyan", no_wrap=True)
    table.add_column("Mode", style="green")
    table.add_column("Notes", style="yellow")

    table.add_row("TLS Certificate", "passive", "Validity and expiry")
    table.add_row("HTTPS Redirect", "passive", "Manual redirect trace (10 hops)")
    table.add_row("Security Headers", "passive", "HSTS, CSP, X-Frame-Options, nosniff")
    table.add_row("Reflected Marker", "active", "Unescaped input reflection")
    table.add_row("Error Disclosure", "active", "Database/stack-trace signatures")
    table.add_row("Port Sweep", "active", "22 common ports, 12s deadline")

    console.print(table)
    console.print()


if __name__ == '__main__':
    cli()

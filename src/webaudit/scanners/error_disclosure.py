"""
Error Disclosure Probe - Detects database/stack-trace leakage in responses.

Appends a single quote to the first query parameter and looks for well-known
database driver and stack-trace signatures in the response body. A match does
not confirm SQL injection; it shows the application leaks internal errors.
"""

from typing import Optional

from .base_scanner import BaseProbe, ProbeOutcome
from ..urls import mutate_first_param


DB_ERROR_SIGNATURES = (
    "sql syntax",
    "you have an error in your sql syntax",
    "unclosed quotation mark",
    "syntax error at or near",
    "sqlstate",
    "jdbc",
    "mysql",
    "mysqli",
    "postgresql",
    "psql",
    "sqlite",
    "ora-",
    "odbc",
    "exception",
    "stack trace",
)


def find_db_error_signature(body: Optional[str]) -> Optional[str]:
    """
    Return the first catalog signature found in a response body.

    Matching is case-insensitive.
    """
    if not body:
        return None
    lowered = body.lower()
    for signature in DB_ERROR_SIGNATURES:
        if signature in lowered:
            return signature
    return None


class ErrorDisclosureProbe(BaseProbe):
    """
    Single-request database error disclosure probe.

    Example:
        >>> probe = ErrorDisclosureProbe()
        >>> outcome = await probe.run("https://shop.test/item?id=7")
        >>> outcome.suspected
        False
    """

    MUTATION = "'"

    def __init__(self, settings=None, enabled: bool = True):
        super().__init__(
            probe_name="ErrorDisclosureProbe",
            settings=settings,
            enabled=enabled,
        )

    async def probe(self, url: str) -> ProbeOutcome:
        mutated = mutate_first_param(url, self.MUTATION)
        self.logger.debug("probing_error_disclosure", url=mutated)

        body = await self.fetch_body(mutated)
        signature = find_db_error_signature(body)

        return ProbeOutcome(suspected=signature is not None, detail=signature)

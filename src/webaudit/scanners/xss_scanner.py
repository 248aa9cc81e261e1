"""
Reflected Marker Probe - Cheap reflected-XSS indicator.

Injects a random, harmless token into the first query parameter and checks
whether it comes back verbatim in the response body. The token contains only
letters, digits and underscores, so a hit means the raw input is echoed; it
says nothing yet about the HTML context.

Non-destructive by construction: no script, no tags, no event handlers.
"""

import uuid

from .base_scanner import BaseProbe, ProbeOutcome
from ..urls import mutate_first_param


MARKER_PREFIX = "xss_probe_"


def generate_marker() -> str:
    """Return a fresh low-collision marker such as 'xss_probe_3f9a0c1d2e'"""
    return MARKER_PREFIX + uuid.uuid4().hex[:10]


class ReflectedMarkerProbe(BaseProbe):
    """
    Reflected input detector.

    Features:
    1. One GET request per run
    2. Literal (unescaped) reflection is the only positive signal
    3. Marker kept in the outcome detail for manual triage

    Example:
        >>> probe = ReflectedMarkerProbe()
        >>> outcome = await probe.run("https://x.test/search?q=shoes")
        >>> outcome.suspected
        True
    """

    def __init__(self, settings=None, enabled: bool = True):
        super().__init__(
            probe_name="ReflectedMarkerProbe",
            settings=settings,
            enabled=enabled,
        )

    async def probe(self, url: str) -> ProbeOutcome:
        marker = generate_marker()
        mutated = mutate_first_param(url, marker)
        self.logger.debug("probing_reflection", url=mutated, marker=marker)

        body = await self.fetch_body(mutated)

        return ProbeOutcome(suspected=marker in body, detail=marker)

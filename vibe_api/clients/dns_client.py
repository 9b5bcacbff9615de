# vibe_api/clients/dns_client.py
# A-record resolution with resolver failures reduced to coarse error codes

from __future__ import annotations

import dns.asyncresolver
import dns.exception
import dns.resolver

ENOTFOUND = "ENOTFOUND"
ENODATA = "ENODATA"
EUNKNOWN = "EUNKNOWN"


class DnsLookupError(Exception):

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


class DnsClient:

    def __init__(self, timeout_seconds: float = 5.0):
        self._timeout = timeout_seconds

    async def resolve_a(self, domain: str) -> list[str]:
        """Return the A records for ``domain``. Raises DnsLookupError."""
        try:
            answer = await dns.asyncresolver.resolve(domain, "A", lifetime=self._timeout)
        except dns.resolver.NXDOMAIN as e:
            raise DnsLookupError(ENOTFOUND, str(e))
        except dns.resolver.NoAnswer as e:
            raise DnsLookupError(ENODATA, str(e))
        except dns.exception.DNSException as e:
            raise DnsLookupError(EUNKNOWN, str(e))
        return [rdata.address for rdata in answer]

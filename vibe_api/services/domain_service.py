# vibe_api/services/domain_service.py
# Custom-domain verification by A record, and the user's purchased domains
#
# A failed lookup is a result, not an error: every outcome is reported as
# {"success": True, "verified": bool, "error"?: guidance}

from __future__ import annotations

from typing import Any

from vibe_api.clients.dns_client import ENODATA, ENOTFOUND, DnsClient, DnsLookupError
from vibe_api.repositories.domain_repository import DomainRepository
from vibe_api.utils.logger import log_info


class DomainService:

    def __init__(self, dns: DnsClient, repository: DomainRepository, expected_ip: str):
        self._dns = dns
        self._repo = repository
        self.expected_ip = expected_ip

    async def verify(self, domain: str) -> dict[str, Any]:
        ip = self.expected_ip
        try:
            addresses = await self._dns.resolve_a(domain)
        except DnsLookupError as e:
            log_info(f"DNS lookup for {domain} failed", code=e.code)
            if e.code == ENOTFOUND:
                message = (
                    f"Domain {domain} not found. Please ensure the domain exists "
                    "and A records are properly configured."
                )
            elif e.code == ENODATA:
                message = f"No A records found for {domain}. Please add an A record pointing to {ip}."
            else:
                message = f"DNS lookup failed for {domain}. Please ensure A records are properly configured."
            return {"success": True, "verified": False, "error": message}

        log_info(f"DNS lookup for {domain}", addresses=addresses)
        if ip in addresses:
            return {"success": True, "verified": True}
        return {
            "success": True,
            "verified": False,
            "error": f"Domain {domain} does not point to {ip}. Current A records: {', '.join(addresses)}",
        }

    async def list_user_domains(self, email: str) -> list[dict[str, Any]]:
        return [
            {
                "domain": d.get("domain"),
                "purchaseDate": d.get("purchaseDate"),
                "price": d.get("price"),
                "vercelDomainId": d.get("vercelDomainId"),
            }
            for d in await self._repo.list_for_user(email)
        ]

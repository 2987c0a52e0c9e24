from __future__ import annotations
from typing import Optional
import re

SUBDOMAIN_RE = re.compile(r"^(?P<sub>[^.:]+)\.")
SYSTEM_SUBDOMAINS = {"www", "app", "api", "admin"}


def extract_subdomain(host: str, base_domain: Optional[str] = None) -> Optional[str]:
    """
    Extract the first label from host. If base_domain is given (e.g., 'example.com'),
    strip it before extracting. Returns None for naked/base domains and system
    labels like 'www' or 'api'.
    """
    if not host:
        return None
    host = host.split(":", 1)[0].strip().lower()
    if base_domain:
        base_domain = base_domain.lower()
        if host != base_domain and not host.endswith("." + base_domain):
            return None
        left = host[: -len(base_domain)].rstrip(".")
        sub = left.split(".")[-1] if left else None
    else:
        # bare hosts (localhost, testserver, 127.0.0.1) carry no tenant
        if host.count(".") < 2 or host.replace(".", "").isdigit():
            return None
        m = SUBDOMAIN_RE.match(host)
        sub = m.group("sub") if m else None
    return None if sub in SYSTEM_SUBDOMAINS else sub


def lookup_school(identifier):
    """Find a school by code (case-insensitive) or numeric id."""
    from main.models import School  # lazy import to avoid circulars

    if not identifier:
        return None
    identifier = str(identifier).strip()
    school = School.objects.filter(code__iexact=identifier).first()
    if school is None and identifier.isdigit():
        school = School.objects.filter(pk=int(identifier)).first()
    return school

from __future__ import annotations

import logging
import re

from edgeport.services.edge_models import DEFAULT_HTTP_METHODS, SERVICE_KINDS, FunctionMetadata
from edgeport.services.safe_source import summarize_source

logger = logging.getLogger(__name__)

ENV_VAR_PATTERN = re.compile(r"Deno\.env\.get\(\s*['\"](\w+)['\"]\s*\)", re.IGNORECASE)

CANONICAL_METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")
METHOD_PATTERNS = {
    method: re.compile(rf"req\.method\s*===?\s*['\"]{method}['\"]", re.IGNORECASE)
    for method in CANONICAL_METHODS
}

AUTH_PATTERN = re.compile(r"Authorization|auth\.getUser|supabase\.auth", re.IGNORECASE)

SERVICE_PATTERNS = {
    "database": re.compile(r"supabase|@supabase|createClient", re.IGNORECASE),
    "payment": re.compile(r"stripe", re.IGNORECASE),
    "email": re.compile(r"resend", re.IGNORECASE),
}

SERVICE_DEPENDENCIES = {
    "database": "@supabase/supabase-js",
    "payment": "stripe",
    "email": "resend",
}

WEBHOOK_PATTERN = re.compile(r"webhook|signature", re.IGNORECASE)

# Checked in order; the first provider with a matching marker wins.
WEBHOOK_PROVIDER_MARKERS = (
    ("stripe", ("stripe-signature", "constructevent")),
    ("github", ("x-hub-signature", "x-github")),
    ("twilio", ("x-twilio-signature",)),
)


def extract_metadata(source: str) -> FunctionMetadata:
    summary = summarize_source(source)
    logger.info(
        "extract_metadata: source_len=%s source_hash=%s",
        summary["len"],
        summary["sha256_8"],
    )

    webhook_detected = bool(WEBHOOK_PATTERN.search(source))

    return FunctionMetadata(
        env_vars=tuple(_ordered_unique(match.group(1) for match in ENV_VAR_PATTERN.finditer(source))),
        http_methods=_detect_methods(source),
        requires_auth=bool(AUTH_PATTERN.search(source)),
        uses_services=tuple(
            service for service in SERVICE_KINDS if SERVICE_PATTERNS[service].search(source)
        ),
        webhook_detected=webhook_detected,
        webhook_kind=_infer_webhook_kind(source) if webhook_detected else None,
    )


def service_dependencies(metadata: FunctionMetadata) -> list[str]:
    return [SERVICE_DEPENDENCIES[service] for service in metadata.uses_services]


def _detect_methods(source: str) -> tuple[str, ...]:
    methods = tuple(
        method for method, pattern in METHOD_PATTERNS.items() if pattern.search(source)
    )
    return methods or DEFAULT_HTTP_METHODS


def _infer_webhook_kind(source: str) -> str:
    lowered = source.lower()
    for kind, markers in WEBHOOK_PROVIDER_MARKERS:
        if any(marker in lowered for marker in markers):
            return kind
    return "generic"


def _ordered_unique(values) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered

from __future__ import annotations

import re
from dataclasses import dataclass, field

SERVICE_KINDS = ("database", "payment", "email")

DEFAULT_HTTP_METHODS = ("POST",)
PREFLIGHT_METHOD = "OPTIONS"

NON_WORD_PATTERN = re.compile(r"\W")
NON_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class SourceFunction:
    name: str
    raw_text: str
    origin_path: str = ""


@dataclass(frozen=True)
class FunctionMetadata:
    env_vars: tuple[str, ...] = ()
    http_methods: tuple[str, ...] = DEFAULT_HTTP_METHODS
    requires_auth: bool = False
    uses_services: tuple[str, ...] = ()
    webhook_detected: bool = False
    webhook_kind: str | None = None

    def uses(self, service: str) -> bool:
        return service in self.uses_services


@dataclass(frozen=True)
class BusinessLogicBlock:
    kind: str
    text: str
    start_line: int
    end_line: int


@dataclass(frozen=True)
class WebhookAdvisory:
    kind: str
    provider_label: str
    signature_header: str
    verification_method: str
    runbook: str


@dataclass(frozen=True)
class ConversionResult:
    function_name: str
    origin_path: str
    route_identifier: str
    route_path: str
    route_source: str
    test_source: str
    dependencies: tuple[str, ...]
    env_vars: tuple[str, ...]
    preserved_logic_percentage: int
    manual_review_count: int
    extraction_tier: str
    webhook_advisory: WebhookAdvisory | None = None
    metadata: FunctionMetadata = field(default_factory=FunctionMetadata)
    blocks: tuple[BusinessLogicBlock, ...] = ()


@dataclass(frozen=True)
class GeneratedFile:
    path: str
    content: str


@dataclass(frozen=True)
class ServiceBundle:
    conversions: tuple[ConversionResult, ...]
    dependencies: dict[str, str]
    env_vars: tuple[str, ...]
    env_template: str
    entry_module: str
    package_manifest: str
    webhook_guide: str
    files: tuple[GeneratedFile, ...] = field(default_factory=tuple)


def route_identifier(name: str) -> str:
    """Turn a function name into a TypeScript-safe identifier (``send-email`` -> ``send_email``)."""
    identifier = NON_WORD_PATTERN.sub("_", name.strip()) or "handler"
    if identifier[0].isdigit():
        identifier = f"_{identifier}"
    return identifier


def route_path(name: str) -> str:
    slug = NON_SLUG_PATTERN.sub("-", name.strip().lower()).strip("-") or "handler"
    return f"/api/{slug}"


def handler_methods(metadata: FunctionMetadata) -> list[str]:
    return [method for method in metadata.http_methods if method != PREFLIGHT_METHOD]

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from edgeport.services.edge_bundle import BundleOptions, aggregate_bundle
from edgeport.services.edge_metadata import extract_metadata, service_dependencies
from edgeport.services.edge_models import (
    ConversionResult,
    ServiceBundle,
    SourceFunction,
    route_identifier,
    route_path,
)
from edgeport.services.edge_rewriter import REWRITE_RULES, RewriteRule, rewrite_source
from edgeport.services.edge_route_generator import default_origin_path, generate_route
from edgeport.services.edge_segmenter import segment_business_logic
from edgeport.services.edge_test_scaffold import generate_test_module
from edgeport.services.edge_webhooks import (
    DEFAULT_PUBLIC_BASE_URL,
    WEBHOOK_PROVIDERS,
    WebhookProvider,
    build_webhook_advisory,
)
from edgeport.services.safe_source import summarize_source

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4
ENTRY_FILE_NAMES = {"index.ts", "index.js", "index.tsx", "mod.ts"}


@dataclass(frozen=True)
class ConversionOptions:
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    providers: Mapping[str, WebhookProvider] = field(default_factory=lambda: WEBHOOK_PROVIDERS)
    rules: tuple[RewriteRule, ...] = REWRITE_RULES


def convert_function(
    source: SourceFunction, options: ConversionOptions | None = None
) -> ConversionResult:
    """Run the full pipeline for one edge function.

    Metadata and blocks are derived from the original text; the route body is
    extracted from the rewritten text. Nothing here raises on odd input: missing
    structure only lowers the confidence figures.
    """
    options = options or ConversionOptions()
    summary = summarize_source(source.raw_text)
    logger.info(
        "convert_function: name=%s source_len=%s source_hash=%s",
        source.name,
        summary["len"],
        summary["sha256_8"],
    )

    metadata = extract_metadata(source.raw_text)
    blocks = segment_business_logic(source.raw_text)
    rewritten = rewrite_source(source.raw_text, options.rules)
    origin_path = source.origin_path or default_origin_path(source.name)
    route = generate_route(source.name, metadata, blocks, rewritten, origin_path)

    advisory = None
    if metadata.webhook_detected:
        advisory = build_webhook_advisory(
            metadata.webhook_kind,
            source.name,
            providers=options.providers,
            base_url=options.public_base_url,
        )

    return ConversionResult(
        function_name=source.name,
        origin_path=origin_path,
        route_identifier=route_identifier(source.name),
        route_path=route_path(source.name),
        route_source=route.source,
        test_source=generate_test_module(source.name, metadata),
        dependencies=tuple(service_dependencies(metadata)),
        env_vars=metadata.env_vars,
        preserved_logic_percentage=route.preserved_logic_percentage,
        manual_review_count=route.manual_review_count,
        extraction_tier=route.extraction_tier,
        webhook_advisory=advisory,
        metadata=metadata,
        blocks=tuple(blocks),
    )


def functions_from_files(files: Mapping[str, str]) -> list[SourceFunction]:
    """Name each candidate file after its directory (``<dir>/<name>/index.ts``).

    The mapping is expected to be pre-filtered to one entry file per function.
    """
    functions: list[SourceFunction] = []
    for path in sorted(files):
        pure = PurePosixPath(path.replace("\\", "/"))
        if pure.name in ENTRY_FILE_NAMES and pure.parent.name:
            name = pure.parent.name
        else:
            name = pure.stem
        functions.append(SourceFunction(name=name, raw_text=files[path], origin_path=path))
    return functions


def convert_batch(
    sources: Sequence[SourceFunction],
    options: ConversionOptions | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[ConversionResult]:
    if not sources:
        return []
    options = options or ConversionOptions()
    logger.info("convert_batch: functions=%s max_workers=%s", len(sources), max_workers)
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        return list(executor.map(lambda item: convert_function(item, options), sources))


def build_service_bundle(
    files: Mapping[str, str],
    options: ConversionOptions | None = None,
    bundle_options: BundleOptions | None = None,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> ServiceBundle:
    results = convert_batch(functions_from_files(files), options, max_workers)
    return aggregate_bundle(results, bundle_options)

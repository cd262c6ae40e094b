# [파일 설명]
# - 목적: 엣지 함수 변환 API 라우트를 정의하고 요청/응답 모델을 제공한다.
# - 제공 기능: 분석, 재작성, 단일 변환, 웹훅 가이드, 번들 생성 POST 엔드포인트를 제공한다.
# - 입력/출력: Pydantic 모델로 요청을 수신하고 표준화된 응답 구조를 반환한다.
# - 주의 사항: 원문 소스는 로깅에 직접 노출하지 않는 흐름을 유지한다.
# - 연관 모듈: edgeport.services.* 변환 서비스들과 연결된다.
from __future__ import annotations

import logging
import os

from fastapi import APIRouter
from pydantic import BaseModel, Field

from edgeport.services.edge_bundle import DEFAULT_DEPENDENCY_VERSIONS, BundleOptions
from edgeport.services.edge_converter import (
    DEFAULT_MAX_WORKERS,
    ConversionOptions,
    build_service_bundle,
    convert_function,
)
from edgeport.services.edge_metadata import extract_metadata
from edgeport.services.edge_models import (
    BusinessLogicBlock,
    FunctionMetadata,
    SourceFunction,
    WebhookAdvisory,
)
from edgeport.services.edge_rewriter import apply_rewrite_rules
from edgeport.services.edge_segmenter import segment_business_logic
from edgeport.services.edge_webhooks import (
    DEFAULT_PUBLIC_BASE_URL,
    WEBHOOK_PROVIDERS,
    build_webhook_advisory,
    build_webhook_migration_guide,
)
from edgeport.services.safe_source import summarize_source

logger = logging.getLogger(__name__)

router = APIRouter()

API_VERSION = "1.2.0"
MAX_WORKERS_LIMIT = 32
# Conversions scoring below this are reported as LOW_CONFIDENCE.
LOW_CONFIDENCE_THRESHOLD = 50


# [클래스 설명]
# - 역할: ConvertOptions Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class ConvertOptions(BaseModel):
    public_base_url: str | None = None


# [클래스 설명]
# - 역할: AnalyzeRequest Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class AnalyzeRequest(BaseModel):
    name: str = "edge-function"
    source: str


# [클래스 설명]
# - 역할: RewriteRequest Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class RewriteRequest(BaseModel):
    source: str


# [클래스 설명]
# - 역할: ConvertRequest Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class ConvertRequest(BaseModel):
    name: str = Field(..., min_length=1)
    source: str
    origin_path: str | None = None
    options: ConvertOptions = Field(default_factory=ConvertOptions)


# [클래스 설명]
# - 역할: WebhookAdvisoryRequest Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class WebhookAdvisoryRequest(BaseModel):
    name: str = Field(..., min_length=1)
    kind: str | None = None
    options: ConvertOptions = Field(default_factory=ConvertOptions)


# [클래스 설명]
# - 역할: WebhookGuideFunction Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class WebhookGuideFunction(BaseModel):
    name: str = Field(..., min_length=1)
    source: str


# [클래스 설명]
# - 역할: WebhookGuideRequest Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class WebhookGuideRequest(BaseModel):
    functions: list[WebhookGuideFunction] = Field(default_factory=list)
    options: ConvertOptions = Field(default_factory=ConvertOptions)


# [클래스 설명]
# - 역할: BundleRequestOptions Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class BundleRequestOptions(BaseModel):
    public_base_url: str | None = None
    max_workers: int | None = Field(default=None, ge=1, le=MAX_WORKERS_LIMIT)
    dependency_versions: dict[str, str] = Field(default_factory=dict)
    port: int = Field(default=3000, ge=1, le=65535)


# [클래스 설명]
# - 역할: BundleRequest Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class BundleRequest(BaseModel):
    files: dict[str, str] = Field(default_factory=dict)
    options: BundleRequestOptions = Field(default_factory=BundleRequestOptions)


class FunctionObject(BaseModel):
    name: str
    origin_path: str | None = None


class MetadataPayload(BaseModel):
    env_vars: list[str]
    http_methods: list[str]
    requires_auth: bool
    uses_services: list[str]
    webhook_detected: bool
    webhook_kind: str | None


class BlockPayload(BaseModel):
    kind: str
    text: str
    start_line: int
    end_line: int


class AdvisoryPayload(BaseModel):
    kind: str
    provider_label: str
    signature_header: str
    verification_method: str
    runbook: str


class RoutePayload(BaseModel):
    identifier: str
    path: str
    source: str


# [클래스 설명]
# - 역할: AnalyzeResponse Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class AnalyzeResponse(BaseModel):
    version: str
    function: FunctionObject
    metadata: MetadataPayload
    blocks: list[BlockPayload]
    errors: list[str]


class RewriteResponse(BaseModel):
    version: str
    source: str
    applied_rules: list[str]
    errors: list[str]


# [클래스 설명]
# - 역할: ConvertResponse Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class ConvertResponse(BaseModel):
    version: str
    function: FunctionObject
    metadata: MetadataPayload
    blocks: list[BlockPayload]
    route: RoutePayload
    test_source: str
    dependencies: list[str]
    preserved_logic_percentage: int = Field(..., ge=0, le=100)
    manual_review_count: int = Field(..., ge=0)
    extraction_tier: str
    webhook_advisory: AdvisoryPayload | None
    errors: list[str]


class WebhookAdvisoryResponse(BaseModel):
    version: str
    function: FunctionObject
    advisory: AdvisoryPayload
    errors: list[str]


class WebhookGuideResponse(BaseModel):
    version: str
    advisories: list[AdvisoryPayload]
    guide: str
    errors: list[str]


class BundleConversion(BaseModel):
    name: str
    origin_path: str
    route_path: str
    preserved_logic_percentage: int
    manual_review_count: int
    extraction_tier: str
    webhook_kind: str | None


class BundleSummary(BaseModel):
    function_count: int
    webhook_count: int
    average_preserved_logic: float
    total_manual_review: int


class GeneratedFilePayload(BaseModel):
    path: str
    content: str


# [클래스 설명]
# - 역할: BundleResponse Pydantic 스키마 모델을 정의한다.
# - 사용 위치: API 요청/응답 또는 서비스 내부 구조에서 사용된다.
# - 핵심 동작: 필드 타입과 검증 규칙을 통해 데이터 구조를 고정한다.
# - 제약/주의: 동작 로직보다 스키마 표현에 집중하며 결정론적 직렬화를 전제로 한다.
class BundleResponse(BaseModel):
    version: str
    summary: BundleSummary
    conversions: list[BundleConversion]
    dependencies: dict[str, str]
    env_vars: list[str]
    env_template: str
    entry_module: str
    package_manifest: str
    webhook_guide: str
    files: list[GeneratedFilePayload]
    errors: list[str]


# [함수 설명]
# - 목적: 환경 변수 기반 공개 기본 URL을 구성한다.
# - 입력: EDGEPORT_PUBLIC_BASE_URL 환경 변수, 요청 옵션 값
# - 출력: 웹훅 런북에 사용할 기본 URL 문자열
# - 에러 처리: 빈 값은 기본 URL로 대체한다.
# - 결정론: 동일 환경 입력에 대해 안정적인 결과를 반환한다.
# - 보안: 비밀 값은 포함하지 않는다.
def _resolve_public_base_url(override: str | None) -> str:
    if override and override.strip():
        return override.strip()
    env_value = os.getenv("EDGEPORT_PUBLIC_BASE_URL", "").strip()
    return env_value or DEFAULT_PUBLIC_BASE_URL


# [함수 설명]
# - 목적: 배치 변환 워커 수를 결정한다.
# - 입력: EDGEPORT_MAX_WORKERS 환경 변수, 요청 옵션 값
# - 출력: 1 이상 MAX_WORKERS_LIMIT 이하의 정수
# - 에러 처리: 숫자가 아닌 환경 값은 기본값으로 대체한다.
# - 결정론: 워커 수와 무관하게 결과 순서는 입력 순서를 따른다.
# - 보안: 민감 정보는 다루지 않는다.
def _resolve_max_workers(override: int | None) -> int:
    if override is not None:
        return override
    env_value = os.getenv("EDGEPORT_MAX_WORKERS", "").strip()
    try:
        workers = int(env_value) if env_value else DEFAULT_MAX_WORKERS
    except ValueError:
        logger.warning("invalid EDGEPORT_MAX_WORKERS=%r, using %s", env_value, DEFAULT_MAX_WORKERS)
        workers = DEFAULT_MAX_WORKERS
    return min(max(1, workers), MAX_WORKERS_LIMIT)


# [함수 설명]
# - 목적: /analyze 엔드포인트 요청을 처리한다.
# - 입력: 함수 이름과 원문 소스를 수신한다.
# - 출력: 응답 모델의 주요 필드는 version, function, metadata, blocks, errors이다.
# - 에러 처리: 서비스는 예외 없이 빈 결과로 축소된다.
# - 결정론: 블록은 시작 줄 순서로 반환된다.
# - 보안: 원문 소스는 로그에 요약 정보로만 기록한다.
@router.post("/analyze", response_model=AnalyzeResponse)
def analyze(request: AnalyzeRequest) -> AnalyzeResponse:
    metadata = extract_metadata(request.source)
    blocks = segment_business_logic(request.source)
    return AnalyzeResponse(
        version=API_VERSION,
        function=FunctionObject(name=request.name),
        metadata=_metadata_payload(metadata),
        blocks=[_block_payload(block) for block in blocks],
        errors=[],
    )


# [함수 설명]
# - 목적: /rewrite 엔드포인트 요청을 처리한다.
# - 입력: 원문 소스를 수신한다.
# - 출력: 재작성된 소스와 적용된 규칙 이름 목록을 반환한다.
# - 에러 처리: 일치하지 않는 패턴은 그대로 통과한다.
# - 결정론: 규칙은 항상 정의된 순서대로 적용된다.
# - 보안: 원문 소스는 로그에 요약 정보로만 기록한다.
@router.post("/rewrite", response_model=RewriteResponse)
def rewrite(request: RewriteRequest) -> RewriteResponse:
    text, applied = apply_rewrite_rules(request.source)
    return RewriteResponse(version=API_VERSION, source=text, applied_rules=applied, errors=[])


# [함수 설명]
# - 목적: /convert 엔드포인트 요청을 처리한다.
# - 입력: 함수 이름, 원문 소스, 원본 경로와 옵션을 수신한다.
# - 출력: 라우트/테스트 소스, 의존성, 보존율, 수동 검토 수, 웹훅 안내를 반환한다.
# - 에러 처리: 신뢰도가 낮으면 errors에 LOW_CONFIDENCE를 기록한다.
# - 결정론: 동일 입력에 대해 동일한 생성 결과를 반환한다.
# - 보안: 원문 소스는 로그에 요약 정보로만 기록한다.
@router.post("/convert", response_model=ConvertResponse)
def convert(request: ConvertRequest) -> ConvertResponse:
    options = ConversionOptions(
        public_base_url=_resolve_public_base_url(request.options.public_base_url)
    )
    source = SourceFunction(
        name=request.name,
        raw_text=request.source,
        origin_path=request.origin_path or "",
    )
    result = convert_function(source, options)

    errors: list[str] = []
    if result.preserved_logic_percentage < LOW_CONFIDENCE_THRESHOLD:
        errors.append(f"LOW_CONFIDENCE: {request.name}")

    return ConvertResponse(
        version=API_VERSION,
        function=FunctionObject(name=result.function_name, origin_path=result.origin_path),
        metadata=_metadata_payload(result.metadata),
        blocks=[_block_payload(block) for block in result.blocks],
        route=RoutePayload(
            identifier=result.route_identifier,
            path=result.route_path,
            source=result.route_source,
        ),
        test_source=result.test_source,
        dependencies=list(result.dependencies),
        preserved_logic_percentage=result.preserved_logic_percentage,
        manual_review_count=result.manual_review_count,
        extraction_tier=result.extraction_tier,
        webhook_advisory=_advisory_payload(result.webhook_advisory),
        errors=errors,
    )


# [함수 설명]
# - 목적: /webhooks/advisory 엔드포인트 요청을 처리한다.
# - 입력: 웹훅 종류와 함수 이름을 수신한다.
# - 출력: 공급자별 서명 헤더, 검증 방법, 재설정 런북을 반환한다.
# - 에러 처리: 알 수 없는 종류는 generic 런북으로 대체하고 errors에 기록한다.
# - 결정론: 고정된 공급자 표에서 조회한다.
# - 보안: 비밀 값은 응답에 포함하지 않는다.
@router.post("/webhooks/advisory", response_model=WebhookAdvisoryResponse)
def webhook_advisory(request: WebhookAdvisoryRequest) -> WebhookAdvisoryResponse:
    errors: list[str] = []
    if request.kind is not None and request.kind not in WEBHOOK_PROVIDERS:
        errors.append(f"UNKNOWN_WEBHOOK_KIND: {request.kind}")
    advisory = build_webhook_advisory(
        request.kind,
        request.name,
        base_url=_resolve_public_base_url(request.options.public_base_url),
    )
    return WebhookAdvisoryResponse(
        version=API_VERSION,
        function=FunctionObject(name=request.name),
        advisory=_advisory_payload(advisory),
        errors=errors,
    )


# [함수 설명]
# - 목적: /webhooks/guide 엔드포인트 요청을 처리한다.
# - 입력: 함수 이름과 소스 목록을 수신한다.
# - 출력: 웹훅이 감지된 함수의 안내 목록과 통합 마이그레이션 가이드를 반환한다.
# - 에러 처리: 웹훅이 없으면 일반 안내 가이드를 반환한다.
# - 결정론: 입력 순서대로 안내를 구성한다.
# - 보안: 원문 소스는 로그에 요약 정보로만 기록한다.
@router.post("/webhooks/guide", response_model=WebhookGuideResponse)
def webhook_guide(request: WebhookGuideRequest) -> WebhookGuideResponse:
    base_url = _resolve_public_base_url(request.options.public_base_url)
    advisories: list[WebhookAdvisory] = []
    for item in request.functions:
        metadata = extract_metadata(item.source)
        if metadata.webhook_detected:
            advisories.append(
                build_webhook_advisory(metadata.webhook_kind, item.name, base_url=base_url)
            )
    return WebhookGuideResponse(
        version=API_VERSION,
        advisories=[_advisory_payload(advisory) for advisory in advisories],
        guide=build_webhook_migration_guide(advisories),
        errors=[],
    )


# [함수 설명]
# - 목적: /bundle 엔드포인트 요청을 처리한다.
# - 입력: 경로 → 소스 매핑과 번들 옵션을 수신한다.
# - 출력: 변환 요약, 의존성, 환경 변수 템플릿, 엔트리 모듈, 생성 파일 목록을 반환한다.
# - 에러 처리: 함수가 없으면 NO_FUNCTIONS를 기록하고 핵심 의존성만 반환한다.
# - 결정론: 경로 정렬 순서로 변환하며 워커 수와 무관하게 결과가 같다.
# - 보안: 원문 소스는 로그에 요약 정보로만 기록한다.
@router.post("/bundle", response_model=BundleResponse)
def bundle(request: BundleRequest) -> BundleResponse:
    total = summarize_source("".join(request.files.values()))
    logger.info(
        "bundle: files=%s total_len=%s total_hash=%s",
        len(request.files),
        total["len"],
        total["sha256_8"],
    )
    options = ConversionOptions(
        public_base_url=_resolve_public_base_url(request.options.public_base_url)
    )
    bundle_options = BundleOptions(
        dependency_versions={**DEFAULT_DEPENDENCY_VERSIONS, **request.options.dependency_versions},
        port=request.options.port,
    )
    service_bundle = build_service_bundle(
        request.files,
        options,
        bundle_options,
        max_workers=_resolve_max_workers(request.options.max_workers),
    )

    errors: list[str] = []
    if not request.files:
        errors.append("NO_FUNCTIONS")
    conversions = service_bundle.conversions
    for result in conversions:
        if result.preserved_logic_percentage < LOW_CONFIDENCE_THRESHOLD:
            errors.append(f"LOW_CONFIDENCE: {result.function_name}")

    average = (
        round(sum(result.preserved_logic_percentage for result in conversions) / len(conversions), 2)
        if conversions
        else 0.0
    )

    return BundleResponse(
        version=API_VERSION,
        summary=BundleSummary(
            function_count=len(conversions),
            webhook_count=sum(1 for result in conversions if result.webhook_advisory),
            average_preserved_logic=average,
            total_manual_review=sum(result.manual_review_count for result in conversions),
        ),
        conversions=[
            BundleConversion(
                name=result.function_name,
                origin_path=result.origin_path,
                route_path=result.route_path,
                preserved_logic_percentage=result.preserved_logic_percentage,
                manual_review_count=result.manual_review_count,
                extraction_tier=result.extraction_tier,
                webhook_kind=result.webhook_advisory.kind if result.webhook_advisory else None,
            )
            for result in conversions
        ],
        dependencies=service_bundle.dependencies,
        env_vars=list(service_bundle.env_vars),
        env_template=service_bundle.env_template,
        entry_module=service_bundle.entry_module,
        package_manifest=service_bundle.package_manifest,
        webhook_guide=service_bundle.webhook_guide,
        files=[
            GeneratedFilePayload(path=item.path, content=item.content)
            for item in service_bundle.files
        ],
        errors=sorted(set(errors)),
    )


def _metadata_payload(metadata: FunctionMetadata) -> MetadataPayload:
    return MetadataPayload(
        env_vars=list(metadata.env_vars),
        http_methods=list(metadata.http_methods),
        requires_auth=metadata.requires_auth,
        uses_services=list(metadata.uses_services),
        webhook_detected=metadata.webhook_detected,
        webhook_kind=metadata.webhook_kind,
    )


def _block_payload(block: BusinessLogicBlock) -> BlockPayload:
    return BlockPayload(
        kind=block.kind,
        text=block.text,
        start_line=block.start_line,
        end_line=block.end_line,
    )


def _advisory_payload(advisory: WebhookAdvisory | None) -> AdvisoryPayload | None:
    if advisory is None:
        return None
    return AdvisoryPayload(
        kind=advisory.kind,
        provider_label=advisory.provider_label,
        signature_header=advisory.signature_header,
        verification_method=advisory.verification_method,
        runbook=advisory.runbook,
    )

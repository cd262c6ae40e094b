# [파일 설명]
# - 목적: 재작성된 엣지 함수 텍스트로부터 Express 라우트 모듈을 생성한다.
# - 제공 기능: 3단계 비즈니스 로직 추출, 보존율/수동 검토 수 계산, 메서드별 핸들러 생성.
# - 입력/출력: 메타데이터, 블록 목록, 재작성 텍스트를 받아 RouteGeneration을 반환한다.
# - 주의 사항: 입출력 부작용이 없으며 생성 코드의 문법 검증은 하지 않는다.
# - 연관 모듈: edgeport.services.edge_converter에서 호출된다.
from __future__ import annotations

import logging
import re
import textwrap
from collections.abc import Sequence
from dataclasses import dataclass

from edgeport.services.edge_models import (
    BusinessLogicBlock,
    FunctionMetadata,
    handler_methods,
    route_identifier,
)
from edgeport.services.edge_rewriter import HANDLER_MARKER, PREFLIGHT_MARKER
from edgeport.services.safe_source import summarize_source

logger = logging.getLogger(__name__)

MAX_PERCENTAGE = 100
FALLBACK_PERCENTAGE = 80
TODO_PENALTY = 5
TODO_FLOOR = 50
PLACEHOLDER_PERCENTAGE = 30
MIN_LOGIC_LENGTH = 50

TIER_TRY_SCOPE = "try_scope"
TIER_AFTER_PREFLIGHT = "after_preflight"
TIER_FALLBACK = "fallback"
TIER_PLACEHOLDER = "placeholder"

BODY_INDENT = "    "

TRY_SCOPE_PATTERN = re.compile(r"\btry\s*\{(?P<body>.*?)\}\s*catch\b", re.DOTALL)
AFTER_PREFLIGHT_PATTERN = re.compile(re.escape(PREFLIGHT_MARKER) + r"(?P<body>.*)\Z", re.DOTALL)
IMPORT_LINE_PATTERN = re.compile(r"^[ \t]*import\b[^;]*;?[ \t]*\n?", re.MULTILINE)
OBJECT_CONSTANT_PATTERN = re.compile(
    r"^[ \t]*(?:export\s+)?const\s+\w+\s*=\s*\{[^{}]*\}\s*;?[ \t]*\n?", re.MULTILINE
)
TOP_LEVEL_CONSTANT_PATTERN = re.compile(r"^(?:export\s+)?const\s+[^\n]*;[ \t]*(?:\n|\Z)", re.MULTILINE)
TODO_PATTERN = re.compile(r"\bTODO\b")


@dataclass(frozen=True)
class ExtractedLogic:
    body: str
    tier: str
    preserved_logic_percentage: int
    manual_review_count: int


@dataclass(frozen=True)
class RouteGeneration:
    source: str
    preserved_logic_percentage: int
    manual_review_count: int
    extraction_tier: str


# [함수 설명]
# - 목적: 재작성 텍스트에서 비즈니스 로직 본문을 3단계 정책으로 추출한다.
# - 입력: rewritten: str
# - 출력: 본문, 단계, 보존율, 수동 검토 수를 담은 ExtractedLogic
# - 에러 처리: 구조가 없으면 다음 단계로 내려가며 예외를 던지지 않는다.
# - 결정론: 동일 입력에 대해 항상 동일한 단계와 점수를 반환한다.
# - 보안: 원문은 로그에 남기지 않는다.
def extract_logic(rewritten: str) -> ExtractedLogic:
    manual_review_count = 0
    percentage = MAX_PERCENTAGE

    match = TRY_SCOPE_PATTERN.search(rewritten)
    if match:
        body, tier = match.group("body"), TIER_TRY_SCOPE
    else:
        match = AFTER_PREFLIGHT_PATTERN.search(rewritten)
        if match:
            body, tier = match.group("body"), TIER_AFTER_PREFLIGHT
        else:
            body, tier = _strip_module_scaffolding(rewritten), TIER_FALLBACK
            manual_review_count += 1
            percentage = FALLBACK_PERCENTAGE

    body = _normalize_body(body)

    todo_count = len(TODO_PATTERN.findall(body))
    if todo_count:
        manual_review_count += todo_count
        percentage = max(TODO_FLOOR, percentage - todo_count * TODO_PENALTY)

    if not body.strip() or _indented_length(body) <= MIN_LOGIC_LENGTH:
        return ExtractedLogic(
            body="",
            tier=TIER_PLACEHOLDER,
            preserved_logic_percentage=PLACEHOLDER_PERCENTAGE,
            manual_review_count=1,
        )

    return ExtractedLogic(
        body=body,
        tier=tier,
        preserved_logic_percentage=percentage,
        manual_review_count=manual_review_count,
    )


# [함수 설명]
# - 목적: 추출된 로직을 감싼 Express 라우트 모듈 텍스트를 생성한다.
# - 입력: name, metadata, blocks, rewritten, origin_path
# - 출력: 모듈 텍스트와 신뢰도 지표를 담은 RouteGeneration
# - 에러 처리: 예외 없이 플레이스홀더 핸들러로 대체한다.
# - 결정론: 메서드 순서와 임포트 순서를 메타데이터 순서로 고정한다.
# - 보안: 원문 소스는 요약 정보로만 로그에 기록한다.
def generate_route(
    name: str,
    metadata: FunctionMetadata,
    blocks: Sequence[BusinessLogicBlock],
    rewritten: str,
    origin_path: str = "",
) -> RouteGeneration:
    summary = summarize_source(rewritten)
    logger.info(
        "generate_route: name=%s source_len=%s source_hash=%s",
        name,
        summary["len"],
        summary["sha256_8"],
    )

    identifier = route_identifier(name)
    extracted = extract_logic(rewritten)
    if extracted.tier == TIER_PLACEHOLDER:
        body = _placeholder_body(name, metadata, origin_path)
    else:
        body = _indent(extracted.body)

    sections = [
        _imports(metadata),
        f"export const {identifier}Router = Router();",
        *_client_setup(metadata),
    ]
    block_summary = _block_summary(name, blocks)
    if block_summary:
        sections.append(block_summary)
    for method in handler_methods(metadata):
        sections.append(_handler(name, identifier, method, metadata, body))

    source = "\n\n".join(sections) + "\n"
    return RouteGeneration(
        source=source,
        preserved_logic_percentage=extracted.preserved_logic_percentage,
        manual_review_count=extracted.manual_review_count,
        extraction_tier=extracted.tier,
    )


def default_origin_path(name: str) -> str:
    return f"supabase/functions/{name}/index.ts"


def _strip_module_scaffolding(rewritten: str) -> str:
    text = IMPORT_LINE_PATTERN.sub("", rewritten)
    text = OBJECT_CONSTANT_PATTERN.sub("", text)
    text = TOP_LEVEL_CONSTANT_PATTERN.sub("", text)
    return text.replace(HANDLER_MARKER, "")


def _normalize_body(body: str) -> str:
    lines = body.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return textwrap.dedent("\n".join(lines))


def _indent(body: str) -> str:
    return textwrap.indent(body, BODY_INDENT)


# Length of the body with every line, blank ones included, carrying BODY_INDENT.
def _indented_length(body: str) -> int:
    return len(body) + len(BODY_INDENT) * (body.count("\n") + 1)


def _imports(metadata: FunctionMetadata) -> str:
    lines = ["import { Router, Request, Response } from 'express';"]
    if metadata.uses("database"):
        lines.append("import { createClient } from '@supabase/supabase-js';")
    if metadata.uses("payment"):
        lines.append("import Stripe from 'stripe';")
    if metadata.uses("email"):
        lines.append("import { Resend } from 'resend';")
    return "\n".join(lines)


def _client_setup(metadata: FunctionMetadata) -> list[str]:
    sections: list[str] = []
    if metadata.uses("database"):
        sections.append(
            "\n".join(
                [
                    "const supabaseUrl = process.env.SUPABASE_URL!;",
                    "const supabaseKey = process.env.SUPABASE_SERVICE_ROLE_KEY || process.env.SUPABASE_ANON_KEY!;",
                    "",
                    "function getSupabaseClient(authHeader?: string) {",
                    "  const options = authHeader ? { global: { headers: { Authorization: authHeader } } } : {};",
                    "  return createClient(supabaseUrl, supabaseKey, options);",
                    "}",
                ]
            )
        )
    if metadata.uses("payment"):
        sections.append(
            "const stripe = new Stripe(process.env.STRIPE_SECRET_KEY!, { apiVersion: '2023-10-16' });"
        )
    if metadata.uses("email"):
        sections.append("const resend = new Resend(process.env.RESEND_API_KEY);")
    return sections


def _block_summary(name: str, blocks: Sequence[BusinessLogicBlock]) -> str:
    if not blocks:
        return ""
    lines = [f"// Business logic detected in {name}:"]
    for block in blocks:
        lines.append(f"//   {block.kind}: lines {block.start_line + 1}-{block.end_line + 1}")
    return "\n".join(lines)


def _placeholder_body(name: str, metadata: FunctionMetadata, origin_path: str) -> str:
    env_vars = ", ".join(metadata.env_vars) or "none"
    return "\n".join(
        [
            "    const body = req.body;",
            "",
            "    // TODO: migrate business logic from the original edge function",
            f"    // Source: {origin_path or default_origin_path(name)}",
            f"    // Environment variables: {env_vars}",
            f"    // Requires auth: {str(metadata.requires_auth).lower()}",
            "    return res.json({",
            "      success: true,",
            f"      message: 'Route {name} - logic pending migration',",
            "      body,",
            "    });",
        ]
    )


def _auth_guard(metadata: FunctionMetadata) -> list[str]:
    lines: list[str] = []
    if metadata.requires_auth:
        lines.extend(
            [
                "    const authHeader = req.headers.authorization;",
                "    if (!authHeader?.startsWith('Bearer ')) {",
                "      return res.status(401).json({ error: 'Authorization required' });",
                "    }",
                "",
            ]
        )
        if metadata.uses("database"):
            lines.extend(
                [
                    "    const supabase = getSupabaseClient(authHeader);",
                    "    const { data: { user }, error: userError } = await supabase.auth.getUser();",
                    "    if (userError || !user) {",
                    "      return res.status(401).json({ error: 'Invalid token' });",
                    "    }",
                    "",
                ]
            )
    elif metadata.uses("database"):
        lines.extend(["    const supabase = getSupabaseClient();", ""])
    return lines


def _handler(
    name: str,
    identifier: str,
    method: str,
    metadata: FunctionMetadata,
    body: str,
) -> str:
    lines = [
        f"{identifier}Router.{method.lower()}('/', async (req: Request, res: Response) => {{",
        "  try {",
        *_auth_guard(metadata),
        f"    // Business logic migrated from {name}",
        body,
        "  } catch (error) {",
        f"    console.error('[{identifier}] Error:', error);",
        f"    return res.status(500).json({{ error: 'Internal server error', route: '{name}' }});",
        "  }",
        "});",
    ]
    return "\n".join(lines)

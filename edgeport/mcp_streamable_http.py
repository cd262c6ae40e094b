# [파일 설명]
# - 목적: Streamable HTTP MCP(JSON-RPC) 엔드포인트를 제공한다.
# - 제공 기능: initialize/tools/list/tools/call/ping 처리와 프로토콜 버전 검증을 수행한다.
# - 입력/출력: JSON-RPC 요청을 받아 표준 응답 또는 202/405를 반환한다.
# - 주의 사항: 알림 메시지는 202로 응답하며, 도구 실행 실패는 isError로 표시한다.
# - 연관 모듈: edgeport.api.migrate 엔드포인트 함수를 재사용한다.
from __future__ import annotations

import logging
import os
from typing import Any

from fastapi import APIRouter, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from edgeport.api.migrate import AnalyzeRequest, ConvertRequest, analyze, convert

logger = logging.getLogger(__name__)

router = APIRouter()

DEFAULT_SUPPORTED_PROTOCOL_VERSIONS = ("2025-03-26", "2025-11-25")
DEFAULT_PROTOCOL_VERSION = "2025-03-26"

SOURCE_INPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {
            "type": "string",
            "description": "Edge function name (directory name under supabase/functions).",
        },
        "source": {
            "type": "string",
            "description": "Edge function source text.",
        },
    },
    "required": ["name", "source"],
}

TOOLS = (
    {
        "name": "edge.analyze",
        "description": (
            "Extract environment variables, HTTP methods, auth, services, webhook kind, "
            "and classified business-logic blocks from an edge function."
        ),
        "inputSchema": SOURCE_INPUT_SCHEMA,
        "outputSchema": {
            "type": "object",
            "properties": {
                "version": {"type": "string"},
                "function": {"type": "object"},
                "metadata": {"type": "object"},
                "blocks": {"type": "array", "items": {"type": "object"}},
                "errors": {"type": "array", "items": {"type": "string"}},
            },
        },
    },
    {
        "name": "edge.convert",
        "description": (
            "Convert an edge function into an Express route module with a test scaffold, "
            "dependency list, preserved-logic estimate, and webhook advisory."
        ),
        "inputSchema": {
            **SOURCE_INPUT_SCHEMA,
            "properties": {
                **SOURCE_INPUT_SCHEMA["properties"],
                "origin_path": {
                    "type": "string",
                    "description": "Original file path used in review comments.",
                },
            },
        },
        "outputSchema": {
            "type": "object",
            "properties": {
                "version": {"type": "string"},
                "route": {"type": "object"},
                "test_source": {"type": "string"},
                "dependencies": {"type": "array", "items": {"type": "string"}},
                "preserved_logic_percentage": {"type": "integer"},
                "manual_review_count": {"type": "integer"},
                "extraction_tier": {"type": "string"},
                "webhook_advisory": {"type": ["object", "null"]},
                "errors": {"type": "array", "items": {"type": "string"}},
            },
        },
    },
)


def _load_supported_protocol_versions() -> set[str]:
    env_value = os.getenv("MCP_SUPPORTED_PROTOCOL_VERSIONS", "").strip()
    if not env_value:
        return set(DEFAULT_SUPPORTED_PROTOCOL_VERSIONS)
    return {item.strip() for item in env_value.split(",") if item.strip()}


# [함수 설명]
# - 목적: MCP-Protocol-Version 헤더를 검증한다.
# - 입력: FastAPI headers
# - 출력: 협상된 프로토콜 버전 문자열
# - 에러 처리: 지원하지 않는 버전은 400으로 응답한다.
# - 결정론: 동일 입력에 대해 동일한 결과를 반환한다.
# - 보안: 프로토콜 버전 미스매치를 조기에 차단한다.
def _resolve_protocol_version(headers: Any) -> str:
    header_value = headers.get("MCP-Protocol-Version")
    if header_value:
        if header_value not in _load_supported_protocol_versions():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Unsupported MCP-Protocol-Version",
            )
        return header_value
    return DEFAULT_PROTOCOL_VERSION


def _jsonrpc_response(
    request_id: Any, *, result: Any | None = None, error: Any | None = None
) -> JSONResponse:
    payload: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id}
    if error is not None:
        payload["error"] = error
    else:
        payload["result"] = result
    return JSONResponse(status_code=status.HTTP_200_OK, content=payload)


def _handle_initialize(_: dict[str, Any]) -> dict[str, Any]:
    return {
        "protocolVersion": "2025-11-25",
        "capabilities": {"tools": {"listChanged": False}},
        "serverInfo": {
            "name": "edgeport-mcp-server",
            "version": "0.1.0",
            "description": "Edge function to Express route migration MCP server",
        },
        "instructions": "Call tools/list then tools/call with an edge function name and source.",
    }


def _handle_tools_list() -> dict[str, Any]:
    return {"tools": [dict(tool) for tool in TOOLS]}


def _build_tool_result(
    summary: str,
    structured_content: dict[str, Any] | None,
    *,
    is_error: bool = False,
) -> dict[str, Any]:
    return {
        "content": [{"type": "text", "text": summary}],
        "structuredContent": structured_content or {},
        "isError": is_error,
    }


def _summarize_analysis(payload: dict[str, Any]) -> str:
    metadata = payload.get("metadata", {})
    return (
        "Analysis complete. "
        f"env_vars={len(metadata.get('env_vars', []))}, "
        f"methods={len(metadata.get('http_methods', []))}, "
        f"blocks={len(payload.get('blocks', []))}, "
        f"errors={len(payload.get('errors', []))}."
    )


def _summarize_conversion(payload: dict[str, Any]) -> str:
    return (
        "Conversion complete. "
        f"route={payload.get('route', {}).get('path')}, "
        f"preserved={payload.get('preserved_logic_percentage')}%, "
        f"manual_review={payload.get('manual_review_count')}, "
        f"errors={len(payload.get('errors', []))}."
    )


# [함수 설명]
# - 목적: tools/call 요청을 처리한다.
# - 입력: params 딕셔너리
# - 출력: CallToolResult 딕셔너리
# - 에러 처리: 입력 검증 실패는 isError로 반환한다.
# - 결정론: 동일 입력에 대해 동일 결과를 반환한다.
# - 보안: 요약 텍스트에는 소스 원문을 포함하지 않는다.
def _handle_tools_call(params: dict[str, Any]) -> dict[str, Any]:
    name = params.get("name")
    arguments = params.get("arguments")
    if not name:
        return _build_tool_result("Tool name is required.", None, is_error=True)
    if name not in {tool["name"] for tool in TOOLS}:
        return _build_tool_result(f"Unknown tool: {name}.", None, is_error=True)
    if not isinstance(arguments, dict):
        return _build_tool_result("Tool arguments must be an object.", None, is_error=True)

    try:
        if name == "edge.analyze":
            payload = analyze(AnalyzeRequest(**arguments)).model_dump()
            return _build_tool_result(_summarize_analysis(payload), payload)
        payload = convert(ConvertRequest(**arguments)).model_dump()
        return _build_tool_result(_summarize_conversion(payload), payload)
    except ValidationError as exc:
        logger.info("tools/call: invalid arguments tool=%s errors=%s", name, exc.error_count())
        return _build_tool_result(
            f"Invalid arguments: {exc.error_count()} validation error(s).", None, is_error=True
        )


# [함수 설명]
# - 목적: Streamable HTTP MCP POST 요청을 처리한다.
# - 입력: JSON-RPC 메시지 객체
# - 출력: JSON-RPC 응답 또는 202 상태
# - 에러 처리: 잘못된 요청은 400으로 응답한다.
# - 결정론: 동일 입력에 대해 동일 응답을 반환한다.
# - 보안: 프로토콜 버전 검증을 수행한다.
@router.post("/mcp")
async def mcp_post(request: Request) -> Response:
    _resolve_protocol_version(request.headers)

    try:
        payload = await request.json()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON payload",
        ) from exc

    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid JSON-RPC payload",
        )

    method = payload.get("method")
    if method == "notifications/initialized":
        return Response(status_code=status.HTTP_202_ACCEPTED)

    request_id = payload.get("id")
    if method is None or request_id is None:
        return Response(status_code=status.HTTP_202_ACCEPTED)

    params = payload.get("params") or {}
    if not isinstance(params, dict):
        return _jsonrpc_response(
            request_id,
            error={"code": -32602, "message": "Invalid params"},
        )

    if method == "initialize":
        return _jsonrpc_response(request_id, result=_handle_initialize(params))
    if method == "tools/list":
        return _jsonrpc_response(request_id, result=_handle_tools_list())
    if method == "tools/call":
        return _jsonrpc_response(request_id, result=_handle_tools_call(params))
    if method == "ping":
        return _jsonrpc_response(request_id, result={})

    return _jsonrpc_response(
        request_id,
        error={"code": -32601, "message": f"Method not found: {method}"},
    )


@router.get("/mcp")
def mcp_get() -> Response:
    return Response(status_code=status.HTTP_405_METHOD_NOT_ALLOWED)

# [파일 설명]
# - 목적: 변환 REST 엔드포인트의 응답 구조와 에러 코드를 검증한다.
# - 제공 기능: analyze/rewrite/convert/webhooks/bundle 호출 시나리오를 테스트한다.
# - 입력/출력: 고정 엣지 함수 샘플을 사용한다.
# - 주의 사항: 샘플의 비밀 값은 가짜 값만 사용한다.
# - 연관 모듈: edgeport.main 및 edgeport.api.migrate와 연동된다.
import logging

from fastapi.testclient import TestClient

from edgeport.api.migrate import LOW_CONFIDENCE_THRESHOLD
from edgeport.main import app


def test_analyze_returns_metadata_and_blocks(todos_source: str) -> None:
    client = TestClient(app)

    response = client.post("/mcp/analyze", json={"name": "create-todo", "source": todos_source})

    assert response.status_code == 200
    body = response.json()
    assert body["version"] == "1.2.0"
    assert body["function"]["name"] == "create-todo"
    assert body["metadata"]["env_vars"] == ["SUPABASE_URL", "SUPABASE_ANON_KEY"]
    assert body["metadata"]["requires_auth"] is True
    assert [block["kind"] for block in body["blocks"]] == ["auth", "database", "response"]
    assert body["errors"] == []


def test_rewrite_returns_applied_rules(proxy_source: str) -> None:
    client = TestClient(app)

    response = client.post("/mcp/rewrite", json={"source": proxy_source})

    assert response.status_code == 200
    body = response.json()
    assert "new Response(" not in body["source"]
    assert "preflight_branch_to_marker" in body["applied_rules"]


def test_convert_minimal_function_reports_low_confidence(minimal_source: str) -> None:
    client = TestClient(app)

    response = client.post("/mcp/convert", json={"name": "ping", "source": minimal_source})

    assert response.status_code == 200
    body = response.json()
    assert body["metadata"]["env_vars"] == ["API_KEY"]
    assert body["metadata"]["http_methods"] == ["POST"]
    assert body["metadata"]["requires_auth"] is False
    assert body["preserved_logic_percentage"] == 30
    assert body["manual_review_count"] == 1
    assert body["extraction_tier"] == "placeholder"
    assert body["errors"] == ["LOW_CONFIDENCE: ping"]


def test_convert_webhook_uses_request_base_url(stripe_webhook_source: str) -> None:
    client = TestClient(app)

    response = client.post(
        "/mcp/convert",
        json={
            "name": "stripe-webhook",
            "source": stripe_webhook_source,
            "options": {"public_base_url": "https://api.acme.dev"},
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["route"]["path"] == "/api/stripe-webhook"
    assert body["webhook_advisory"]["kind"] == "stripe"
    assert body["webhook_advisory"]["signature_header"] == "stripe-signature"
    assert "https://api.acme.dev/api/stripe-webhook" in body["webhook_advisory"]["runbook"]
    assert body["errors"] == []


def test_convert_base_url_from_environment(monkeypatch, stripe_webhook_source: str) -> None:
    monkeypatch.setenv("EDGEPORT_PUBLIC_BASE_URL", "https://env.acme.dev")
    client = TestClient(app)

    response = client.post(
        "/mcp/convert", json={"name": "stripe-webhook", "source": stripe_webhook_source}
    )

    assert "https://env.acme.dev/api/stripe-webhook" in response.json()["webhook_advisory"]["runbook"]


def test_convert_rejects_empty_name() -> None:
    client = TestClient(app)

    response = client.post("/mcp/convert", json={"name": "", "source": "serve()"})

    assert response.status_code == 422


def test_webhook_advisory_unknown_kind() -> None:
    client = TestClient(app)

    response = client.post("/mcp/webhooks/advisory", json={"name": "hook", "kind": "paypal"})

    assert response.status_code == 200
    body = response.json()
    assert body["advisory"]["kind"] == "generic"
    assert body["errors"] == ["UNKNOWN_WEBHOOK_KIND: paypal"]


def test_webhook_guide_collects_detected_functions(
    proxy_source: str, stripe_webhook_source: str
) -> None:
    client = TestClient(app)

    response = client.post(
        "/mcp/webhooks/guide",
        json={
            "functions": [
                {"name": "proxy", "source": proxy_source},
                {"name": "stripe-webhook", "source": stripe_webhook_source},
            ]
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert [advisory["kind"] for advisory in body["advisories"]] == ["stripe"]
    assert "## Detected webhooks: 1" in body["guide"]


def test_bundle_without_functions() -> None:
    client = TestClient(app)

    response = client.post("/mcp/bundle", json={"files": {}})

    assert response.status_code == 200
    body = response.json()
    assert body["errors"] == ["NO_FUNCTIONS"]
    assert list(body["dependencies"]) == ["express", "cors", "helmet", "dotenv"]
    assert body["summary"]["function_count"] == 0


def test_bundle_summarizes_conversions(function_files: dict[str, str], minimal_source: str) -> None:
    client = TestClient(app)
    files = {**function_files, "supabase/functions/ping/index.ts": minimal_source}

    response = client.post(
        "/mcp/bundle",
        json={"files": files, "options": {"max_workers": 2, "port": 8080}},
    )

    assert response.status_code == 200
    body = response.json()
    assert [item["name"] for item in body["conversions"]] == [
        "create-todo",
        "ping",
        "proxy",
        "stripe-webhook",
    ]
    assert body["summary"]["function_count"] == 4
    assert body["summary"]["webhook_count"] == 1
    assert body["errors"] == ["LOW_CONFIDENCE: ping"]
    assert "PORT=8080" in body["env_template"]
    assert body["dependencies"]["stripe"] == "^14.10.0"
    assert {item["path"] for item in body["files"]} >= {"src/index.ts", "package.json", ".env.example"}


def test_bundle_rejects_invalid_worker_count() -> None:
    client = TestClient(app)

    response = client.post("/mcp/bundle", json={"files": {}, "options": {"max_workers": 0}})

    assert response.status_code == 422


def test_convert_analyzes_source_once(caplog, todos_source: str) -> None:
    client = TestClient(app)

    with caplog.at_level(logging.INFO):
        response = client.post("/mcp/convert", json={"name": "create-todo", "source": todos_source})

    assert response.status_code == 200
    messages = [record.getMessage() for record in caplog.records]
    assert sum(message.startswith("extract_metadata:") for message in messages) == 1
    assert sum(message.startswith("segment_business_logic:") for message in messages) == 1
    assert [block["kind"] for block in response.json()["blocks"]] == ["auth", "database", "response"]


def test_convert_at_confidence_threshold_is_not_flagged() -> None:
    todos = [f"  // TODO: review step {index}" for index in range(12)]
    source = "\n".join(
        ["try {", *todos, "  return new Response(JSON.stringify({ ok: true }));", "} catch (e) {}"]
    )
    client = TestClient(app)

    response = client.post("/mcp/convert", json={"name": "steps", "source": source})

    body = response.json()
    assert body["preserved_logic_percentage"] == LOW_CONFIDENCE_THRESHOLD
    assert body["errors"] == []

import pytest

from edgeport.services.edge_rewriter import (
    HANDLER_MARKER,
    PREFLIGHT_MARKER,
    REWRITE_RULES,
    apply_rewrite_rules,
    rewrite_source,
    rules_in_group,
)


def test_rewrite_removes_platform_imports_and_specifiers(todos_source: str) -> None:
    rewritten = rewrite_source(todos_source)

    assert "deno.land" not in rewritten
    assert "_shared/cors" not in rewritten
    assert "from '@supabase/supabase-js'" in rewritten
    assert "esm.sh" not in rewritten


def test_rewrite_runtime_calls(todos_source: str) -> None:
    rewritten = rewrite_source(todos_source)

    assert "Deno.env" not in rewritten
    assert "process.env.SUPABASE_URL" in rewritten
    assert "req.body" in rewritten
    assert "await req.json()" not in rewritten
    assert "req.headers['authorization']" in rewritten
    assert rewritten.startswith("import { createClient }")
    assert HANDLER_MARKER in rewritten
    assert "serve(" not in rewritten


def test_rewrite_responses_and_preflight(todos_source: str) -> None:
    rewritten = rewrite_source(todos_source)

    assert "new Response(" not in rewritten
    assert "return res.status(400).json({ error: error.message })" in rewritten
    assert "return res.json(data)" in rewritten
    assert 'return res.status(500).send("Internal error")' in rewritten
    assert PREFLIGHT_MARKER in rewritten
    assert "OPTIONS" not in rewritten


def test_rewrite_drops_unreferenced_header_constant(todos_source: str) -> None:
    rewritten = rewrite_source(todos_source)

    assert "jsonHeaders" not in rewritten


def test_rewrite_keeps_referenced_header_constant() -> None:
    source = (
        "const sharedHeaders = { 'X-Trace': '1' };\n"
        "forward(sharedHeaders);\n"
    )

    assert rewrite_source(source) == source


def test_rewrite_npm_specifier() -> None:
    source = "import { Resend } from 'npm:resend@3.2.0';\n"

    assert rewrite_source(source) == "import { Resend } from 'resend';\n"


def test_rewrite_reports_applied_rules(stripe_webhook_source: str) -> None:
    _, applied = apply_rewrite_rules(stripe_webhook_source)

    assert "drop_deno_serve_import" in applied
    assert "esm_specifier_to_package" in applied
    assert "json_response_with_status" in applied
    assert "text_response_with_status" in applied
    assert "drop_shared_cors_import" not in applied
    order = [rule.name for rule in REWRITE_RULES]
    assert applied == sorted(applied, key=order.index)


def test_rewrite_unmatched_text_passes_through() -> None:
    source = "export function add(a, b) {\n  return a + b;\n}\n"

    assert rewrite_source(source) == source
    assert apply_rewrite_rules(source)[1] == []


@pytest.mark.parametrize("group", sorted({rule.group for rule in REWRITE_RULES}))
def test_rewrite_group_is_idempotent(
    group: int, todos_source: str, proxy_source: str, stripe_webhook_source: str
) -> None:
    rules = rules_in_group(group)
    assert rules
    for source in (todos_source, proxy_source, stripe_webhook_source):
        once = rewrite_source(source, rules)
        assert rewrite_source(once, rules) == once


def test_rewrite_full_rule_list_is_idempotent(
    todos_source: str, proxy_source: str, stripe_webhook_source: str
) -> None:
    for source in (todos_source, proxy_source, stripe_webhook_source):
        once = rewrite_source(source)
        assert rewrite_source(once) == once


def test_rewrite_unwraps_deno_serve_entrypoint() -> None:
    source = "Deno.serve(async (req) => {\n  const body = await req.json();\n  return new Response(JSON.stringify(body));\n});\n"

    rewritten, applied = apply_rewrite_rules(source)

    assert rewritten.startswith(HANDLER_MARKER)
    assert "Deno." not in rewritten
    assert "unwrap_serve_handler" in applied
    assert rewrite_source(rewritten) == rewritten

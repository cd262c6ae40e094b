from edgeport.services.edge_metadata import (
    SERVICE_DEPENDENCIES,
    SERVICE_PATTERNS,
    extract_metadata,
    service_dependencies,
)
from edgeport.services.edge_models import SERVICE_KINDS


def test_metadata_minimal_function_defaults(minimal_source: str) -> None:
    metadata = extract_metadata(minimal_source)

    assert metadata.env_vars == ("API_KEY",)
    assert metadata.http_methods == ("POST",)
    assert metadata.requires_auth is False
    assert metadata.uses_services == ()
    assert metadata.webhook_detected is False
    assert metadata.webhook_kind is None


def test_metadata_env_vars_are_deduplicated_in_order() -> None:
    source = (
        "const a = Deno.env.get('B_KEY');\n"
        'const b = Deno.env.get("A_KEY");\n'
        "const c = Deno.env.get('B_KEY');\n"
    )

    assert extract_metadata(source).env_vars == ("B_KEY", "A_KEY")


def test_metadata_methods_follow_canonical_order_and_skip_options() -> None:
    source = (
        'if (req.method === "OPTIONS") {}\n'
        'if (req.method == "DELETE") {}\n'
        "if (req.method === 'GET') {}\n"
    )

    assert extract_metadata(source).http_methods == ("GET", "DELETE")


def test_metadata_methods_never_empty() -> None:
    for source in ("", "   ", "serve(async () => {})", 'req.method === "OPTIONS"'):
        assert extract_metadata(source).http_methods


def test_metadata_auth_and_services(todos_source: str) -> None:
    metadata = extract_metadata(todos_source)

    assert metadata.requires_auth is True
    assert metadata.uses_services == ("database",)
    assert metadata.env_vars == ("SUPABASE_URL", "SUPABASE_ANON_KEY")
    assert service_dependencies(metadata) == ["@supabase/supabase-js"]


def test_metadata_services_use_canonical_order() -> None:
    source = "import { Resend } from 'resend';\nimport Stripe from 'stripe';\ncreateClient(url, key);"

    metadata = extract_metadata(source)

    assert metadata.uses_services == ("database", "payment", "email")
    assert service_dependencies(metadata) == ["@supabase/supabase-js", "stripe", "resend"]


def test_metadata_detects_stripe_webhook(stripe_webhook_source: str) -> None:
    metadata = extract_metadata(stripe_webhook_source)

    assert metadata.webhook_detected is True
    assert metadata.webhook_kind == "stripe"
    assert metadata.uses_services == ("payment",)


def test_metadata_webhook_kind_priority() -> None:
    github = extract_metadata("const sig = req.headers.get('X-Hub-Signature-256');")
    twilio = extract_metadata("const sig = req.headers.get('x-twilio-signature');")
    generic = extract_metadata("// incoming webhook from partner")

    assert github.webhook_kind == "github"
    assert twilio.webhook_kind == "twilio"
    assert generic.webhook_kind == "generic"


def test_service_tables_cover_every_service_kind() -> None:
    assert set(SERVICE_PATTERNS) == set(SERVICE_KINDS)
    assert set(SERVICE_DEPENDENCIES) == set(SERVICE_KINDS)
    everything = extract_metadata("resend stripe supabase")
    assert everything.uses_services == SERVICE_KINDS

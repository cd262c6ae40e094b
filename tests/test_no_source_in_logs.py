import logging

from fastapi.testclient import TestClient

from edgeport.main import app
from edgeport.services.safe_source import count_lines, summarize_source

SENTINEL = "SOURCE_SENTINEL__SECRET_TOKEN"

SENTINEL_SOURCE = f"""serve(async (req) => {{
  try {{
    const token = "{SENTINEL}";
    const response = await fetch("https://api.example.com/items", {{ headers: {{ Authorization: token }} }});
    return new Response(JSON.stringify(await response.json()));
  }} catch (err) {{
    return new Response("error", {{ status: 500 }});
  }}
}});
"""


def test_summarize_source_is_length_and_hash() -> None:
    summary = summarize_source(SENTINEL_SOURCE)

    assert summary["len"] == len(SENTINEL_SOURCE)
    assert len(summary["sha256_8"]) == 8
    assert SENTINEL not in str(summary)
    assert count_lines("") == 0
    assert count_lines("a\nb") == 2


def test_no_source_in_logs(caplog) -> None:
    client = TestClient(app)

    with caplog.at_level(logging.DEBUG):
        client.post("/mcp/analyze", json={"name": "items", "source": SENTINEL_SOURCE})
        client.post("/mcp/convert", json={"name": "items", "source": SENTINEL_SOURCE})
        client.post(
            "/mcp/bundle",
            json={"files": {"supabase/functions/items/index.ts": SENTINEL_SOURCE}},
        )

    assert caplog.records
    assert SENTINEL not in caplog.text
    assert "source_hash=" in caplog.text

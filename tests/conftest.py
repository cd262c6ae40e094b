# [파일 설명]
# - 목적: API 및 서비스의 기대 동작을 자동으로 검증한다.
# - 제공 기능: 루트 경로 등록과 공용 엣지 함수 샘플 픽스처를 제공한다.
# - 입력/출력: 고정 입력을 사용하며 테스트 통과 여부로 결과를 확인한다.
# - 주의 사항: 샘플 소스의 비밀 값은 가짜 값만 사용한다.
# - 연관 모듈: edgeport.main/edgeport.api.migrate 및 서비스 레이어와 연동된다.
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))


TODOS_SOURCE = """import { serve } from "https://deno.land/std@0.168.0/http/server.ts";
import { createClient } from "https://esm.sh/@supabase/supabase-js@2";
import { corsHeaders } from "../_shared/cors.ts";

const jsonHeaders = { "Content-Type": "application/json" };

serve(async (req) => {
  if (req.method === "OPTIONS") {
    return new Response("ok", { headers: corsHeaders });
  }

  try {
    const supabase = createClient(Deno.env.get("SUPABASE_URL")!, Deno.env.get("SUPABASE_ANON_KEY")!);
    const authHeader = req.headers.get("Authorization");
    const { data: { user } } = await supabase.auth.getUser();
    const payload = await req.json();
    const { data, error } = await supabase.from("todos").insert(payload).select();
    if (error) {
      return new Response(JSON.stringify({ error: error.message }), { status: 400, headers: jsonHeaders });
    }
    return new Response(JSON.stringify(data), { headers: { ...corsHeaders, "Content-Type": "application/json" } });
  } catch (err) {
    return new Response("Internal error", { status: 500 });
  }
});
"""

PROXY_SOURCE = """import { serve } from "https://deno.land/std@0.168.0/http/server.ts";
import { corsHeaders } from "../_shared/cors.ts";

serve(async (req) => {
  if (req.method === "OPTIONS") {
    return new Response("ok", { headers: corsHeaders });
  }
  const body = await req.json();
  const upstream = await fetch("https://api.example.com/items", { method: "POST", body: JSON.stringify(body) });
  return new Response(JSON.stringify(await upstream.json()));
});
"""

STRIPE_WEBHOOK_SOURCE = """import { serve } from "https://deno.land/std@0.168.0/http/server.ts";
import Stripe from "https://esm.sh/stripe@14.10.0?target=deno";

const stripe = new Stripe(Deno.env.get("STRIPE_SECRET_KEY")!);

serve(async (req) => {
  try {
    const signature = req.headers.get("stripe-signature");
    const rawBody = await req.text();
    const event = stripe.webhooks.constructEvent(rawBody, signature, Deno.env.get("STRIPE_WEBHOOK_SECRET")!);
    console.log("received event", event.type);
    return new Response(JSON.stringify({ received: true }), { status: 200 });
  } catch (err) {
    return new Response("Webhook Error", { status: 400 });
  }
});
"""

MINIMAL_SOURCE = 'const apiKey = Deno.env.get("API_KEY");\nif (req.method === "POST") {}'


@pytest.fixture
def todos_source() -> str:
    return TODOS_SOURCE


@pytest.fixture
def proxy_source() -> str:
    return PROXY_SOURCE


@pytest.fixture
def stripe_webhook_source() -> str:
    return STRIPE_WEBHOOK_SOURCE


@pytest.fixture
def minimal_source() -> str:
    return MINIMAL_SOURCE


@pytest.fixture
def function_files() -> dict[str, str]:
    return {
        "supabase/functions/create-todo/index.ts": TODOS_SOURCE,
        "supabase/functions/proxy/index.ts": PROXY_SOURCE,
        "supabase/functions/stripe-webhook/index.ts": STRIPE_WEBHOOK_SOURCE,
    }

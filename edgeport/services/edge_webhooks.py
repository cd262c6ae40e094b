from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from types import MappingProxyType

from edgeport.services.edge_models import ConversionResult, WebhookAdvisory, route_path

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_BASE_URL = "https://YOUR_DOMAIN"
GENERIC_KIND = "generic"


@dataclass(frozen=True)
class WebhookProvider:
    label: str
    signature_header: str
    verification_method: str
    runbook_template: str

    def render(self, kind: str, endpoint_url: str) -> WebhookAdvisory:
        return WebhookAdvisory(
            kind=kind,
            provider_label=self.label,
            signature_header=self.signature_header,
            verification_method=self.verification_method,
            runbook=self.runbook_template.format(endpoint_url=endpoint_url),
        )


WEBHOOK_PROVIDERS: Mapping[str, WebhookProvider] = MappingProxyType(
    {
        "stripe": WebhookProvider(
            label="Stripe",
            signature_header="stripe-signature",
            verification_method="stripe.webhooks.constructEvent()",
            runbook_template="""## Stripe webhook reconfiguration

1. Open https://dashboard.stripe.com/webhooks
2. Edit the existing endpoint or add a new one
3. **New URL**: `{endpoint_url}`
4. Copy the endpoint signing secret into your .env:
   ```
   STRIPE_WEBHOOK_SECRET=whsec_...
   ```
5. Select the events the handler needs (e.g. checkout.session.completed, invoice.paid)
6. Validate with the CLI: `stripe trigger checkout.session.completed`
""",
        ),
        "github": WebhookProvider(
            label="GitHub",
            signature_header="x-hub-signature-256",
            verification_method="crypto.createHmac()",
            runbook_template="""## GitHub webhook reconfiguration

1. Open Settings > Webhooks of the repository
2. Edit the existing webhook or add a new one
3. **Payload URL**: `{endpoint_url}`
4. **Content type**: application/json
5. **Secret**: generate a new secret and add it to .env:
   ```
   GITHUB_WEBHOOK_SECRET=your_secret
   ```
6. Select the events (push, pull_request, ...)
7. Click "Redeliver" on a recent delivery to validate
""",
        ),
        "twilio": WebhookProvider(
            label="Twilio",
            signature_header="x-twilio-signature",
            verification_method="twilio.validateRequest()",
            runbook_template="""## Twilio webhook reconfiguration

1. Open https://console.twilio.com
2. Phone Numbers > Active Numbers > your number
3. Update the webhook URLs:
   - **Voice webhook**: `{endpoint_url}`
   - **SMS webhook**: `{endpoint_url}`
4. Make sure TWILIO_AUTH_TOKEN is present in .env
5. Validate by sending a test SMS or placing a test call
""",
        ),
        GENERIC_KIND: WebhookProvider(
            label="Custom",
            signature_header="x-signature",
            verification_method="Custom verification",
            runbook_template="""## Custom webhook reconfiguration

1. Identify the service that sends the webhooks
2. Point it at the new URL: `{endpoint_url}`
3. Check which authentication or signature headers it sends
4. Rotate the shared secret and add it to your .env
5. Validate with a test delivery (ngrok or a tunnel works for local development)
""",
        ),
    }
)


def build_webhook_advisory(
    kind: str | None,
    function_name: str,
    providers: Mapping[str, WebhookProvider] = WEBHOOK_PROVIDERS,
    base_url: str = DEFAULT_PUBLIC_BASE_URL,
) -> WebhookAdvisory:
    resolved_kind = kind if kind in providers else GENERIC_KIND
    endpoint_url = f"{base_url.rstrip('/')}{route_path(function_name)}"
    logger.info(
        "build_webhook_advisory: function=%s kind=%s resolved_kind=%s",
        function_name,
        kind,
        resolved_kind,
    )
    return providers[resolved_kind].render(resolved_kind, endpoint_url)


def collect_webhook_advisories(results: Iterable[ConversionResult]) -> list[WebhookAdvisory]:
    return [result.webhook_advisory for result in results if result.webhook_advisory is not None]


def build_webhook_migration_guide(advisories: Sequence[WebhookAdvisory]) -> str:
    if not advisories:
        return """# Webhook Migration Guide

No webhook detected in this project.

If the application receives webhooks that were not detected, follow the general steps:

1. Identify the external services that send webhooks
2. Update the endpoint URLs in their dashboards
3. Rotate the shared secrets and store them in the new .env
4. Validate with a test delivery (ngrok or a tunnel) before going to production
"""

    sections = ["# Webhook Migration Guide", "", f"## Detected webhooks: {len(advisories)}"]
    for index, advisory in enumerate(advisories, start=1):
        sections.extend(
            [
                "",
                "---",
                "",
                f"### {index}. {advisory.provider_label} webhook",
                "",
                f"**Signature header**: `{advisory.signature_header}`",
                f"**Verification method**: `{advisory.verification_method}`",
                "",
                advisory.runbook.rstrip("\n"),
            ]
        )
    sections.extend(
        [
            "",
            "---",
            "",
            "## Important",
            "",
            "1. **Test locally first** with ngrok or a tunnel",
            "2. **Keep the old endpoints active** during the transition",
            "3. **Watch the logs** for signature verification failures",
            "4. **Update the secrets** in the new .env",
        ]
    )
    return "\n".join(sections) + "\n"

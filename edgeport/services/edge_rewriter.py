from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from edgeport.services.safe_source import summarize_source

logger = logging.getLogger(__name__)

HANDLER_MARKER = "// Handler logic:"
PREFLIGHT_MARKER = "// CORS preflight handled by shared middleware"

# Call arguments with at most one level of nested parentheses.
CALL_ARGUMENT = r"(?:[^()]|\([^()]*\))+"
# Object literals with at most one level of nested braces.
OPTIONS_OBJECT = r"\{(?:[^{}]|\{[^{}]*\})*\}"
OPTIONS_WITH_STATUS = r"\{(?:[^{}]|\{[^{}]*\})*?\bstatus\s*:\s*(?P<status>\d{3}|[A-Za-z_$][\w.$]*)(?:[^{}]|\{[^{}]*\})*\}"


@dataclass(frozen=True)
class RewriteRule:
    """One global substitution.

    ``convergence`` states why applying the rule to its own output, or letting a
    later rule see that output, cannot trigger another change.
    """

    group: int
    name: str
    pattern: re.Pattern[str]
    replacement: str | Callable[[re.Match[str]], str]
    convergence: str

    def apply(self, text: str) -> str:
        return self.pattern.sub(self.replacement, text)


def _lower_header(match: re.Match[str]) -> str:
    return f"req.headers['{match.group('header').lower()}']"


def _drop_unreferenced_headers(match: re.Match[str]) -> str:
    name = match.group("name")
    remaining = match.string[: match.start()] + match.string[match.end() :]
    if re.search(rf"\b{re.escape(name)}\b", remaining):
        return match.group(0)
    return ""


REWRITE_RULES: tuple[RewriteRule, ...] = (
    # 1. platform-only imports
    RewriteRule(
        group=1,
        name="drop_deno_serve_import",
        pattern=re.compile(
            r"^[ \t]*import\s*\{\s*serve\s*\}\s*from\s*['\"]https://deno\.land/std[^'\"]*/http/server\.ts['\"];?[ \t]*\n?",
            re.MULTILINE,
        ),
        replacement="",
        convergence="deletes the whole statement; nothing is left to match",
    ),
    RewriteRule(
        group=1,
        name="drop_deno_xhr_import",
        pattern=re.compile(
            r"^[ \t]*import\s*['\"]https://deno\.land/x/xhr[^'\"]*['\"];?[ \t]*\n?",
            re.MULTILINE,
        ),
        replacement="",
        convergence="deletes the whole statement; nothing is left to match",
    ),
    RewriteRule(
        group=1,
        name="drop_shared_cors_import",
        pattern=re.compile(
            r"^[ \t]*import\s*\{\s*corsHeaders\s*\}\s*from\s*['\"][^'\"]*_shared/cors(?:\.ts)?['\"];?[ \t]*\n?",
            re.MULTILINE,
        ),
        replacement="",
        convergence="deletes the whole statement; nothing is left to match",
    ),
    # 2. registry specifiers
    RewriteRule(
        group=2,
        name="esm_specifier_to_package",
        pattern=re.compile(
            r"(?P<lead>\bfrom\s*)(?P<q>['\"])https://esm\.sh/(?:v\d+/)?"
            r"(?P<pkg>@[^/@'\"?]+/[^/@'\"?]+|[^/@'\"?]+)[^'\"]*(?P=q)"
        ),
        replacement=r"\g<lead>'\g<pkg>'",
        convergence="output specifier is a bare package name without the esm.sh host",
    ),
    RewriteRule(
        group=2,
        name="npm_specifier_to_package",
        pattern=re.compile(
            r"(?P<lead>\bfrom\s*)(?P<q>['\"])npm:(?P<pkg>@[^/@'\"]+/[^/@'\"]+|[^/@'\"]+)[^'\"]*(?P=q)"
        ),
        replacement=r"\g<lead>'\g<pkg>'",
        convergence="output specifier no longer carries the npm: prefix",
    ),
    # 3. runtime API calls
    RewriteRule(
        group=3,
        name="unwrap_serve_handler",
        pattern=re.compile(
            r"(?:\bDeno\.)?\bserve\(\s*async\s*\(\s*req(?:\s*:\s*Request)?\s*\)\s*=>\s*\{(?P<body>.*)\}\s*\)\s*;?\s*\Z",
            re.DOTALL,
        ),
        replacement=lambda match: f"{HANDLER_MARKER}{match.group('body')}".rstrip() + "\n",
        convergence="the serve( call and its Deno. prefix are consumed, so the marker cannot match again",
    ),
    RewriteRule(
        group=3,
        name="secret_lookup_to_process_env",
        pattern=re.compile(r"Deno\.env\.get\(\s*['\"](?P<name>\w+)['\"]\s*\)!?"),
        replacement=r"process.env.\g<name>",
        convergence="process.env.X contains no Deno.env call",
    ),
    RewriteRule(
        group=3,
        name="request_json_to_body",
        pattern=re.compile(r"\bawait\s+req\.json\(\s*\)"),
        replacement="req.body",
        convergence="req.body is a property access, not a json() call",
    ),
    RewriteRule(
        group=3,
        name="header_lookup_to_index",
        pattern=re.compile(r"\breq\.headers\.get\(\s*['\"](?P<header>[^'\"]+)['\"]\s*\)"),
        replacement=_lower_header,
        convergence="index access has no .get( call",
    ),
    # 4. responses, most specific first so the general forms never shadow them
    RewriteRule(
        group=4,
        name="json_response_with_status",
        pattern=re.compile(
            rf"\breturn\s+new\s+Response\(\s*JSON\.stringify\((?P<body>{CALL_ARGUMENT})\)\s*,\s*{OPTIONS_WITH_STATUS}\s*\)"
        ),
        replacement=r"return res.status(\g<status>).json(\g<body>)",
        convergence="no new Response( remains in the output",
    ),
    RewriteRule(
        group=4,
        name="json_response_with_options",
        pattern=re.compile(
            rf"\breturn\s+new\s+Response\(\s*JSON\.stringify\((?P<body>{CALL_ARGUMENT})\)\s*,\s*{OPTIONS_OBJECT}\s*\)"
        ),
        replacement=r"return res.json(\g<body>)",
        convergence="no new Response( remains in the output",
    ),
    RewriteRule(
        group=4,
        name="json_response_body_only",
        pattern=re.compile(
            rf"\breturn\s+new\s+Response\(\s*JSON\.stringify\((?P<body>{CALL_ARGUMENT})\)\s*\)"
        ),
        replacement=r"return res.json(\g<body>)",
        convergence="no new Response( remains in the output",
    ),
    RewriteRule(
        group=4,
        name="text_response_with_status",
        pattern=re.compile(
            rf"\bnew\s+Response\(\s*(?P<body>[^,(){{}}]+?)\s*,\s*{OPTIONS_WITH_STATUS}\s*\)"
        ),
        replacement=r"res.status(\g<status>).send(\g<body>)",
        convergence="no new Response( remains in the output",
    ),
    RewriteRule(
        group=4,
        name="bodiless_preflight_response",
        pattern=re.compile(
            rf"\breturn\s+new\s+Response\(\s*(?:null|['\"]ok['\"])\s*,\s*{OPTIONS_OBJECT}\s*\)"
        ),
        replacement="return res.status(204).end()",
        convergence="no new Response( remains in the output",
    ),
    # 5. preflight branch; runs after group 4 so the branch body holds no braces
    RewriteRule(
        group=5,
        name="preflight_branch_to_marker",
        pattern=re.compile(
            r"\bif\s*\(\s*req\.method\s*===?\s*['\"]OPTIONS['\"]\s*\)\s*(?:\{[^{}]*\}|return\b[^;\n]*;?)"
        ),
        replacement=PREFLIGHT_MARKER,
        convergence="the marker is a comment without an if (req.method ...) test",
    ),
    # 6. shared header constants left without references
    RewriteRule(
        group=6,
        name="drop_unreferenced_header_constant",
        pattern=re.compile(
            r"^[ \t]*(?:export\s+)?const\s+(?P<name>\w*[hH]eaders)\s*=\s*\{[^{}]*\}\s*;?[ \t]*\n?",
            re.MULTILINE,
        ),
        replacement=_drop_unreferenced_headers,
        convergence="a kept declaration is still referenced, so a rerun keeps it again",
    ),
)


def apply_rewrite_rules(
    source: str, rules: Iterable[RewriteRule] = REWRITE_RULES
) -> tuple[str, list[str]]:
    """Run ``rules`` top to bottom and report which ones changed the text."""
    summary = summarize_source(source)
    logger.info(
        "apply_rewrite_rules: source_len=%s source_hash=%s",
        summary["len"],
        summary["sha256_8"],
    )

    text = source
    applied: list[str] = []
    for rule in rules:
        rewritten = rule.apply(text)
        if rewritten != text:
            applied.append(rule.name)
            text = rewritten
    return text, applied


def rewrite_source(source: str, rules: Iterable[RewriteRule] = REWRITE_RULES) -> str:
    text, _applied = apply_rewrite_rules(source, rules)
    return text


def rules_in_group(group: int, rules: Iterable[RewriteRule] = REWRITE_RULES) -> list[RewriteRule]:
    return [rule for rule in rules if rule.group == group]

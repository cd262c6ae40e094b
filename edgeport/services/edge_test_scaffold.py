from __future__ import annotations

import logging

from edgeport.services.edge_models import (
    FunctionMetadata,
    handler_methods,
    route_identifier,
    route_path,
)

logger = logging.getLogger(__name__)

SERVER_ERROR_THRESHOLD = 500
UNAUTHORIZED_STATUS = 401
BODYLESS_METHODS = {"GET"}


def generate_test_module(name: str, metadata: FunctionMetadata) -> str:
    """Render a supertest/jest module exercising every generated handler."""
    identifier = route_identifier(name)
    path = route_path(name)
    methods = handler_methods(metadata)
    logger.info(
        "generate_test_module: name=%s methods=%s requires_auth=%s",
        name,
        ",".join(methods),
        metadata.requires_auth,
    )

    lines = [
        "import request from 'supertest';",
        "import express from 'express';",
        f"import {{ {identifier}Router }} from './{identifier}';",
        "",
        "const app = express();",
        "app.use(express.json());",
        f"app.use('{path}', {identifier}Router);",
        "",
        f"describe('{name} route', () => {{",
    ]
    for method in methods:
        lines.extend(_method_suite(method, path, metadata.requires_auth))
    lines.append("});")
    return "\n".join(lines) + "\n"


def _request_chain(method: str, path: str, *, authenticated: bool) -> list[str]:
    chain = ["      const response = await request(app)", f"        .{method.lower()}('{path}')"]
    if method not in BODYLESS_METHODS:
        chain.append("        .send({ test: true })")
    if authenticated:
        chain.append("        .set('Authorization', 'Bearer test-token')")
    chain[-1] += ";"
    return chain


def _method_suite(method: str, path: str, requires_auth: bool) -> list[str]:
    lines = [
        f"  describe('{method} {path}', () => {{",
        "    it('should respond successfully', async () => {",
        *_request_chain(method, path, authenticated=requires_auth),
        "",
        f"      expect(response.status).toBeLessThan({SERVER_ERROR_THRESHOLD});",
        "    });",
    ]
    if requires_auth:
        lines.extend(
            [
                "",
                "    it('should require authentication', async () => {",
                *_request_chain(method, path, authenticated=False),
                "",
                f"      expect(response.status).toBe({UNAUTHORIZED_STATUS});",
                "    });",
            ]
        )
    lines.append("  });")
    return lines

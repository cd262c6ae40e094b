# [파일 설명]
# - 목적: 함수별 변환 결과를 하나의 배포 번들 매니페스트로 합친다.
# - 제공 기능: 의존성 합집합, 환경 변수 템플릿, 멀티 라우트 엔트리 모듈, package.json 생성.
# - 입력/출력: ConversionResult 목록과 BundleOptions를 받아 ServiceBundle을 반환한다.
# - 주의 사항: 파일 쓰기 등 입출력은 수행하지 않으며 실패하지 않는다.
# - 연관 모듈: edgeport.services.edge_converter, edgeport.api.migrate에서 호출된다.
from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from edgeport.services.edge_models import ConversionResult, GeneratedFile, ServiceBundle
from edgeport.services.edge_webhooks import (
    build_webhook_migration_guide,
    collect_webhook_advisories,
)

logger = logging.getLogger(__name__)

CORE_DEPENDENCIES = ("express", "cors", "helmet", "dotenv")

DEFAULT_DEPENDENCY_VERSIONS: Mapping[str, str] = MappingProxyType(
    {
        "express": "^4.18.2",
        "cors": "^2.8.5",
        "helmet": "^7.1.0",
        "dotenv": "^16.3.1",
        "@supabase/supabase-js": "^2.39.0",
        "stripe": "^14.10.0",
        "resend": "^3.2.0",
    }
)

DEFAULT_DEV_DEPENDENCIES: Mapping[str, str] = MappingProxyType(
    {
        "@types/express": "^4.17.21",
        "@types/cors": "^2.8.17",
        "@types/node": "^20.10.0",
        "@types/supertest": "^6.0.2",
        "jest": "^29.7.0",
        "supertest": "^6.3.3",
        "ts-jest": "^29.1.1",
        "tsx": "^4.7.0",
        "typescript": "^5.3.0",
    }
)


@dataclass(frozen=True)
class BundleOptions:
    dependency_versions: Mapping[str, str] = field(
        default_factory=lambda: DEFAULT_DEPENDENCY_VERSIONS
    )
    dev_dependencies: Mapping[str, str] = field(default_factory=lambda: DEFAULT_DEV_DEPENDENCIES)
    core_dependencies: tuple[str, ...] = CORE_DEPENDENCIES
    default_version: str = "latest"
    port: int = 3000
    package_name: str = "backend"


# [함수 설명]
# - 목적: 변환 결과 집합을 ServiceBundle로 조립한다.
# - 입력: results: Sequence[ConversionResult], options: BundleOptions | None
# - 출력: 의존성/환경 변수/엔트리 모듈/파일 목록을 포함한 ServiceBundle
# - 에러 처리: 빈 입력은 핵심 의존성만 가진 번들을 반환한다.
# - 결정론: 입력 순서를 유지한 중복 제거로 결과 순서를 안정화한다.
# - 보안: 소스 원문은 로그에 남기지 않는다.
def aggregate_bundle(
    results: Sequence[ConversionResult], options: BundleOptions | None = None
) -> ServiceBundle:
    options = options or BundleOptions()
    conversions = tuple(_unique_routes(results))

    dependency_names = _ordered_unique(
        [*options.core_dependencies, *(dep for result in conversions for dep in result.dependencies)]
    )
    dependencies = {
        name: options.dependency_versions.get(name, options.default_version)
        for name in dependency_names
    }
    env_vars = tuple(_ordered_unique(var for result in conversions for var in result.env_vars))

    logger.info(
        "aggregate_bundle: functions=%s dependencies=%s env_vars=%s",
        len(conversions),
        len(dependencies),
        len(env_vars),
    )

    env_template = render_env_template(env_vars, options.port)
    entry_module = render_entry_module(conversions)
    package_manifest = render_package_manifest(dependencies, options)
    webhook_guide = build_webhook_migration_guide(collect_webhook_advisories(conversions))

    files: list[GeneratedFile] = []
    for result in conversions:
        files.append(GeneratedFile(f"src/routes/{result.route_identifier}.ts", result.route_source))
        files.append(
            GeneratedFile(f"src/routes/{result.route_identifier}.test.ts", result.test_source)
        )
    files.extend(
        [
            GeneratedFile("src/index.ts", entry_module),
            GeneratedFile("package.json", package_manifest),
            GeneratedFile(".env.example", env_template),
        ]
    )

    return ServiceBundle(
        conversions=conversions,
        dependencies=dependencies,
        env_vars=env_vars,
        env_template=env_template,
        entry_module=entry_module,
        package_manifest=package_manifest,
        webhook_guide=webhook_guide,
        files=tuple(files),
    )


def render_env_template(env_vars: Iterable[str], port: int = 3000) -> str:
    lines = [
        "# Backend environment variables",
        "# Generated from edge functions",
        "",
        f"PORT={port}",
    ]
    names = [name for name in env_vars if name != "PORT"]
    if names:
        lines.append("")
        lines.extend(f"{name}=" for name in names)
    return "\n".join(lines) + "\n"


def render_entry_module(conversions: Sequence[ConversionResult]) -> str:
    lines = [
        "import express from 'express';",
        "import cors from 'cors';",
        "import helmet from 'helmet';",
        "import dotenv from 'dotenv';",
        "",
        "dotenv.config();",
        "",
    ]
    lines.extend(
        f"import {{ {result.route_identifier}Router }} from './routes/{result.route_identifier}';"
        for result in conversions
    )
    lines.extend(
        [
            "",
            "const app = express();",
            "const PORT = process.env.PORT || 3000;",
            "",
            "app.use(helmet());",
            "app.use(cors());",
            "app.use(express.json());",
            "",
            "app.get('/health', (req, res) => {",
            "  res.json({ status: 'ok', timestamp: new Date().toISOString() });",
            "});",
            "",
        ]
    )
    lines.extend(
        f"app.use('{result.route_path}', {result.route_identifier}Router);"
        for result in conversions
    )
    lines.extend(
        [
            "",
            "app.use((err: Error, req: express.Request, res: express.Response, next: express.NextFunction) => {",
            "  console.error(err.stack);",
            "  res.status(500).json({ error: 'Internal Server Error' });",
            "});",
            "",
            "app.listen(PORT, () => {",
            "  console.log(`Server running on port ${PORT}`);",
        ]
    )
    lines.extend(f"  console.log('  - {result.route_path}');" for result in conversions)
    lines.extend(["});", "", "export default app;"])
    return "\n".join(lines) + "\n"


def render_package_manifest(dependencies: Mapping[str, str], options: BundleOptions) -> str:
    manifest = {
        "name": options.package_name,
        "version": "1.0.0",
        "description": "Backend API converted from edge functions",
        "main": "dist/index.js",
        "scripts": {
            "dev": "tsx watch src/index.ts",
            "build": "tsc",
            "start": "node dist/index.js",
            "test": "jest",
            "typecheck": "tsc --noEmit",
        },
        "dependencies": dict(dependencies),
        "devDependencies": dict(options.dev_dependencies),
        "engines": {"node": ">=18.0.0"},
    }
    return json.dumps(manifest, indent=2) + "\n"


# First wins when either the identifier or the mount path repeats.
def _unique_routes(results: Iterable[ConversionResult]) -> list[ConversionResult]:
    seen_identifiers: set[str] = set()
    seen_paths: set[str] = set()
    unique: list[ConversionResult] = []
    for result in results:
        if result.route_identifier in seen_identifiers or result.route_path in seen_paths:
            logger.warning(
                "aggregate_bundle: duplicate route skipped identifier=%s path=%s origin=%s",
                result.route_identifier,
                result.route_path,
                result.origin_path,
            )
            continue
        seen_identifiers.add(result.route_identifier)
        seen_paths.add(result.route_path)
        unique.append(result)
    return unique


def _ordered_unique(values: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered

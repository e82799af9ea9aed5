"""Manifest and layout detection."""

from __future__ import annotations

import json
import logging

import pytest

from mcp_patternscout.services.project_metadata import detect_metadata


def test_express_typescript_project(make_project) -> None:
    package = {
        "dependencies": {"express": "^4.18.0", "jsonwebtoken": "^9.0.0"},
        "devDependencies": {"typescript": "^5.4.0"},
        "scripts": {"dev": "ts-node src/index.ts", "test": "jest", "deploy": "x"},
    }
    root = make_project(
        {
            "package.json": json.dumps(package),
            "yarn.lock": "",
            "src/middleware/auth.ts": "export {};\n",
        }
    )

    metadata = detect_metadata(root)

    assert metadata.framework == "Express.js"
    assert metadata.project_type == "Express API"
    assert metadata.language == "TypeScript"
    assert metadata.package_manager == "yarn"
    assert metadata.dependencies == ("express", "jsonwebtoken")
    assert dict(metadata.scripts) == {"dev": "ts-node src/index.ts", "test": "jest"}
    assert metadata.directories == (
        ("src", "source code"),
        ("src/middleware", "middleware functions"),
    )


def test_framework_priority_follows_the_detection_order(make_project) -> None:
    package = {"dependencies": {"react": "18", "next": "14"}}
    root = make_project({"package.json": json.dumps(package), "tsconfig.json": "{}"})

    metadata = detect_metadata(root)

    assert metadata.framework == "Next.js"
    assert metadata.language == "TypeScript"
    assert metadata.package_manager == "npm"


def test_declared_package_manager_wins_over_lockfiles(make_project) -> None:
    package = {"packageManager": "pnpm@8.15.0", "dependencies": {"fastify": "4"}}
    root = make_project(
        {"package.json": json.dumps(package), "package-lock.json": "{}"}
    )

    metadata = detect_metadata(root)

    assert metadata.package_manager == "pnpm"
    assert metadata.framework == "Fastify"


def test_malformed_package_json_degrades_with_a_warning(
    make_project, caplog: pytest.LogCaptureFixture
) -> None:
    root = make_project({"package.json": "{ not json"})
    caplog.set_level(logging.WARNING)

    metadata = detect_metadata(root)

    assert metadata.language == "Unknown"
    assert metadata.framework == "None detected"
    assert any("package.json" in record.getMessage() for record in caplog.records)


def test_python_manifest(make_project) -> None:
    root = make_project(
        {
            "pyproject.toml": (
                '[project]\nname = "svc"\n'
                'dependencies = ["FastAPI>=0.110", "pydantic"]\n'
            ),
            "requirements.txt": "# pinned\nuvicorn==0.29\n-r extra.txt\n",
        }
    )

    metadata = detect_metadata(root)

    assert metadata.language == "Python"
    assert metadata.framework == "FastAPI"
    assert metadata.dependencies == ("fastapi", "pydantic", "uvicorn")


def test_maven_manifest(make_project) -> None:
    pom = """<?xml version="1.0"?>
<project xmlns="http://maven.apache.org/POM/4.0.0">
  <artifactId>orders</artifactId>
  <dependencies>
    <dependency>
      <groupId>org.springframework.boot</groupId>
      <artifactId>spring-boot-starter-web</artifactId>
    </dependency>
  </dependencies>
</project>
"""
    root = make_project({"pom.xml": pom})

    metadata = detect_metadata(root)

    assert metadata.language == "Java"
    assert metadata.framework == "Spring Boot"
    assert metadata.package_manager == "maven"
    assert "spring-boot-starter-web" in metadata.dependencies


def test_hostile_pom_is_refused(make_project) -> None:
    pom = """<?xml version="1.0"?>
<!DOCTYPE project [<!ENTITY boom "boom">]>
<project><artifactId>&boom;</artifactId></project>
"""
    root = make_project({"pom.xml": pom})

    metadata = detect_metadata(root)

    assert metadata.project_type == "Maven Project"
    assert metadata.dependencies == ()

"""Project-level facts read from manifests and the directory layout."""

from __future__ import annotations

import json
import logging
import re
import tomllib
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping
from xml.etree.ElementTree import Element, ParseError

from defusedxml.common import DefusedXmlException
from defusedxml.ElementTree import fromstring as defused_fromstring

from ..domain.models import ProjectMetadata

_LOG = logging.getLogger(__name__)

MAX_MANIFEST_BYTES = 512_000

NODE_FRAMEWORKS: tuple[tuple[str, str, str], ...] = (
    ("express", "Express.js", "Express API"),
    ("@nestjs/core", "NestJS", "NestJS API"),
    ("next", "Next.js", "Next.js Application"),
    ("fastify", "Fastify", "Fastify API"),
    ("koa", "Koa", "Koa API"),
    ("react", "React", "React Application"),
    ("vue", "Vue.js", "Vue Application"),
)
"""(dependency, framework, project type) in detection priority order."""

PYTHON_FRAMEWORKS: tuple[tuple[str, str], ...] = (
    ("django", "Django"),
    ("fastapi", "FastAPI"),
    ("flask", "Flask"),
    ("starlette", "Starlette"),
)

JAVA_FRAMEWORKS: tuple[tuple[str, str], ...] = (
    ("spring-boot", "Spring Boot"),
    ("quarkus", "Quarkus"),
    ("micronaut", "Micronaut"),
)

LOCKFILES: tuple[tuple[str, str], ...] = (
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("bun.lockb", "bun"),
    ("bun.lock", "bun"),
    ("package-lock.json", "npm"),
)

KEY_DIRECTORIES: tuple[tuple[str, str], ...] = (
    ("src", "source code"),
    ("src/components", "UI components"),
    ("src/services", "business logic"),
    ("src/middleware", "middleware functions"),
    ("src/controllers", "API controllers"),
    ("src/routes", "API routes"),
    ("src/models", "data models"),
    ("src/utils", "utility functions"),
    ("src/types", "TypeScript types"),
    ("app", "application routes"),
    ("pages/api", "API routes"),
    ("tests", "test files"),
    ("__tests__", "test files"),
)

SCRIPT_NAMES = ("dev", "start", "build", "test", "lint")

_REQUIREMENT_NAME = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")


def _read_text(path: Path) -> str | None:
    if not path.is_file():
        return None
    try:
        if path.stat().st_size > MAX_MANIFEST_BYTES:
            _LOG.warning("Skipping oversized manifest %s", path.name)
            return None
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        _LOG.warning("Unable to read manifest %s: %s", path.name, exc)
        return None


def _load_package_json(root: Path) -> Mapping[str, Any] | None:
    text = _read_text(root / "package.json")
    if text is None:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        _LOG.warning("Malformed package.json ignored: %s", exc)
        return None
    if not isinstance(data, dict):
        _LOG.warning("package.json is not an object; ignored.")
        return None
    return data


def _dependency_table(pkg: Mapping[str, Any], key: str) -> dict[str, Any]:
    table = pkg.get(key)
    return dict(table) if isinstance(table, dict) else {}


def _detect_package_manager(root: Path, pkg: Mapping[str, Any]) -> str:
    declared = pkg.get("packageManager")
    if isinstance(declared, str) and declared:
        return declared.split("@", 1)[0]
    for lockfile, manager in LOCKFILES:
        if (root / lockfile).exists():
            return manager
    return "npm"


def _node_metadata(root: Path, pkg: Mapping[str, Any]) -> ProjectMetadata:
    dependencies = _dependency_table(pkg, "dependencies")
    dev_dependencies = _dependency_table(pkg, "devDependencies")
    every = {**dev_dependencies, **dependencies}

    framework = "None detected"
    project_type = "Node.js Project"
    for dependency, name, kind in NODE_FRAMEWORKS:
        if dependency in every:
            framework, project_type = name, kind
            break

    language = "JavaScript"
    if "typescript" in every or (root / "tsconfig.json").exists():
        language = "TypeScript"

    raw_scripts = pkg.get("scripts")
    scripts: dict[str, str] = {}
    if isinstance(raw_scripts, dict):
        scripts = {
            name: str(raw_scripts[name])
            for name in SCRIPT_NAMES
            if name in raw_scripts
        }

    return ProjectMetadata(
        project_type=project_type,
        language=language,
        framework=framework,
        package_manager=_detect_package_manager(root, pkg),
        dependencies=tuple(sorted(dependencies)),
        scripts=scripts,
    )


def _pyproject_dependencies(root: Path) -> list[str] | None:
    text = _read_text(root / "pyproject.toml")
    if text is None:
        return None
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        _LOG.warning("Malformed pyproject.toml ignored: %s", exc)
        return []
    project = data.get("project", {})
    raw = project.get("dependencies", []) if isinstance(project, dict) else []
    names = []
    for requirement in raw if isinstance(raw, list) else []:
        match = _REQUIREMENT_NAME.match(str(requirement))
        if match:
            names.append(match.group(1).lower())
    return names


def _requirements_dependencies(root: Path) -> list[str] | None:
    text = _read_text(root / "requirements.txt")
    if text is None:
        return None
    names = []
    for line in text.splitlines():
        if line.strip().startswith(("#", "-")):
            continue
        match = _REQUIREMENT_NAME.match(line)
        if match:
            names.append(match.group(1).lower())
    return names


def _python_metadata(root: Path) -> ProjectMetadata | None:
    from_pyproject = _pyproject_dependencies(root)
    from_requirements = _requirements_dependencies(root)
    if from_pyproject is None and from_requirements is None:
        return None
    dependencies = sorted(set(from_pyproject or []) | set(from_requirements or []))
    framework = next(
        (name for dep, name in PYTHON_FRAMEWORKS if dep in dependencies),
        "None detected",
    )
    manager = "pip"
    if (root / "poetry.lock").exists():
        manager = "poetry"
    elif (root / "uv.lock").exists():
        manager = "uv"
    return ProjectMetadata(
        project_type="Python Project",
        language="Python",
        framework=framework,
        package_manager=manager,
        dependencies=tuple(dependencies),
    )


def _local_name(element: Element) -> str:
    tag = element.tag if isinstance(element.tag, str) else ""
    return tag.rsplit("}", 1)[-1]


def _maven_metadata(root: Path) -> ProjectMetadata | None:
    text = _read_text(root / "pom.xml")
    if text is None:
        return None
    try:
        document = defused_fromstring(text.encode("utf-8"))
    except (DefusedXmlException, ParseError) as exc:
        _LOG.warning("Malformed pom.xml ignored: %s", exc)
        return ProjectMetadata(project_type="Maven Project", language="Java")
    artifacts = sorted(
        {
            (node.text or "").strip()
            for node in document.iter()
            if _local_name(node) == "artifactId" and (node.text or "").strip()
        }
    )
    framework = next(
        (
            name
            for marker, name in JAVA_FRAMEWORKS
            if any(marker in artifact for artifact in artifacts)
        ),
        "None detected",
    )
    return ProjectMetadata(
        project_type="Maven Project",
        language="Java",
        framework=framework,
        package_manager="maven",
        dependencies=tuple(artifacts),
    )


def map_directories(root: Path) -> tuple[tuple[str, str], ...]:
    """Return the well-known directories present under ``root``."""

    return tuple(
        (relative, purpose)
        for relative, purpose in KEY_DIRECTORIES
        if (root / relative).is_dir()
    )


def detect_metadata(root: Path) -> ProjectMetadata:
    """
    Detect project type, language, framework and package manager.

    ``package.json`` wins over Python and Maven manifests because the
    analysed conventions are JavaScript/TypeScript ones. Missing or malformed
    manifests degrade to unknown fields; this function never raises for
    manifest content.
    """

    pkg = _load_package_json(root)
    metadata: ProjectMetadata | None = None
    if pkg is not None:
        metadata = _node_metadata(root, pkg)
    if metadata is None:
        metadata = _python_metadata(root)
    if metadata is None:
        metadata = _maven_metadata(root)
    if metadata is None:
        language = "TypeScript" if (root / "tsconfig.json").exists() else "Unknown"
        metadata = ProjectMetadata(language=language)

    return replace(metadata, directories=map_directories(root))

"""Detect a project's framework and existing AIPIM setup."""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import Any

from .config import ProjectSettings
from .models import DetectedProject, ExistingSetup

logger = logging.getLogger(__name__)

# Checked in order; the first dependency found wins.
NODE_FRAMEWORKS = [
    ("next", "next"),
    ("astro", "astro"),
    ("nuxt", "vue"),
    ("vue", "vue"),
    ("@sveltejs/kit", "svelte"),
    ("svelte", "svelte"),
    ("react", "react"),
    ("express", "express"),
]

PYTHON_FRAMEWORKS = ["django", "fastapi", "flask"]

LOCK_FILES = [
    ("pnpm-lock.yaml", "pnpm"),
    ("yarn.lock", "yarn"),
    ("bun.lockb", "bun"),
    ("package-lock.json", "npm"),
    ("poetry.lock", "poetry"),
    ("uv.lock", "uv"),
]


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Ignoring unreadable %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def _table(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _python_dependencies(root: Path) -> list[str]:
    names: list[str] = []
    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomllib.loads(pyproject.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.debug("Ignoring unreadable %s: %s", pyproject, e)
            data = {}
        project = _table(data, "project")
        dependencies = project.get("dependencies")
        if isinstance(dependencies, list):
            names.extend(dependencies)
        poetry = _table(_table(data, "tool"), "poetry")
        names.extend(_table(poetry, "dependencies"))

    requirements = root / "requirements.txt"
    if requirements.is_file():
        try:
            names.extend(requirements.read_text(encoding="utf-8").splitlines())
        except OSError as e:
            logger.debug("Ignoring unreadable %s: %s", requirements, e)

    return [n.strip().lower() for n in names if isinstance(n, str)]


def detect_project(
    project_root: Path,
    settings: ProjectSettings | None = None,
) -> DetectedProject:
    """Inspect manifests in ``project_root``.

    Unreadable or malformed manifests are ignored.
    """
    settings = settings or ProjectSettings()
    root = Path(project_root)
    detected = DetectedProject(
        has_git=(root / ".git").exists(),
        has_node_modules=(root / "node_modules").is_dir(),
        existing_setup=ExistingSetup(
            has_project=(root / settings.managed_dir).is_dir(),
            has_prompts=[
                name
                for name in settings.instruction_files.values()
                if (root / name).is_file()
            ],
        ),
    )

    for filename, manager in LOCK_FILES:
        if (root / filename).exists():
            detected.package_manager = manager
            break

    package_json = root / "package.json"
    if package_json.is_file():
        pkg = _read_json(package_json)
        deps: dict[str, Any] = {}
        for key in ("dependencies", "devDependencies"):
            section = pkg.get(key)
            if isinstance(section, dict):
                deps.update(section)
        for dependency, framework in NODE_FRAMEWORKS:
            if dependency in deps:
                detected.framework = framework
                detected.framework_version = str(deps[dependency]).lstrip("^~")
                break
        if detected.package_manager is None:
            detected.package_manager = "npm"
        return detected

    python_deps = _python_dependencies(root)
    if python_deps or (root / "pyproject.toml").exists():
        detected.framework = "python"
        for framework in PYTHON_FRAMEWORKS:
            if any(dep.startswith(framework) for dep in python_deps):
                detected.framework = framework
                break
        if detected.package_manager is None:
            detected.package_manager = "pip"

    return detected


def default_guidelines(project: DetectedProject) -> list[str]:
    """Guidelines to inject when none were requested."""
    if project.framework is None:
        return []
    if project.framework in ("django", "fastapi", "flask"):
        return ["python", project.framework]
    return [project.framework]

"""Project flag scanning.

Looks at a project directory and records what already exists (PRD,
context files, components, shadcn, InstantDB, configured AI provider), so
steps can declare ``required_context`` against it.
"""

import json
import logging
import os
import time
from pathlib import Path

from mycontext.workflow.types import ProjectFlags

logger = logging.getLogger(__name__)

CONTEXT_DIR = ".mycontext"
PRD_FILE = "01-prd.md"
ENV_FILES = (".env", ".env.local", ".mycontext/.env")
API_KEY_MARKERS = ("ANTHROPIC_API_KEY=", "MYCONTEXT_XAI_API_KEY=")
INSTANTDB_PACKAGES = ("@instantdb/react", "@instantdb/admin")
NEW_PROJECT_SECONDS = 24 * 60 * 60

# First match wins
PROJECT_TYPE_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("ecommerce", ("e-commerce", "shopping", "store")),
    ("dashboard", ("dashboard", "analytics", "metrics")),
    ("content", ("blog", "content", "cms")),
    ("social", ("social", "feed", "network")),
    ("game", ("game", "gaming")),
    ("weather", ("weather",)),
    ("finance", ("finance", "banking", "money")),
)


def detect_project_type(prd_text: str) -> str:
    """Classify a PRD by keyword; "general" when nothing matches."""
    lowered = prd_text.lower()
    for project_type, keywords in PROJECT_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return project_type
    return "general"


def _created_at(path: Path) -> float:
    stat = path.stat()
    # st_birthtime is not available on every platform
    return getattr(stat, "st_birthtime", stat.st_ctime)


def _read_text(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return None


def _has_instantdb(package_json: Path) -> bool:
    text = _read_text(package_json)
    if text is None:
        return False
    try:
        package = json.loads(text)
    except json.JSONDecodeError:
        logger.debug("Unparseable %s", package_json)
        return False
    deps = package.get("dependencies") if isinstance(package, dict) else None
    if not isinstance(deps, dict):
        return False
    return any(deps.get(name) for name in INSTANTDB_PACKAGES)


def scan_project_context(project_root: Path) -> ProjectFlags:
    """Scan ``project_root`` for the flags workflow steps can depend on.

    Unreadable files count as absent; this never raises for a missing or
    partially readable project.
    """
    root = Path(project_root)
    context_dir = root / CONTEXT_DIR
    prd = context_dir / PRD_FILE
    flags = ProjectFlags()

    flags.has_prd = prd.is_file()
    if context_dir.is_dir():
        try:
            names = os.listdir(context_dir)
        except OSError:
            names = []
        flags.has_context_files = any(
            name.endswith(".md") and name != PRD_FILE for name in names
        )
        try:
            flags.is_new_project = time.time() - _created_at(context_dir) < NEW_PROJECT_SECONDS
        except OSError:
            flags.is_new_project = False

    flags.has_components = (root / "components").exists()
    flags.has_shadcn = (root / "components.json").exists()
    flags.has_instantdb = _has_instantdb(root / "package.json")

    for env_file in ENV_FILES:
        content = _read_text(root / env_file)
        if content and any(marker in content for marker in API_KEY_MARKERS):
            flags.ai_provider_configured = True
            break

    if flags.has_prd:
        prd_text = _read_text(prd)
        flags.project_type = detect_project_type(prd_text) if prd_text is not None else "general"

    logger.debug("Project flags for %s: %s", root, flags)
    return flags

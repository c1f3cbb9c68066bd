"""Project detection by marker files.

Used to resolve ``project_info`` step inputs.  The detector walks the
project directory (a few levels deep), collects well-known build and
config files, and infers project type, language, build system and
package manager from them.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Tuple

from review_orchestrator.constants import DETECTION_MAX_DEPTH
from review_orchestrator.errors import ExecutionError

logger = logging.getLogger(__name__)


class ProjectType(Enum):
    RUST = "rust"
    NODEJS = "nodejs"
    PYTHON = "python"
    JAVA = "java"
    GO = "go"
    DOCKER = "docker"
    TERRAFORM = "terraform"
    GENERIC = "generic"


@dataclass
class ProjectInfo:
    """What was learned about a project directory."""

    project_type: ProjectType
    language: str
    root_path: Path
    build_system: Optional[str] = None
    package_manager: Optional[str] = None
    framework: Optional[str] = None
    config_files: List[Path] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_type": self.project_type.value,
            "language": self.language,
            "framework": self.framework,
            "build_system": self.build_system,
            "package_manager": self.package_manager,
            "root_path": str(self.root_path),
            "config_files": [str(p) for p in self.config_files],
        }


class ProjectDetector(Protocol):
    async def detect(self, path: Path) -> ProjectInfo:
        ...


# marker file (lower-case) → (type, language, build system, package manager)
_MARKERS: Dict[str, Tuple[ProjectType, str, Optional[str], Optional[str]]] = {
    "cargo.toml": (ProjectType.RUST, "rust", "cargo", "cargo"),
    "package.json": (ProjectType.NODEJS, "javascript", "npm", "npm"),
    "pyproject.toml": (ProjectType.PYTHON, "python", "pyproject", "pip"),
    "setup.py": (ProjectType.PYTHON, "python", "setuptools", "pip"),
    "requirements.txt": (ProjectType.PYTHON, "python", None, "pip"),
    "pom.xml": (ProjectType.JAVA, "java", "maven", "maven"),
    "build.gradle": (ProjectType.JAVA, "java", "gradle", "gradle"),
    "go.mod": (ProjectType.GO, "go", "go", "go"),
    "dockerfile": (ProjectType.DOCKER, "dockerfile", "docker", None),
}

# First match wins when several markers are present at the root.
_PRIORITY = [
    "cargo.toml",
    "go.mod",
    "pom.xml",
    "build.gradle",
    "pyproject.toml",
    "setup.py",
    "requirements.txt",
    "package.json",
    "dockerfile",
]

# package.json dependency → framework name
_JS_FRAMEWORKS = {
    "next": "next",
    "react": "react",
    "vue": "vue",
    "@angular/core": "angular",
    "express": "express",
}

_SKIP_DIRS = frozenset({".git", "node_modules", "target", "__pycache__", ".venv", "venv"})


class MarkerFileDetector:
    """Detect a project's type from marker files.

    Parameters
    ----------
    max_depth:
        How many directory levels below the root to scan for config files.
    """

    def __init__(self, max_depth: int = DETECTION_MAX_DEPTH) -> None:
        self._max_depth = max_depth

    async def detect(self, path: Path) -> ProjectInfo:
        return await asyncio.to_thread(self.detect_sync, Path(path))

    def detect_sync(self, path: Path) -> ProjectInfo:
        root = Path(path)
        if not root.is_dir():
            raise ExecutionError(f"Project path does not exist or is not a directory: {root}")

        config_files = self._scan(root)
        root_markers = {p.name.lower() for p in config_files if p.parent == root}
        has_terraform = any(p.suffix == ".tf" for p in config_files)

        for marker in _PRIORITY:
            if marker in root_markers:
                ptype, language, build, pkg = _MARKERS[marker]
                break
        else:
            if has_terraform:
                ptype, language, build, pkg = ProjectType.TERRAFORM, "hcl", "terraform", None
            else:
                ptype, language, build, pkg = ProjectType.GENERIC, "unknown", None, None

        framework = None
        if ptype is ProjectType.NODEJS:
            framework = self._js_framework(root / "package.json")
            if (root / "tsconfig.json").is_file():
                language = "typescript"
            if (root / "yarn.lock").is_file():
                pkg = "yarn"
            elif (root / "pnpm-lock.yaml").is_file():
                pkg = "pnpm"

        info = ProjectInfo(
            project_type=ptype,
            language=language,
            root_path=root,
            build_system=build,
            package_manager=pkg,
            framework=framework,
            config_files=config_files,
        )
        logger.info(
            "Detected %s project at %s (%d config file(s)).",
            ptype.value,
            root,
            len(config_files),
        )
        return info

    def _scan(self, root: Path) -> List[Path]:
        found: List[Path] = []
        root_depth = len(root.parts)
        for dirpath, dirnames, filenames in os.walk(root):
            depth = len(Path(dirpath).parts) - root_depth
            dirnames[:] = sorted(d for d in dirnames if d not in _SKIP_DIRS)
            if depth >= self._max_depth:
                dirnames[:] = []
            for fname in sorted(filenames):
                if fname.lower() in _MARKERS or fname.endswith(".tf"):
                    found.append(Path(dirpath) / fname)
        return found

    @staticmethod
    def _js_framework(package_json: Path) -> Optional[str]:
        try:
            data = json.loads(package_json.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Could not read %s", package_json, exc_info=True)
            return None
        if not isinstance(data, dict):
            return None
        deps: Dict[str, Any] = {}
        for section in ("dependencies", "devDependencies"):
            if isinstance(data.get(section), dict):
                deps.update(data[section])
        for dep_name, framework in _JS_FRAMEWORKS.items():
            if dep_name in deps:
                return framework
        return None

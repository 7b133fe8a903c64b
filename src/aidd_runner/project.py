"""Project layout: metadata directory, state markers, and transcript numbering."""

from __future__ import annotations

import shutil
from pathlib import Path

from .config import (
    FEATURE_LIST_FILE,
    ITERATIONS_DIR_NAME,
    LEGACY_METADATA_DIR_AUTOK,
    LEGACY_METADATA_DIR_AUTOMAKER,
    METADATA_DIR_NAME,
    SPEC_FILE_NAME,
)
from .display import log
from .errors import ConfigError
from .models import ProjectProbe


def ensure_project_dir(project_dir: Path) -> bool:
    """Create the project directory if missing. Returns True if created."""
    if project_dir.is_dir():
        return False
    if project_dir.exists():
        raise ConfigError(f"Project path '{project_dir}' is not a directory")
    log(f"Project directory '{project_dir}' does not exist; creating it...")
    project_dir.mkdir(parents=True)
    return True


def find_or_create_metadata_dir(project_dir: Path) -> Path:
    """Locate the metadata directory, migrating legacy layouts."""
    current = project_dir / METADATA_DIR_NAME
    if current.is_dir():
        return current

    autok = project_dir / LEGACY_METADATA_DIR_AUTOK
    if autok.is_dir():
        shutil.copytree(autok, current, dirs_exist_ok=True)
        log(
            f"Migrated legacy metadata from {LEGACY_METADATA_DIR_AUTOK} "
            f"to {METADATA_DIR_NAME}"
        )
        return current

    automaker = project_dir / LEGACY_METADATA_DIR_AUTOMAKER
    if automaker.is_dir():
        log(f"Using legacy metadata directory: {LEGACY_METADATA_DIR_AUTOMAKER}")
        return automaker

    current.mkdir(parents=True)
    return current


def probe_project(metadata_dir: Path) -> ProjectProbe:
    return ProjectProbe(
        spec_present=(metadata_dir / SPEC_FILE_NAME).is_file(),
        feature_list_present=(metadata_dir / FEATURE_LIST_FILE).is_file(),
    )


def install_spec(spec_file: Path, metadata_dir: Path) -> Path:
    """Copy the specification into the metadata directory (overwrites)."""
    target = metadata_dir / SPEC_FILE_NAME
    metadata_dir.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(spec_file, target)
    return target


def require_spec(metadata_dir: Path, spec_file: Path | None) -> None:
    """A project that has never been given a spec needs one now."""
    if spec_file is None and not (metadata_dir / SPEC_FILE_NAME).is_file():
        raise ConfigError(
            "Missing required argument --spec "
            f"(no {SPEC_FILE_NAME} in {metadata_dir} yet)"
        )


def iterations_dir(metadata_dir: Path) -> Path:
    path = metadata_dir / ITERATIONS_DIR_NAME
    path.mkdir(parents=True, exist_ok=True)
    return path


def next_log_index(log_dir: Path) -> int:
    """One past the highest numeric transcript name in ``log_dir``."""
    last = 0
    for f in log_dir.glob("*.log"):
        if f.stem.isascii() and f.stem.isdigit():
            last = max(last, int(f.stem))
    return last + 1


def transcript_path(log_dir: Path, index: int) -> Path:
    return log_dir / f"{index:03d}.log"

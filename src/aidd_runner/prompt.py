"""Prompt artifacts fed to the assistant on stdin."""

from __future__ import annotations

from pathlib import Path

from .config import FEATURE_LIST_FILE, METADATA_DIR_NAME, SPEC_FILE_NAME
from .errors import ConfigError
from .models import PromptMode

_META = METADATA_DIR_NAME

INITIALIZER_PROMPT = f"""\
## Your Role: Initializer

You are starting a brand new project. Each session is a fresh assistant with
no memory of previous sessions; the files in this directory are the only
shared state.

1. Read the specification at `{_META}/{SPEC_FILE_NAME}` in full.
2. Write `{_META}/{FEATURE_LIST_FILE}`: a JSON array of end-to-end features
   derived from the specification. Each entry has `"description"`,
   `"steps"` (list of strings) and `"passes": false`. Be exhaustive and order
   entries by priority.
3. Set up the project skeleton the specification calls for (build files,
   directory layout, an init script if useful).
4. If time remains, start implementing the highest-priority feature.
5. Before ending, commit your work and write a short progress note to
   `{_META}/progress.md`.

Never remove or rewrite features in `{FEATURE_LIST_FILE}` once written.
"""

CODING_PROMPT = f"""\
## Your Role: Coding Agent

You are continuing work on an existing project. Each session is a fresh
assistant with no memory of previous sessions.

### Get your bearings
- Read `{_META}/{SPEC_FILE_NAME}`, `{_META}/{FEATURE_LIST_FILE}` and
  `{_META}/progress.md`.
- Check the recent git log.

### Iteration Discipline
- **Verify before building.** Re-test one or two features marked passing;
  fix regressions first.
- **One feature at a time.** Pick the highest-priority feature with
  `"passes": false` and implement it completely.
- **Test end to end** before flipping `"passes"` to `true`.
- **Only edit the `passes` field** of `{FEATURE_LIST_FILE}`; never delete or
  reword features.

### Before ending
- Commit your work with a descriptive message.
- Append what you did and what is next to `{_META}/progress.md`.
- Leave the project in a working state.
"""

_BUILTIN = {
    PromptMode.INITIALIZER: INITIALIZER_PROMPT,
    PromptMode.CODING: CODING_PROMPT,
}


def prompt_file_name(mode: PromptMode) -> str:
    return f"{mode.value}.md"


def resolve_prompt(mode: PromptMode, prompts_dir: Path | None = None) -> bytes:
    """Return the stdin payload for ``mode``.

    A ``prompts_dir`` holding ``initializer.md`` / ``coding.md`` overrides the
    built-in text for whichever files it has.
    """
    if prompts_dir is not None:
        if not prompts_dir.is_dir():
            raise ConfigError(f"Prompts directory '{prompts_dir}' does not exist")
        override = prompts_dir / prompt_file_name(mode)
        if override.is_file():
            return override.read_bytes()
    return _BUILTIN[mode].encode("utf-8")

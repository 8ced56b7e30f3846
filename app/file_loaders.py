"""
app/file_loaders.py
-----------------------------------------------------------------------------
Prompt-file loading for the Chevening Course Finder.

The static instruction and the per-submission user message template are kept
as plain text under ``app/prompts/`` so they can be reviewed and edited
without touching code.

All path resolution is relative to this file's parent directory (``app/``),
so the loaders work regardless of the working directory from which uvicorn
is launched.

Exports
-------
load_prompt(name) -> str
    Load a named prompt text file.

load_system_instruction() -> str
    Read the fixed role / rules instruction (``system_instruction.txt``).

load_user_message_template() -> str
    Read the user message template (``user_message.txt``).
"""

from __future__ import annotations

from pathlib import Path

# Resolve directories relative to this file so paths work regardless of
# the current working directory at import time.
_HERE = Path(__file__).parent
PROMPTS_DIR = _HERE / "prompts"

SYSTEM_INSTRUCTION_NAME = "system_instruction"
USER_MESSAGE_NAME = "user_message"


def load_prompt(name: str) -> str:
    """
    Load a named prompt text file from ``app/prompts/``.

    Parameters
    ----------
    name : Bare filename without extension (e.g. ``"system_instruction"``).

    Returns
    -------
    str : The prompt text content, stripped of surrounding whitespace.

    Raises
    ------
    FileNotFoundError
        If the file doesn't exist (indicates a broken deployment).
    """
    path = PROMPTS_DIR / f"{name}.txt"
    if not path.exists():
        raise FileNotFoundError(f"Prompt '{name}' not found at {path}")
    return path.read_text(encoding="utf-8").strip()


def load_system_instruction() -> str:
    return load_prompt(SYSTEM_INSTRUCTION_NAME)


def load_user_message_template() -> str:
    """
    Read the user message template.

    The template uses ``str.format`` placeholders: ``{target_fields}``,
    ``{preferred_locations}``, ``{start_year}`` and ``{impact_statement}``.
    """
    return load_prompt(USER_MESSAGE_NAME)

"""
Shell profile edits — idempotent blocks in ~/.bashrc, ~/.zshrc, ~/.profile.

A block is identified by a marker string. If the marker is already in
the file the block is not written again, so repeated runs never
duplicate PATH exports.
"""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def ensure_profile_block(path: Path, marker: str, block: str) -> bool:
    """Append ``block`` to ``path`` unless ``marker`` is already present.

    The file must exist; profiles are never created here.

    Returns:
        True when the block was written.
    """
    if not path.is_file():
        return False
    content = path.read_text(encoding="utf-8", errors="replace")
    if marker in content:
        return False

    with open(path, "a", encoding="utf-8") as f:
        if content and not content.endswith("\n"):
            f.write("\n")
        f.write("\n" + block.rstrip("\n") + "\n")
    logger.info("Added %s to %s", marker, path)
    return True


def profile_targets(home: Path) -> list[Path]:
    """Profiles that should carry a PATH addition.

    With Oh-My-Zsh, edits go to ``~/.zshrc.local`` because the managed
    ``~/.zshrc`` is regenerated.
    """
    targets = [home / ".bashrc"]
    zshrc = home / ".zshrc"
    if zshrc.is_file():
        if "oh-my-zsh" in zshrc.read_text(encoding="utf-8", errors="replace"):
            local = home / ".zshrc.local"
            local.touch(exist_ok=True)
            targets.append(local)
        else:
            targets.append(zshrc)
    targets.append(home / ".profile")
    return targets


def add_path_to_profiles(home: Path, directory: str, comment: str, marker: str) -> list[Path]:
    """Prepend ``directory`` to PATH in every existing shell profile.

    Returns:
        The profiles that were modified.
    """
    block = f"# {comment}\nexport PATH=\"{directory}:$PATH\""
    return [p for p in profile_targets(home) if ensure_profile_block(p, marker, block)]

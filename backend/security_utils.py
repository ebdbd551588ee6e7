"""Path safety helpers for files written from provider-supplied names."""

import os
import re

_UNSAFE_FILENAME_CHARS = re.compile(r'[\x00-\x1f<>:"/\\|?*]')


def is_safe_path(file_path: str, base_dir: str) -> bool:
    """Return True iff file_path resolves inside base_dir (symlinks resolved).

    Args:
        file_path: Path to validate.
        base_dir: Allowed base directory.

    Returns:
        True if file_path is inside base_dir after resolving symlinks.
    """
    real_path = os.path.realpath(file_path)
    real_base = os.path.realpath(base_dir)
    return real_path.startswith(real_base + os.sep) or real_path == real_base


def sanitize_filename(name: str, fallback: str) -> str:
    """Reduce a remote file name to a safe single path component.

    Directory parts are dropped, control and reserved characters replaced
    with "_". Empty, "." and ".." results fall back to ``fallback``.
    """
    base = os.path.basename((name or "").replace("\\", "/")).strip()
    base = _UNSAFE_FILENAME_CHARS.sub("_", base).strip(" .")
    if not base or base in (".", ".."):
        return fallback
    return base

"""Color & style helpers.

Decisions:
- Truecolor preferred; falls back to 256-color cube if unsupported.
- Disables automatically when not a TTY unless FORCE_COLOR=1.
- Honors NO_COLOR for complete disable.
- Supports palette overrides via environment or a .env file in the
  working directory (real environment variables win).
"""
from __future__ import annotations
import os, sys
from pathlib import Path

from loguru import logger

_FORCE = os.environ.get("FORCE_COLOR", "").lower() in {"1", "true", "yes", "on"}
_NO_COLOR = os.environ.get("NO_COLOR") is not None
_ENABLE = (_FORCE or sys.stdout.isatty()) and not _NO_COLOR
_COLORTERM = os.environ.get("COLORTERM", "").lower()
_USE_TRUECOLOR = _ENABLE and any(tok in _COLORTERM for tok in ("truecolor", "24bit"))

PALETTE_KEYS = ('TASK_CLI_PRIMARY', 'TASK_CLI_TODO', 'TASK_CLI_INPROGRESS', 'TASK_CLI_DONE')

def _code(part: str) -> str:
    return f"\033[{part}m" if _ENABLE else ''

def _valid_hex(value: str) -> bool:
    h = value.lstrip('#')
    return len(h) == 6 and all(c in '0123456789abcdefABCDEF' for c in h)

def _hex_to_rgb(hex_code: str) -> tuple[int,int,int]:
    h = hex_code.lstrip('#')
    return int(h[0:2],16), int(h[2:4],16), int(h[4:6],16)

def _fg_256(r: int, g: int, b: int) -> str:
    """Approximate RGB to xterm 256-color cube."""
    def to_6(x: int) -> int:
        return int(round(x / 255 * 5))
    idx = 16 + 36 * to_6(r) + 6 * to_6(g) + to_6(b)
    return f"\033[38;5;{idx}m"

def _from_hex(hex_code: str) -> str:
    if not _ENABLE:
        return ''
    r, g, b = _hex_to_rgb(hex_code)
    if _USE_TRUECOLOR:
        return f"\033[38;2;{r};{g};{b}m"
    return _fg_256(r, g, b)

def read_env_file(path: Path) -> dict[str, str]:
    """Collect palette overrides from a KEY=VALUE file; bad entries are skipped."""
    overrides: dict[str, str] = {}
    try:
        lines = path.read_text(encoding='utf-8').splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Ignoring unreadable env file {}: {}", path, exc)
        return overrides
    for line in lines:
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        k, v = (part.strip() for part in line.split('=', 1))
        if k not in PALETTE_KEYS:
            continue
        if _valid_hex(v):
            overrides[k] = '#' + v.lstrip('#')
        else:
            logger.debug("Ignoring invalid color {}={!r} in {}", k, v, path)
    return overrides

def resolve_palette(defaults: dict[str, str], env_file: Path | None = None) -> dict[str, str]:
    """Priority: real env var > .env override > default."""
    file_overrides = read_env_file(env_file) if env_file and env_file.exists() else {}
    resolved: dict[str, str] = {}
    for key, default in defaults.items():
        value = os.environ.get(key)
        if value is not None and not _valid_hex(value):
            logger.debug("Ignoring invalid color {}={!r} from environment", key, value)
            value = None
        resolved[key] = '#' + value.lstrip('#') if value else file_overrides.get(key, default)
    return resolved

RESET = _code('0')
BOLD = _code('1')
DIM = _code('2')

PALETTE_DEFAULTS = {
    'TASK_CLI_PRIMARY': '#476EAE',
    'TASK_CLI_TODO': '#48B3AF',
    'TASK_CLI_INPROGRESS': '#F6FF99',
    'TASK_CLI_DONE': '#A7E399',
}
PALETTE = resolve_palette(PALETTE_DEFAULTS, Path.cwd() / '.env')

PRIMARY = _from_hex(PALETTE['TASK_CLI_PRIMARY'])
STATUS_COLOR = {
    'todo': _from_hex(PALETTE['TASK_CLI_TODO']),
    'in-progress': _from_hex(PALETTE['TASK_CLI_INPROGRESS']),
    'done': _from_hex(PALETTE['TASK_CLI_DONE']),
}
HEADER_COLOR = PRIMARY
ID_COLOR = PRIMARY + BOLD
EMPTY_COLOR = DIM + PRIMARY

def color(text: str, *styles: str) -> str:
    """Apply ANSI styles to a given text."""
    if not _ENABLE:
        return text
    return ''.join(styles) + text + RESET

__all__ = [
    'color','RESET','BOLD','DIM','STATUS_COLOR','HEADER_COLOR','ID_COLOR','EMPTY_COLOR',
    'PALETTE','PALETTE_DEFAULTS','read_env_file','resolve_palette',
]

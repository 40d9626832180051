"""Configuration from environment variables and .env files.

Load order (first wins):
  1. Existing OS environment variables, never overwritten.
  2. .env file at --env-file path (if explicitly provided).
  3. .env file walking up from cwd, stopping at .git (file or dir).

Recognised variables:
  RECOLOR_CHUNK_SIZE    pixels per incremental slice (default 10000)
  RECOLOR_DEBOUNCE_MS   watch/preview debounce in milliseconds (default 300)
  RECOLOR_TOLERANCE     tolerance for rules that do not give one (default 30)
  RECOLOR_OUTPUT        default output path (default color-changed-image.png)
"""

import os
from dataclasses import dataclass
from pathlib import Path

from recolor.core.engine import DEFAULT_CHUNK_PIXELS
from recolor.core.imageio import DEFAULT_OUTPUT_NAME


def _find_dotenv(start: Path) -> Path | None:
    """Walk up from start to the first .env, giving up at a .git boundary."""
    current = start.resolve()
    while True:
        candidate = current / '.env'
        if candidate.is_file():
            return candidate
        # .git is a dir in a normal clone, a file in a worktree
        if (current / '.git').exists():
            return None
        if current.parent == current:
            return None
        current = current.parent


def _parse_dotenv(path: Path) -> dict[str, str]:
    """Parse KEY=value / KEY="value" lines. Comments and junk lines are skipped."""
    result: dict[str, str] = {}
    for line in path.read_text(encoding='utf-8').splitlines():
        line = line.strip()
        if not line or line.startswith('#') or '=' not in line:
            continue
        key, _, raw_value = line.partition('=')
        key = key.strip()
        if key.startswith('export '):
            key = key[len('export ') :].strip()
        if key:
            result[key] = raw_value.strip().strip('"').strip("'")
    return result


def load_env(env_file: str | None = None) -> Path | None:
    """Load .env into os.environ for keys not already set.

    Returns the path that was loaded, or None if no .env was found/used.
    """
    if env_file:
        path = Path(env_file)
        if not path.is_file():
            return None
    else:
        path = _find_dotenv(Path.cwd())
        if path is None:
            return None

    for key, value in _parse_dotenv(path).items():
        os.environ.setdefault(key, value)
    return path


def _number(name: str, default: float, cast: type = float, minimum: float = 0) -> float:
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f'{name} must be a number, got {raw!r}') from None
    if value < minimum:
        raise ValueError(f'{name} must be >= {minimum}, got {raw!r}')
    return value


@dataclass(frozen=True)
class Settings:
    chunk_size: int = DEFAULT_CHUNK_PIXELS
    debounce: float = 0.3  # seconds
    tolerance: float = 30.0
    output: str = DEFAULT_OUTPUT_NAME

    @classmethod
    def from_env(cls) -> 'Settings':
        return cls(
            chunk_size=int(_number('RECOLOR_CHUNK_SIZE', DEFAULT_CHUNK_PIXELS, cast=int, minimum=1)),
            debounce=_number('RECOLOR_DEBOUNCE_MS', 300) / 1000.0,
            tolerance=_number('RECOLOR_TOLERANCE', 30.0),
            output=os.environ.get('RECOLOR_OUTPUT', '').strip() or DEFAULT_OUTPUT_NAME,
        )

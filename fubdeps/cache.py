"""
Status Cache

Time-bounded store of the last known status of every tool.

The in-memory map holds at most one ToolStatus per tool. It is persisted
as JSON lines (``status.jsonl``), one object per tool:

    {"schema": 1, "tool": "gum", "status": "installed", "version": "0.13.0",
     "path": "/usr/bin/gum", "install_method": "apt", "last_checked": 1700000000.0}

The file is rewritten as a whole on save (temp file + rename), so stale
entries are replaced rather than appended.
"""

import json
import logging
import os
import threading
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import CacheCorrupt

logger = logging.getLogger(__name__)

CACHE_SCHEMA_VERSION = 1
DEFAULT_TTL = 24 * 60 * 60

STATUS_FILE = 'status.jsonl'
PLATFORM_FILE = 'platform.id'

STATUS_NOT_INSTALLED = 'not_installed'
STATUS_INSTALLED = 'installed'
STATUS_OUTDATED = 'outdated'
STATUS_INCOMPATIBLE = 'incompatible'
STATUS_UNKNOWN = 'unknown'

TOOL_STATUSES = (
    STATUS_NOT_INSTALLED,
    STATUS_INSTALLED,
    STATUS_OUTDATED,
    STATUS_INCOMPATIBLE,
    STATUS_UNKNOWN,
)


@dataclass
class ToolStatus:
    """Last known state of a single tool"""
    tool: str
    status: str
    version: Optional[str] = None
    path: Optional[str] = None
    install_method: Optional[str] = None
    last_checked: float = 0.0

    def __post_init__(self):
        if self.status not in TOOL_STATUSES:
            raise ValueError(f"Unknown tool status: {self.status}")

    @property
    def is_installed(self) -> bool:
        return self.status == STATUS_INSTALLED

    @property
    def is_usable(self) -> bool:
        """Installed and working; an outdated tool still counts"""
        return self.status in (STATUS_INSTALLED, STATUS_OUTDATED)

    @property
    def is_present(self) -> bool:
        """Executable found on the system, whatever its version"""
        return self.status in (STATUS_INSTALLED, STATUS_OUTDATED, STATUS_INCOMPATIBLE)

    def age(self, now: Optional[float] = None) -> float:
        return (now if now is not None else time.time()) - self.last_checked

    def is_fresh(self, ttl: float = DEFAULT_TTL, now: Optional[float] = None) -> bool:
        return self.age(now) < ttl

    def to_dict(self) -> Dict[str, Any]:
        data = {'schema': CACHE_SCHEMA_VERSION}
        data.update(asdict(self))
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ToolStatus':
        if data.get('schema') != CACHE_SCHEMA_VERSION:
            raise ValueError(f"unsupported schema {data.get('schema')!r}")
        return cls(
            tool=str(data['tool']),
            status=str(data['status']),
            version=data.get('version'),
            path=data.get('path'),
            install_method=data.get('install_method'),
            last_checked=float(data['last_checked']),
        )


class StatusCache:
    """TTL-bounded tool status cache backed by a JSON lines file"""

    def __init__(self, cache_dir: Union[str, Path], ttl: float = DEFAULT_TTL,
                 platform_id: Optional[str] = None, clock=time.time):
        self.cache_dir = Path(cache_dir)
        self.status_file = self.cache_dir / STATUS_FILE
        self.platform_file = self.cache_dir / PLATFORM_FILE
        self.ttl = ttl
        self.platform_id = platform_id
        self.clock = clock

        self._entries: Dict[str, ToolStatus] = {}
        self._lock = threading.Lock()
        self._last_update: Optional[float] = None

    # Persistence

    def load(self) -> int:
        """
        Load entries from disk

        Corrupt lines are logged and skipped; those tools are simply
        re-detected later. A changed platform id invalidates everything.

        Returns:
            Number of entries loaded
        """
        if self._platform_changed():
            logger.info("🔄 Platform changed since last run, invalidating dependency cache")
            self.clear()
            self._write_platform_id()
            return 0

        if not self.status_file.exists():
            logger.debug(f"Status cache not found: {self.status_file}")
            return 0

        loaded = {}
        try:
            with open(self.status_file, 'rb') as f:
                for line_no, raw in enumerate(f, start=1):
                    if not raw.strip():
                        continue
                    try:
                        status = self._decode(raw, line_no)
                    except CacheCorrupt as e:
                        logger.warning(f"⚠️  {e}; entry discarded")
                        continue
                    loaded[status.tool] = status
        except OSError as e:
            logger.warning(f"⚠️  Could not read status cache {self.status_file}: {e}")
            return 0

        with self._lock:
            self._entries = loaded
            self._last_update = self.status_file.stat().st_mtime

        logger.debug(f"📋 Loaded {len(loaded)} cached tool statuses")
        return len(loaded)

    @staticmethod
    def _decode(raw: bytes, line_no: int) -> ToolStatus:
        try:
            data = json.loads(raw.decode('utf-8'))
        except UnicodeDecodeError:
            raise CacheCorrupt(line_no, "not valid UTF-8")
        except json.JSONDecodeError as e:
            raise CacheCorrupt(line_no, f"invalid JSON ({e.msg})")
        if not isinstance(data, dict):
            raise CacheCorrupt(line_no, "entry is not an object")
        try:
            return ToolStatus.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise CacheCorrupt(line_no, str(e))

    def save(self) -> None:
        """Write all entries atomically (single writer)"""
        with self._lock:
            entries = sorted(self._entries.values(), key=lambda status: status.tool)
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            tmp_file = self.status_file.with_suffix('.jsonl.tmp')
            with open(tmp_file, 'w', encoding='utf-8') as f:
                for status in entries:
                    f.write(json.dumps(status.to_dict(), sort_keys=True) + '\n')
            os.replace(tmp_file, self.status_file)
            self._last_update = self.clock()

        self._write_platform_id()
        logger.debug(f"💾 Saved {len(entries)} tool statuses to {self.status_file}")

    def _platform_changed(self) -> bool:
        if not self.platform_id or not self.platform_file.exists():
            return False
        try:
            stored = self.platform_file.read_text(encoding='utf-8').strip()
        except OSError:
            return False
        except UnicodeDecodeError:
            return True
        return stored != self.platform_id

    def _write_platform_id(self) -> None:
        if not self.platform_id:
            return
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.platform_file.write_text(self.platform_id + '\n', encoding='utf-8')

    # Access

    def put(self, status: ToolStatus) -> None:
        """Store status for its tool, replacing any previous entry"""
        with self._lock:
            self._entries[status.tool] = status

    def get(self, tool: str, now: Optional[float] = None) -> Optional[ToolStatus]:
        """Fresh status for tool, or None when missing or stale"""
        with self._lock:
            status = self._entries.get(tool)
        if status is None:
            return None
        if not status.is_fresh(self.ttl, now if now is not None else self.clock()):
            return None
        return status

    def peek(self, tool: str) -> Optional[ToolStatus]:
        """Status for tool regardless of age"""
        with self._lock:
            return self._entries.get(tool)

    def is_fresh(self, tool: str, now: Optional[float] = None) -> bool:
        return self.get(tool, now) is not None

    def was_recently_checked(self, tool: str, max_age: float) -> bool:
        status = self.peek(tool)
        return status is not None and status.age(self.clock()) < max_age

    def status_of(self, tool: str) -> str:
        """Fresh status value for tool, 'unknown' when missing or stale"""
        status = self.get(tool)
        return status.status if status else STATUS_UNKNOWN

    def snapshot(self, now: Optional[float] = None) -> Dict[str, ToolStatus]:
        """Copy of all fresh entries"""
        now = now if now is not None else self.clock()
        with self._lock:
            return {name: status for name, status in self._entries.items()
                    if status.is_fresh(self.ttl, now)}

    def tools(self) -> List[str]:
        with self._lock:
            return sorted(self._entries)

    # Maintenance

    def invalidate(self, tool: Optional[str] = None) -> None:
        """Forget one tool, or every tool when tool is None"""
        with self._lock:
            if tool is None:
                self._entries.clear()
            else:
                self._entries.pop(tool, None)
        logger.debug(f"🧹 Invalidated cache for {tool or 'all tools'}")

    def clear(self) -> None:
        """Drop all entries and remove the cache file"""
        with self._lock:
            self._entries.clear()
            self._last_update = None
            if self.status_file.exists():
                self.status_file.unlink()

    def stats(self) -> Dict[str, Any]:
        now = self.clock()
        with self._lock:
            entries = list(self._entries.values())
        fresh = [status for status in entries if status.is_fresh(self.ttl, now)]

        by_status = {name: 0 for name in TOOL_STATUSES}
        for status in fresh:
            by_status[status.status] += 1

        return {
            'total': len(entries),
            'fresh': len(fresh),
            'stale': len(entries) - len(fresh),
            'by_status': by_status,
            'ttl': self.ttl,
            'last_update': self._last_update,
            'cache_file': str(self.status_file),
            'cache_size': self.status_file.stat().st_size if self.status_file.exists() else 0,
            'platform_id': self.platform_id,
        }

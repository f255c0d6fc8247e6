from __future__ import annotations

import json
import os
import shutil
import tempfile
import time
from typing import Any, Dict, Optional, Tuple


def read_json(path: str) -> Tuple[bool, Dict[str, Any], Optional[str]]:
    if not os.path.exists(path):
        return False, {}, "missing"
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
        if not isinstance(obj, dict):
            return False, {}, "not_object"
        return True, obj, None
    except json.JSONDecodeError as e:
        return False, {}, f"corrupt_json:{e}"
    except OSError as e:
        return False, {}, str(e)


def atomic_write_json(path: str, obj: Dict[str, Any], *, backups_dir: Optional[str] = None, keep: int = 20) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    if backups_dir and os.path.exists(path):
        os.makedirs(backups_dir, exist_ok=True)
        base = os.path.splitext(os.path.basename(path))[0]
        ts = time.strftime("%Y%m%d_%H%M%S", time.gmtime())
        b = os.path.join(backups_dir, f"{base}.{ts}.{time.time_ns() % 1_000_000:06d}.json")
        try:
            shutil.copy2(path, b)
        except OSError:
            pass
        _enforce_backup_retention(backups_dir, prefix=f"{base}.", keep=keep)

    fd, tmp = tempfile.mkstemp(prefix=".tmp_", suffix=".json", dir=os.path.dirname(path) or ".")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2, ensure_ascii=False, sort_keys=True)
            f.write("\n")
            try:
                f.flush()
                os.fsync(f.fileno())
            except OSError:
                pass
        os.replace(tmp, path)
    finally:
        try:
            if os.path.exists(tmp):
                os.remove(tmp)
        except OSError:
            pass


def _enforce_backup_retention(backups_dir: str, *, prefix: str, keep: int) -> None:
    try:
        files = [os.path.join(backups_dir, f) for f in os.listdir(backups_dir) if f.startswith(prefix) and f.endswith(".json")]
        files.sort(key=lambda p: os.path.getmtime(p), reverse=True)
        for p in files[int(keep) :]:
            try:
                os.remove(p)
            except OSError:
                pass
    except OSError:
        return

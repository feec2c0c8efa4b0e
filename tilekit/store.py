from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, Tuple

from common.types import TileCoord
from tilekit.errors import (
    InternalError,
    InvalidCoordinate,
    PathEscape,
    TileNotFound,
    UnsupportedExtension,
)


ALLOWED_EXTENSIONS: Tuple[str, ...] = ("png", "jpg", "jpeg", "webp")

MEDIA_TYPES: Dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
}

_DIGITS = re.compile(r"[0-9]+")


class TileStore:
    """
    File-backed tile tree shared by the downloader (writer) and the server (reader).

        root/
          └─ {z}/
              └─ {x}/
                  └─ {y}.{ext}

    Writes land in a `.part` sibling first and are renamed into place, so readers
    never see half a tile and re-running a batch simply overwrites.
    """

    def __init__(self, root: str | Path = "tiles"):
        self.root = Path(root).expanduser().resolve()

    # -------- writer side --------

    def path_for(self, coord: TileCoord, ext: str) -> Path:
        return self.root / str(coord.z) / str(coord.x) / f"{coord.y}.{ext}"

    def exists(self, coord: TileCoord, ext: str) -> bool:
        return self.path_for(coord, ext).is_file()

    def write(self, coord: TileCoord, ext: str, data: bytes) -> Path:
        path = self.path_for(coord, ext)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".part")
        try:
            with tmp.open("wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
        return path

    def ensure_root(self) -> bool:
        """Create the root if missing; True if it had to be created."""
        if self.root.exists():
            return False
        self.root.mkdir(parents=True, exist_ok=True)
        return True

    # -------- reader side --------

    def resolve(self, z: str, x: str, y: str, ext: str) -> Path:
        """
        Validate raw path segments and map them to a file under root.

        Checks run in a fixed order, each with its own error: digits-only
        coordinates, allowed extension, containment under root.
        """
        if not all(_DIGITS.fullmatch(v or "") for v in (z, x, y)):
            raise InvalidCoordinate()
        extension = ext.lower()
        if extension not in ALLOWED_EXTENSIONS:
            raise UnsupportedExtension(extension, ALLOWED_EXTENSIONS)
        return self.contain(Path(z) / x / f"{y}.{extension}")

    def contain(self, relative: str | Path) -> Path:
        """Resolve `relative` under root (following symlinks); PathEscape if it lands outside."""
        candidate = (self.root / relative).resolve()
        if not candidate.is_relative_to(self.root):
            raise PathEscape()
        return candidate

    def read(self, path: Path) -> bytes:
        try:
            with path.open("rb") as f:
                return f.read()
        except (FileNotFoundError, NotADirectoryError) as e:
            raise TileNotFound() from e
        except OSError as e:
            raise InternalError() from e

    # -------- index --------

    def stats(self) -> Dict[str, int]:
        """Count tiles laid out as {z}/{x}/{y}.{ext} with an allowed extension."""
        zooms = set()
        tiles = 0
        if not self.root.is_dir():
            return {"zooms": 0, "tiles": 0}
        for f in self.root.glob("*/*/*.*"):
            ext = f.suffix[1:].lower()
            if ext not in ALLOWED_EXTENSIONS or not f.is_file():
                continue
            try:
                z = int(f.parent.parent.name)
                int(f.parent.name)
                int(f.stem)
            except ValueError:
                continue
            zooms.add(z)
            tiles += 1
        return {"zooms": len(zooms), "tiles": tiles}

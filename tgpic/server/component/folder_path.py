# ========= Copyright 2025-2026 @ tgpic Authors. All Rights Reserved. =========
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ========= Copyright 2025-2026 @ tgpic Authors. All Rights Reserved. =========

"""Folder path normalization and validation.

Folders are virtual: a path string on each image row. Stored paths always
start and end with ``/``; each segment is letters, digits, underscore or CJK
ideographs.
"""

import re
from typing import Iterable, List

from tgpic.server.component import code
from tgpic.server.exception.exception import UserException

ROOT = "/"
_SEGMENT = re.compile(r"[A-Za-z0-9_一-鿿]+")


def normalize(path: str | None) -> str:
    """Return ``path`` as ``/seg/seg/``; raise ``UserException`` on bad segments."""
    if path is None:
        return ROOT
    raw = path.strip()
    if raw in ("", ROOT):
        return ROOT
    segments = [s for s in raw.split("/") if s != ""]
    for segment in segments:
        if not _SEGMENT.fullmatch(segment):
            raise UserException(code.invalid_folder, f"Invalid folder name: {segment!r}")
    return ROOT + "/".join(segments) + "/"


def is_within(path: str, ancestor: str) -> bool:
    """True when ``path`` equals ``ancestor`` or lies below it."""
    return path.startswith(ancestor)


def ancestors(path: str) -> List[str]:
    """``/a/b/`` -> ``["/", "/a/", "/a/b/"]``."""
    result = [ROOT]
    current = ROOT
    for segment in [s for s in path.split("/") if s]:
        current = f"{current}{segment}/"
        result.append(current)
    return result


def expand(paths: Iterable[str]) -> List[str]:
    folders = set()
    for path in paths:
        folders.update(ancestors(path or ROOT))
    return sorted(folders)

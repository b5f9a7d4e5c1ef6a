"""Resolve institution names against a local IPEDS-style directory file."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from alumni_geo.models import NameResolution

logger = logging.getLogger(__name__)

_ALIAS_SPLIT = re.compile(r"[,;|]")
_PARENTHETICAL = re.compile(r"\s*\([^)]*\)")
_PREPOSITIONS = re.compile(r"\b(in|at|of the)\b")
_AND = re.compile(r"\band\b")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class College:
    unitid: int
    name: str
    city: str = ""
    state: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None


def aggressive_normalize(name: str) -> str:
    """Looser key: no periods, parentheticals, linking words or "and"."""
    value = name.lower().replace("@", " at ")
    value = value.replace(".", "")
    value = _PARENTHETICAL.sub("", value)
    value = _PREPOSITIONS.sub("", value)
    value = _AND.sub(" ", value)
    return _WHITESPACE.sub(" ", value).strip()


def _to_float(value: Any) -> Optional[float]:
    try:
        if value is None or value == "":
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


class CollegeDirectory:
    """In-memory name index over a list of institutions."""

    def __init__(self, colleges: Iterable[College]) -> None:
        self._index: Dict[str, College] = {}
        count = 0
        for college in colleges:
            count += 1
            self._add(college.name, college)
        logger.info("Loaded %d colleges with %d indexed names", count, len(self._index))

    @classmethod
    def from_records(cls, records: Iterable[Dict[str, Any]]) -> "CollegeDirectory":
        colleges = []
        alias_map: Dict[int, List[str]] = {}
        for record in records:
            name = (record.get("name") or "").strip()
            if not name:
                continue
            college = College(
                unitid=int(record.get("unitid") or 0),
                name=name,
                city=record.get("city") or "",
                state=record.get("state") or "",
                latitude=_to_float(record.get("latitude")),
                longitude=_to_float(record.get("longitude")),
            )
            colleges.append(college)
            aliases = [a.strip() for a in _ALIAS_SPLIT.split(record.get("alias") or "") if a.strip()]
            if aliases:
                alias_map[len(colleges) - 1] = aliases

        directory = cls(colleges)
        for position, aliases in alias_map.items():
            for alias in aliases:
                directory._add(alias, colleges[position])
        return directory

    @classmethod
    def from_file(cls, path: str | Path) -> "CollegeDirectory":
        file_path = Path(path)
        with file_path.open("r", encoding="utf-8") as fh:
            records = json.load(fh)
        if not isinstance(records, list) or not records:
            raise ValueError(f"College directory {file_path} is empty or invalid")
        return cls.from_records(records)

    def _add(self, name: str, college: College) -> None:
        key = name.lower().strip()
        if not key:
            return
        self._index.setdefault(key, college)
        loose = aggressive_normalize(key)
        if loose and loose != key:
            self._index.setdefault(loose, college)

    def __len__(self) -> int:
        return len(self._index)

    def match(self, name: str) -> Optional[tuple]:
        """Return ``(college, confidence)`` or None."""
        trimmed = (name or "").strip().lower()
        if not trimmed:
            return None

        exact = self._index.get(trimmed)
        if exact is not None:
            return exact, 1.0

        loose = aggressive_normalize(trimmed)
        loose_hit = self._index.get(loose)
        if loose_hit is not None:
            logger.debug("Normalized match: %s -> %s", trimmed, loose_hit.name)
            return loose_hit, 0.9

        if len(loose) >= 4:
            for indexed_name, college in self._index.items():
                if loose in indexed_name:
                    logger.debug("Substring match: %s -> %s", trimmed, college.name)
                    return college, 0.8
        return None

    def resolve_names(self, names: Sequence[str]) -> List[NameResolution]:
        resolutions: List[NameResolution] = []
        for name in names:
            hit = self.match(name)
            if hit is None:
                resolutions.append(NameResolution(original_name=name))
                continue
            college, confidence = hit
            resolutions.append(
                NameResolution(
                    original_name=name,
                    standard_name=college.name,
                    latitude=college.latitude,
                    longitude=college.longitude,
                    confidence=confidence,
                )
            )
        logger.info(
            "Directory resolved %d/%d names",
            sum(1 for r in resolutions if r.standard_name),
            len(resolutions),
        )
        return resolutions

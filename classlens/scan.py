"""Input traversal: class files, directories, JAR archives and classpaths."""

from __future__ import annotations

import logging
import os
import zipfile
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from .classfile import read_class
from .config import AnalysisConfig
from .errors import ClassFormatError, ScanError
from .ir import Class

MANIFEST_NAME = "META-INF/MANIFEST.MF"
ANALYSIS_TARGET = "analysisTarget"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    """A scanned file or archive entry, indexed for SARIF provenance."""

    uri: str
    length: int
    parent_index: Optional[int] = None
    roles: Tuple[str, ...] = ()

    def to_sarif(self) -> Dict[str, object]:
        payload: Dict[str, object] = {"location": {"uri": self.uri}, "length": self.length}
        if self.parent_index is not None:
            payload["parentIndex"] = self.parent_index
        if self.roles:
            payload["roles"] = list(self.roles)
        return payload


@dataclass
class ScanOutput:
    """Everything collected from the input and its classpath."""

    artifacts: List[Artifact] = field(default_factory=list)
    class_count: int = 0
    classes: List[Class] = field(default_factory=list)
    target_classes: List[Class] = field(default_factory=list)


class InputScanner:
    """Accumulate artifacts and classes while walking paths in sorted order."""

    def __init__(self, config: Optional[AnalysisConfig] = None) -> None:
        self.config = config or AnalysisConfig()
        self.output = ScanOutput()

    def scan_path(
        self, path: Path, *, is_input: bool, strict: bool, top_level: bool = False
    ) -> None:
        """Scan ``path``. Only a ``top_level`` input file or JAR is an analysis target."""

        if path.is_dir():
            self._scan_dir(path, is_input=is_input)
            return

        suffix = path.suffix.lower()
        if suffix == ".class":
            self._scan_class_file(path, is_input=is_input, target=is_input and top_level)
        elif suffix == ".jar":
            self._scan_jar(path, is_input=is_input, target=is_input and top_level)
        elif strict:
            raise ScanError(f"unsupported input file: {path}")

    def _scan_dir(self, path: Path, *, is_input: bool) -> None:
        try:
            entries = sorted(path.iterdir(), key=path_key)
        except OSError as exc:
            raise ScanError(f"failed to read directory {path}: {exc}") from exc
        for entry in entries:
            self.scan_path(entry, is_input=is_input, strict=False)

    def _scan_class_file(self, path: Path, *, is_input: bool, target: bool) -> None:
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise ScanError(f"failed to read {path}: {exc}") from exc
        index = self._push_artifact(
            Artifact(path_key(path), len(data), roles=_roles(target))
        )
        self._add_class(data, index, str(path), is_input=is_input)

    def _scan_jar(self, path: Path, *, is_input: bool, target: bool) -> None:
        try:
            archive = zipfile.ZipFile(path)
        except (OSError, zipfile.BadZipFile) as exc:
            raise ScanError(f"failed to read {path}: {exc}") from exc

        with archive:
            jar_index = self._push_artifact(
                Artifact(path_key(path), path.stat().st_size, roles=_roles(target))
            )
            names = sorted(
                info.filename
                for info in archive.infolist()
                if not info.is_dir()
                and info.filename.endswith(".class")
                and not info.filename.endswith("module-info.class")
            )
            for name in names:
                try:
                    data = archive.read(name)
                except (OSError, zipfile.BadZipFile) as exc:
                    raise ScanError(f"failed to read {path}:{name}: {exc}") from exc
                index = self._push_artifact(
                    Artifact(jar_entry_uri(path, name), len(data), parent_index=jar_index)
                )
                self._add_class(data, index, f"{path}:{name}", is_input=is_input)

    def _add_class(self, data: bytes, artifact_index: int, source: str, *, is_input: bool) -> None:
        try:
            parsed = read_class(
                data,
                artifact_index,
                on_decode_error=self.config.on_decode_error,
            )
        except ClassFormatError as exc:
            raise ClassFormatError(f"failed to parse {source}: {exc}") from exc
        logger.debug("parsed %s from %s (%d methods)", parsed.name, source, len(parsed.methods))
        self.output.class_count += 1
        self.output.classes.append(parsed)
        if is_input:
            self.output.target_classes.append(parsed)

    def _push_artifact(self, artifact: Artifact) -> int:
        index = len(self.output.artifacts)
        self.output.artifacts.append(artifact)
        return index


def scan_inputs(
    input_path: Path,
    classpath: Sequence[Path] = (),
    config: Optional[AnalysisConfig] = None,
) -> ScanOutput:
    """Scan ``input_path`` and every classpath entry reachable from it."""

    scanner = InputScanner(config)
    scanner.scan_path(input_path, is_input=True, strict=True, top_level=True)

    entries = sorted(classpath, key=path_key)
    if is_jar_path(input_path):
        entries.extend(manifest_classpath(input_path))

    input_key = path_key(input_path)
    for entry in expand_classpath(entries):
        if path_key(entry) == input_key:
            continue
        scanner.scan_path(entry, is_input=False, strict=True)

    return scanner.output


def expand_classpath(initial: Sequence[Path]) -> List[Path]:
    """Breadth-first expansion of ``initial`` through JAR manifest ``Class-Path`` entries."""

    queue: Deque[Path] = deque(sorted(initial, key=path_key))
    seen = set()
    result: List[Path] = []
    while queue:
        entry = queue.popleft()
        key = path_key(entry)
        if key in seen:
            continue
        seen.add(key)
        if not entry.exists():
            raise ScanError(f"classpath entry not found: {entry}")
        result.append(entry)
        if is_jar_path(entry):
            queue.extend(sorted(manifest_classpath(entry), key=path_key))
    return result


def manifest_classpath(path: Path) -> List[Path]:
    try:
        with zipfile.ZipFile(path) as archive:
            if MANIFEST_NAME not in archive.namelist():
                return []
            content = archive.read(MANIFEST_NAME).decode("utf-8", "replace")
    except (OSError, zipfile.BadZipFile) as exc:
        raise ScanError(f"failed to read {path}: {exc}") from exc
    return parse_manifest_classpath(path, content)


def parse_manifest_classpath(jar_path: Path, content: str) -> List[Path]:
    """Return the ``Class-Path`` entries of a manifest, resolved against ``jar_path``."""

    headers: Dict[str, str] = {}
    current: Optional[str] = None
    for raw_line in content.splitlines():
        line = raw_line.rstrip("\r")
        if line.startswith(" "):
            if current is not None:
                headers[current] += line[1:]
            continue
        current = None
        key, sep, value = line.partition(":")
        if sep:
            current = key.strip()
            headers[current] = value.lstrip()

    class_path = headers.get("Class-Path")
    if not class_path:
        return []

    base_dir = jar_path.parent
    entries: List[Path] = []
    for token in class_path.split():
        entry = Path(token)
        entries.append(entry if entry.is_absolute() else base_dir / entry)
    return entries


def is_jar_path(path: Path) -> bool:
    return path.suffix.lower() == ".jar"


def path_key(path: Path) -> str:
    return os.path.normpath(str(path))


def jar_entry_uri(jar_path: Path, entry_name: str) -> str:
    return f"jar:{path_key(jar_path)}!/{entry_name}"


def _roles(target: bool) -> Tuple[str, ...]:
    return (ANALYSIS_TARGET,) if target else ()

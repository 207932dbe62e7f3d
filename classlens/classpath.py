"""Name index over every class seen on the input and its classpath."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .ir import Class

PLATFORM_PREFIXES = ("java/", "javax/", "jdk/", "sun/", "com/sun/")

logger = logging.getLogger(__name__)


@dataclass
class ClasspathIndex:
    """Resolved view of the classpath.

    ``classes`` keeps the first definition of each name in scan order.
    ``missing_references`` lists every referenced class name that no scanned
    artifact defines, sorted and without duplicates.
    """

    classes: Dict[str, Class] = field(default_factory=dict)
    duplicate_count: int = 0
    missing_references: List[str] = field(default_factory=list)

    def __contains__(self, name: object) -> bool:
        return name in self.classes

    def __len__(self) -> int:
        return len(self.classes)

    def lookup(self, name: str) -> Class:
        try:
            return self.classes[name]
        except KeyError:
            raise KeyError(f"class {name} is not on the classpath") from None


def is_platform_class(name: str) -> bool:
    return name.startswith(PLATFORM_PREFIXES)


def resolve_classpath(classes: Sequence[Class], skip_platform: bool = True) -> ClasspathIndex:
    index = ClasspathIndex()
    for cls in classes:
        if cls.name in index.classes:
            index.duplicate_count += 1
            logger.warning(
                "duplicate class %s (artifact %d) shadowed by artifact %d",
                cls.name,
                cls.artifact_index,
                index.classes[cls.name].artifact_index,
            )
            continue
        index.classes[cls.name] = cls

    missing = set()
    for cls in classes:
        for name in cls.referenced_classes:
            if name in index.classes:
                continue
            if skip_platform and is_platform_class(name):
                continue
            missing.add(name)
    index.missing_references = sorted(missing)
    if index.missing_references:
        logger.debug("%d referenced classes are not on the classpath", len(missing))
    return index

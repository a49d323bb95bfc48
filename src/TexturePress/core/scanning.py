"""Source discovery and ignore-list matching."""

import logging
import os
from dataclasses import dataclass
from pathlib import PurePath
from typing import Iterable, List, Sequence

logger = logging.getLogger("texture_press.scanning")

SUPPORTED_EXTENSIONS = (".png", ".jpg", ".jpeg")


def is_supported_image(path: str) -> bool:
    return os.path.splitext(path)[1].lower() in SUPPORTED_EXTENSIONS


@dataclass(frozen=True)
class IgnoreRule:
    """One resolved ignore-list entry.

    Entries with an extension match any path ending in the same
    components; extensionless entries are anchored at the source root and
    skip everything beneath them.
    """

    path: PurePath
    is_prefix: bool

    def matches(self, path: str) -> bool:
        parts = PurePath(path).parts
        rule_parts = self.path.parts
        if len(rule_parts) > len(parts):
            return False
        if self.is_prefix:
            return parts[:len(rule_parts)] == rule_parts
        return parts[-len(rule_parts):] == rule_parts


def resolve_ignore_list(entries: Iterable[str], from_directory: str) -> List[IgnoreRule]:
    rules = []
    for entry in entries:
        entry = str(entry).strip()
        if not entry:
            continue
        entry_path = PurePath(entry)
        if entry_path.suffix:
            rules.append(IgnoreRule(entry_path, is_prefix=False))
        else:
            rules.append(IgnoreRule(PurePath(from_directory) / entry_path, is_prefix=True))
    return rules


def should_ignore(path: str, rules: Sequence[IgnoreRule]) -> bool:
    return any(rule.matches(path) for rule in rules)


def find_images(root: str, rules: Sequence[IgnoreRule] = ()) -> List[str]:
    """Recursively collect supported images under `root`, in sorted order."""
    images = []
    root_real = os.path.realpath(root)

    for dirpath, dirnames, filenames in os.walk(root):
        kept = []
        for name in sorted(dirnames):
            full = os.path.join(dirpath, name)
            if should_ignore(full, rules):
                logger.debug("Ignoring directory %s", full)
                continue
            kept.append(name)
        dirnames[:] = kept

        for name in sorted(filenames):
            full = os.path.join(dirpath, name)
            if not is_supported_image(name):
                continue
            if should_ignore(full, rules):
                logger.debug("Ignoring file %s", full)
                continue
            # Guard against symlinks that point outside the source root.
            try:
                if os.path.commonpath([root_real, os.path.realpath(full)]) != root_real:
                    logger.warning("Skipping file outside source root via symlink: %s", full)
                    continue
            except ValueError:
                logger.warning("Skipping file with incompatible path root: %s", full)
                continue
            images.append(full)

    logger.debug("Discovered %d image(s) under %s", len(images), root)
    return images

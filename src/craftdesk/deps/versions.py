"""
Version helpers for CraftDesk.

Tag sorting and version range checks on top of packaging.version.
"""

import logging
import re

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

logger = logging.getLogger(__name__)

_ANY_VERSION = {"", "*", "latest", "x"}
_NPM_COMPARATOR = re.compile(r"^(>=|<=|>|<|=)?\s*v?(\d+(?:\.\d+){0,2}(?:[-+.].*)?)$")


def parse_version(value: str) -> Version | None:
    """Parse a version or tag name, tolerating a leading "v".

    Returns:
        The parsed Version, or None for tags that are not versions.
    """
    candidate = value.strip()
    if candidate[:1] in ("v", "V"):
        candidate = candidate[1:]
    try:
        return Version(candidate)
    except InvalidVersion:
        return None


def sort_tags_by_version(tags: list[str]) -> list[str]:
    """Sort version-like tags newest first, dropping the rest."""
    versioned = [(parse_version(tag), tag) for tag in tags]
    ordered = sorted(
        ((parsed, tag) for parsed, tag in versioned if parsed is not None),
        key=lambda item: item[0],
        reverse=True,
    )
    return [tag for _, tag in ordered]


def latest_tag(tags: list[str]) -> str | None:
    """Get the newest version-like tag, if any."""
    ordered = sort_tags_by_version(tags)
    return ordered[0] if ordered else None


def is_newer_version(current: str, candidate: str) -> bool:
    """Check whether candidate is a strictly newer version than current.

    Non-version strings are compared for inequality only.
    """
    current_version = parse_version(current)
    candidate_version = parse_version(candidate)
    if current_version is None or candidate_version is None:
        return current != candidate
    return candidate_version > current_version


def version_satisfies(version: str, version_range: str) -> bool:
    """Check a concrete version against a range.

    Supports "*", "latest", exact versions, caret ("^1.2.0"), tilde ("~1.2.0"),
    and comparator lists (">=1.0.0 <2.0.0"). Anything unparseable is treated
    as not satisfied.
    """
    range_text = version_range.strip()
    if range_text.lower() in _ANY_VERSION:
        return True

    parsed = parse_version(version)
    if parsed is None:
        return version == range_text

    if range_text.startswith("^"):
        base = parse_version(range_text[1:])
        if base is None:
            return False
        if base.major > 0:
            upper = Version(f"{base.major + 1}.0.0")
        elif base.minor > 0:
            upper = Version(f"0.{base.minor + 1}.0")
        else:
            upper = Version(f"0.0.{base.micro + 1}")
        return base <= parsed < upper

    if range_text.startswith("~"):
        base = parse_version(range_text[1:])
        if base is None:
            return False
        return base <= parsed < Version(f"{base.major}.{base.minor + 1}.0")

    specifiers = []
    for part in range_text.replace(",", " ").split():
        match = _NPM_COMPARATOR.match(part)
        if not match:
            logger.debug(f"Unsupported version range: {version_range}")
            return False
        operator = match.group(1) or "=="
        specifiers.append(f"{'==' if operator == '=' else operator}{match.group(2)}")

    try:
        return parsed in SpecifierSet(",".join(specifiers))
    except InvalidSpecifier:
        logger.debug(f"Unsupported version range: {version_range}")
        return False

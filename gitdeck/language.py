"""Primary language detection from marker files at the repository root."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class LanguageRule:
    language: str
    paths: tuple[str, ...]
    is_dir: bool = False

    def matches(self, root: Path) -> bool:
        for name in self.paths:
            path = root / name
            if not path.exists() or path.is_dir() != self.is_dir:
                return False
        return True


DEFAULT_RULES: tuple[LanguageRule, ...] = (
    LanguageRule("go", ("go.mod",)),
    LanguageRule("rust", ("Cargo.toml",)),
)


def detect_language(root: Path, rules: tuple[LanguageRule, ...] = DEFAULT_RULES) -> str | None:
    """Language of the first matching rule, or None."""
    root = Path(root)
    for rule in rules:
        if rule.matches(root):
            return rule.language
    return None

"""Semantic version model used to gate updates."""

import re
from typing import NamedTuple

from edge_updater.exceptions import InvalidVersion

_SEMVER_PATTERN = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)$")


class SemanticVersion(NamedTuple):
    """MAJOR.MINOR.PATCH triple; tuple ordering gives semver precedence."""

    major: int
    minor: int
    patch: int

    @classmethod
    def parse(cls, text: str) -> "SemanticVersion":
        """Parse a bare version string such as ``"1.2.3"``.

        Surrounding whitespace (e.g. the trailing newline of ``--version``
        output) is ignored.

        Raises:
            InvalidVersion: If ``text`` is not a well-formed version
        """
        if not isinstance(text, str):
            raise InvalidVersion(f"INVALID_VERSION: {text!r} is not a string")

        match = _SEMVER_PATTERN.match(text.strip())
        if match is None:
            raise InvalidVersion(f"INVALID_VERSION: {text.strip()!r}")

        return cls(*(int(part) for part in match.groups()))

    @classmethod
    def zero(cls) -> "SemanticVersion":
        """Sentinel for "nothing installed"."""
        return cls(0, 0, 0)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

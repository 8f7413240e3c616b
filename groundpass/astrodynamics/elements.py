"""Orbital elements and a local 3-line TLE file source."""

import logging
from dataclasses import dataclass
from pathlib import Path

from groundpass.base.errors import ElementsNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrbitalElements:
    name: str
    line1: str
    line2: str


def parse_tle_text(text: str) -> dict[str, OrbitalElements]:
    """Parse 3-line TLE text (name, line 1, line 2) into a name -> elements dict. Blank lines are ignored."""
    lines = [line.rstrip() for line in text.splitlines() if line.strip()]
    elements = {}
    i = 0
    while i + 2 < len(lines):
        name, line1, line2 = lines[i].strip(), lines[i + 1], lines[i + 2]
        if name.startswith("1 ") or not line1.startswith("1 ") or not line2.startswith("2 "):
            # Resynchronise on the next line
            logger.warning(f"Skipping malformed TLE entry near line '{lines[i]}'")
            i += 1
            continue
        elements[name] = OrbitalElements(name=name, line1=line1, line2=line2)
        i += 3
    return elements


class TLEFileSource:
    def __init__(self, path):
        self.path = Path(path).expanduser()
        self._elements: dict[str, OrbitalElements] = None

    def load(self) -> dict[str, OrbitalElements]:
        """(Re)read the TLE file. A missing file yields no elements, so every lookup reports not found."""
        try:
            text = self.path.read_text()
        except FileNotFoundError:
            logger.error(f"TLE file {self.path} does not exist")
            text = ""
        self._elements = parse_tle_text(text)
        logger.info(f"Found TLE data for {len(self._elements)} satellites in {self.path}")
        return self._elements

    def get(self, name: str) -> OrbitalElements:
        """Look up elements by exact name, falling back to the first entry whose name starts with `name`.

        Raises:
            ElementsNotFound: no entry matches
        """
        if self._elements is None:
            self.load()
        if name in self._elements:
            return self._elements[name]
        for sat_name, elements in self._elements.items():
            if sat_name.startswith(name):
                return elements
        raise ElementsNotFound(name, f"no TLE data in {self.path}")

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from walletgraph.config.settings import DEFAULT_MAX_DEPTH, DEFAULT_THEME, PREFERENCES_PATH
from walletgraph.core.errors import PreferencesError
from walletgraph.core.models import normalize_address

logger = logging.getLogger(__name__)

THEMES = ("dark", "light")


@dataclass
class Preferences:

    labels: Dict[str, str] = field(default_factory=dict)   # normalized address -> name
    max_depth: int = DEFAULT_MAX_DEPTH
    theme: str = DEFAULT_THEME

    def label_for(self, address: str) -> Optional[str]:
        return self.labels.get(normalize_address(address))

    def set_label(self, address: str, name: str) -> bool:
        name = (name or "").strip()
        if not name:
            return False
        self.labels[normalize_address(address)] = name
        return True

    def toggle_theme(self) -> str:
        self.theme = "light" if self.theme == "dark" else "dark"
        return self.theme


def display_name(address: str, labels: Optional[Dict[str, str]] = None) -> str:
    label = (labels or {}).get(normalize_address(address))
    if label:
        return label
    return address[:10] + "..."


class PreferencesStore:
    """
    JSON file holding wallet labels, the max-depth setting and the theme.
    """

    def __init__(self, path: str = PREFERENCES_PATH) -> None:
        self.path = Path(path)

    def load(self) -> Preferences:
        if not self.path.exists():
            return Preferences()
        try:
            return self._parse(self._read())
        except PreferencesError as e:
            logger.warning("Ignoring preferences at %s: %s", self.path, e)
            return Preferences()

    def save(self, prefs: Preferences) -> str:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "walletNames": sorted(prefs.labels.items()),
            "maxDepth": prefs.max_depth,
            "theme": prefs.theme,
        }
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        return str(self.path)

    # ---------- internal ----------

    def _read(self) -> Any:
        try:
            with self.path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            raise PreferencesError(str(e)) from e

    @staticmethod
    def _parse(data: Any) -> Preferences:
        if not isinstance(data, dict):
            raise PreferencesError("expected a JSON object")

        # stored as [address, name] pairs; a plain mapping is accepted too
        raw_labels = data.get("walletNames") or []
        if isinstance(raw_labels, dict):
            raw_labels = list(raw_labels.items())
        labels: Dict[str, str] = {}
        for pair in raw_labels:
            if isinstance(pair, (list, tuple)) and len(pair) == 2 and all(isinstance(p, str) for p in pair):
                labels[normalize_address(pair[0])] = pair[1]

        try:
            max_depth = int(data.get("maxDepth", DEFAULT_MAX_DEPTH))
        except (TypeError, ValueError) as e:
            raise PreferencesError(f"invalid maxDepth: {data.get('maxDepth')!r}") from e
        if max_depth < 0:
            raise PreferencesError(f"invalid maxDepth: {max_depth}")

        theme = data.get("theme", DEFAULT_THEME)
        if theme not in THEMES:
            theme = DEFAULT_THEME

        return Preferences(labels=labels, max_depth=max_depth, theme=theme)

"""
Category Texts

Labels and explanatory texts of the budget categories, maintained by the
editorial team independently of the yearly ledgers.

Texts are keyed by category id only (no year). M52 function nodes without
an editorial entry fall back to the official function labels.
"""
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from budget_explorer.core.constants import M52_PREFIX, RDFI_SECTIONS, SECTION_LABELS
from budget_explorer.core.error_taxonomy import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextsRecord:
    """Label plus atemporal/temporal markdown blocks of one category."""
    id: str
    label: str = ""
    atemporal: Optional[str] = None
    temporal: Optional[str] = None

    def with_label(self, label: str) -> 'TextsRecord':
        return replace(self, label=label)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "atemporal": self.atemporal,
            "temporal": self.temporal,
        }


def _normalize_function_code(code: str) -> str:
    code = str(code).strip()
    return code if code[:1] in ("R", "r") else f"R{code}"


def _read_yaml(path: Path) -> Any:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e


class TextsStore:
    """
    Lookup of TextsRecord by category id.

    Usage:
        store = TextsStore.from_yaml("config/texts.yaml", "config/m52_fonctions.yaml")
        store.texts_for_id("DF-1")
        store.label_for("unknown-id")  # -> "unknown-id"
    """

    def __init__(
        self,
        records: Dict[str, TextsRecord] = None,
        function_labels: Dict[str, str] = None,
    ):
        self._records: Dict[str, TextsRecord] = dict(records or {})
        self._function_labels: Dict[str, str] = {
            _normalize_function_code(code): label
            for code, label in (function_labels or {}).items()
        }

    @classmethod
    def from_yaml(
        cls,
        texts_path: Union[str, Path, None],
        fonctions_path: Union[str, Path, None] = None,
    ) -> 'TextsStore':
        """
        Load texts and function labels.

        A missing file only yields a warning: every label then falls back
        to the category id.
        """
        records: Dict[str, TextsRecord] = {}
        if texts_path is not None:
            texts_path = Path(texts_path)
            if texts_path.exists():
                records = parse_texts(_read_yaml(texts_path))
                logger.info(f"Loaded texts for {len(records)} categories from {texts_path}")
            else:
                logger.warning(f"Texts file not found at {texts_path}. Labels fall back to ids.")

        function_labels: Dict[str, str] = {}
        if fonctions_path is not None:
            fonctions_path = Path(fonctions_path)
            if fonctions_path.exists():
                raw = _read_yaml(fonctions_path)
                if not isinstance(raw, dict):
                    raise ConfigurationError(f"Function labels in {fonctions_path} must be a mapping")
                function_labels = {str(k): str(v) for k, v in raw.items()}
            else:
                logger.warning(f"Function labels not found at {fonctions_path}")

        return cls(records, function_labels)

    def texts_for_id(self, category_id: str) -> Optional[TextsRecord]:
        record = self._records.get(category_id)
        if record is not None:
            return record

        label = self._m52_label(category_id)
        if label:
            return TextsRecord(id=category_id, label=label)
        return None

    def label_for(self, category_id: str) -> str:
        """Label of a category, the raw id when no text exists."""
        texts = self.texts_for_id(category_id)
        return texts.label if texts and texts.label else category_id

    def function_label(self, function_code: str) -> Optional[str]:
        if not function_code:
            return None
        return self._function_labels.get(_normalize_function_code(function_code))

    def _m52_label(self, category_id: str) -> Optional[str]:
        if not category_id.startswith(M52_PREFIX):
            return None
        parts = category_id[len(M52_PREFIX):].split("-")
        if parts[0] not in RDFI_SECTIONS:
            return None
        if len(parts) == 1:
            return SECTION_LABELS.get(parts[0])
        if len(parts) == 2:
            return self.function_label(parts[1])
        return None

    def __contains__(self, category_id: str) -> bool:
        return category_id in self._records

    def __len__(self) -> int:
        return len(self._records)


def parse_texts(raw: Any) -> Dict[str, TextsRecord]:
    """
    Build records from a mapping of id -> label or id -> {label, atemporal, temporal}.
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("Texts must be a mapping of category id to texts")

    records: Dict[str, TextsRecord] = {}
    for category_id, value in raw.items():
        category_id = str(category_id)
        if isinstance(value, str):
            records[category_id] = TextsRecord(id=category_id, label=value)
        elif isinstance(value, dict):
            records[category_id] = TextsRecord(
                id=category_id,
                label=str(value.get("label") or ""),
                atemporal=value.get("atemporal"),
                temporal=value.get("temporal"),
            )
        else:
            raise ConfigurationError(f"Unsupported texts entry for {category_id}: {value!r}")
    return records

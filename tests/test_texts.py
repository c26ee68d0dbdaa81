"""
Unit tests for category texts and labels.
"""
import pytest

from budget_explorer.core.error_taxonomy import ConfigurationError
from budget_explorer.data.texts import TextsRecord, TextsStore, parse_texts


class TestParseTexts:
    """Tests for parse_texts."""

    def test_plain_label_and_mapping(self):
        records = parse_texts({
            "DF": "Dépenses de fonctionnement",
            "DF-1": {"label": "Allocations", "atemporal": "Texte", "temporal": "Évolution"},
        })
        assert records["DF"].label == "Dépenses de fonctionnement"
        assert records["DF"].atemporal is None
        assert records["DF-1"].temporal == "Évolution"

    def test_invalid(self):
        with pytest.raises(ConfigurationError):
            parse_texts(["DF"])
        with pytest.raises(ConfigurationError):
            parse_texts({"DF": 3})


class TestTextsStore:
    """Tests for TextsStore lookups and fallbacks."""

    def test_editorial_texts(self, texts):
        assert texts.texts_for_id("DF").atemporal == "Le fonctionnement."
        assert "DF" in texts

    def test_label_falls_back_to_id(self, texts):
        assert texts.texts_for_id("DF-3") is None
        assert texts.label_for("DF-3") == "DF-3"

    def test_m52_section_label(self, texts):
        assert texts.label_for("M52-DF") == "Dépense de fonctionnement"

    def test_m52_function_label(self, texts):
        """Function codes are matched with or without their R prefix."""
        assert texts.label_for("M52-DF-5") == "Action sociale"
        assert texts.label_for("M52-DF-51") == "Famille et enfance"
        assert texts.function_label("R51") == "Famille et enfance"

    def test_m52_nature_leaf_has_no_label(self, texts):
        assert texts.label_for("M52-DF-51-6522") == "M52-DF-51-6522"

    def test_with_label(self):
        record = TextsRecord(id="DF-2", label="Actions sociales", atemporal="x")
        relabeled = record.with_label("Autre")
        assert relabeled.label == "Autre"
        assert relabeled.atemporal == "x"
        assert record.label == "Actions sociales"

    def test_from_yaml(self, tmp_path):
        texts_path = tmp_path / "texts.yaml"
        texts_path.write_text("DF:\n  label: Fonctionnement\n  temporal: En hausse\n", encoding="utf-8")
        fonctions_path = tmp_path / "fonctions.yaml"
        fonctions_path.write_text("R5: Action sociale\n", encoding="utf-8")

        store = TextsStore.from_yaml(texts_path, fonctions_path)
        assert store.label_for("DF") == "Fonctionnement"
        assert store.label_for("M52-RF-5") == "Action sociale"

    def test_missing_files_only_warn(self, tmp_path):
        store = TextsStore.from_yaml(tmp_path / "none.yaml", tmp_path / "none2.yaml")
        assert len(store) == 0
        assert store.label_for("D") == "D"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "texts.yaml"
        path.write_text("DF: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            TextsStore.from_yaml(path)

    def test_shipped_texts(self):
        from config.settings import ExplorerConfig

        config = ExplorerConfig()
        store = TextsStore.from_yaml(config.texts_path, config.m52_fonctions_path)
        assert store.label_for("D") == "Dépenses"
        assert store.label_for("M52-DF-51") == "Famille et enfance"

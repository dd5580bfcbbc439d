"""Tests for the scope stores."""

import json

import pytest

from modecfg.core.errors import ModeParseError
from modecfg.core.types import (
    DiagnosticKind,
    Mode,
    ModeFormat,
    ModeScope,
    Severity,
)
from modecfg.storage.stores import PRECEDENCE, LegacyFileStore, SplitDirectoryStore


class TestSplitDirectoryStore:
    """Tests for the one-file-per-mode store."""

    def test_enumerate_tags_provenance(self, stores, test_settings, write_split, split_yaml):
        write_split(test_settings.project_split_dir, "architect", split_yaml("Architect"))
        write_split(test_settings.project_split_dir, "coder", split_yaml("Coder"), ext=".yml")

        listing = stores.split(ModeScope.PROJECT).enumerate()

        assert sorted(listing.modes) == ["architect", "coder"]
        assert all(m.provenance == (ModeScope.PROJECT, ModeFormat.SPLIT) for m in listing.modes.values())

    def test_ignores_other_extensions_and_subdirectories(self, stores, test_settings, write_split, split_yaml):
        directory = test_settings.project_split_dir
        write_split(directory, "notes", "not a mode", ext=".txt")
        write_split(directory / "nested", "deep", split_yaml("Deep"))

        assert stores.split(ModeScope.PROJECT).enumerate().modes == {}

    def test_recursive_enumeration(self, stores, test_settings, write_split, split_yaml):
        directory = test_settings.project_split_dir
        write_split(directory / "nested", "deep", split_yaml("Deep"))
        store = stores.split(ModeScope.PROJECT)
        store.recursive = True

        assert list(store.enumerate().modes) == ["deep"]

    def test_primary_extension_wins_duplicate(self, stores, test_settings, write_split, split_yaml):
        directory = test_settings.project_split_dir
        write_split(directory, "dup", split_yaml("From yaml"), ext=".yaml")
        write_split(directory, "dup", split_yaml("From yml"), ext=".yml")

        listing = stores.split(ModeScope.PROJECT).enumerate()

        assert listing.modes["dup"].name == "From yaml"
        assert [d.kind for d in listing.diagnostics] == [DiagnosticKind.DUPLICATE_SLUG]

    def test_bad_files_do_not_stop_siblings(self, stores, test_settings, write_split, split_yaml):
        directory = test_settings.project_split_dir
        write_split(directory, "good", split_yaml("Good"))
        write_split(directory, "broken", "name: [oops\n")
        write_split(directory, "bad_slug", split_yaml("Bad slug"))
        write_split(directory, "incomplete", "name: Only a name\n")

        listing = stores.split(ModeScope.PROJECT).enumerate()

        assert list(listing.modes) == ["good"]
        kinds = sorted(d.kind.value for d in listing.diagnostics)
        assert kinds == ["parse", "validation", "validation"]

    def test_missing_root_is_quietly_empty(self, stores):
        listing = stores.split(ModeScope.GLOBAL).enumerate()

        assert listing.modes == {}
        assert [d.kind for d in listing.diagnostics] == [DiagnosticKind.NOT_FOUND]
        assert listing.diagnostics[0].severity == Severity.INFO

    def test_root_that_is_a_file(self, stores, test_settings):
        test_settings.project_split_dir.parent.mkdir(parents=True)
        test_settings.project_split_dir.write_text("oops")

        listing = stores.split(ModeScope.PROJECT).enumerate()

        assert [d.kind for d in listing.diagnostics] == [DiagnosticKind.NOT_A_DIRECTORY]
        assert listing.diagnostics[0].severity == Severity.WARNING

    def test_parent_that_is_a_file(self, stores, test_settings):
        (test_settings.project_root / ".roo").write_text("oops")

        listing = stores.split(ModeScope.PROJECT).enumerate()

        assert [d.kind for d in listing.diagnostics] == [DiagnosticKind.MALFORMED_PARENT]

    def test_write_creates_directory_and_file(self, stores, test_settings, sample_mode):
        store = stores.split(ModeScope.GLOBAL)

        path = store.write(sample_mode)

        assert path == test_settings.global_split_dir / "architect.yaml"
        assert store.read_one("architect").content() == sample_mode.content()

    def test_write_keeps_existing_alias_file(self, stores, test_settings, write_split, split_yaml, sample_mode):
        existing = write_split(test_settings.project_split_dir, "architect", split_yaml("Old"), ext=".yml")

        path = stores.split(ModeScope.PROJECT).write(sample_mode)

        assert path == existing
        assert not (test_settings.project_split_dir / "architect.yaml").exists()

    def test_delete_is_idempotent(self, stores, sample_mode):
        store = stores.split(ModeScope.PROJECT)
        store.write(sample_mode)

        assert store.delete("architect") is True
        assert store.delete("architect") is False
        assert store.read_one("architect") is None

    def test_owns_and_slug_for(self, stores, test_settings):
        store = stores.split(ModeScope.PROJECT)
        inside = test_settings.project_split_dir / "coder.yaml"

        assert store.owns(inside)
        assert store.slug_for(inside) == "coder"
        assert not store.owns(test_settings.project_split_dir / "coder.json")
        assert not store.owns(test_settings.project_split_dir / "nested" / "coder.yaml")
        assert store.slug_for(test_settings.global_split_dir / "coder.yaml") is None


class TestLegacyFileStore:
    """Tests for the aggregate .roomodes store."""

    def test_enumerate(self, stores, test_settings, write_legacy, legacy_entry):
        write_legacy(test_settings.project_legacy_path, [legacy_entry("architect")])

        listing = stores.legacy(ModeScope.PROJECT).enumerate()

        assert list(listing.modes) == ["architect"]
        assert listing.modes["architect"].provenance == (ModeScope.PROJECT, ModeFormat.LEGACY)

    def test_duplicate_slug_last_wins(self, stores, test_settings, write_legacy, legacy_entry):
        write_legacy(test_settings.project_legacy_path, [
            legacy_entry("architect", name="First"),
            legacy_entry("architect", name="Second"),
        ])

        listing = stores.legacy(ModeScope.PROJECT).enumerate()

        assert listing.modes["architect"].name == "Second"
        assert [d.kind for d in listing.diagnostics] == [DiagnosticKind.DUPLICATE_SLUG]

    def test_parse_error_is_a_diagnostic(self, stores, test_settings):
        test_settings.project_legacy_path.write_text('{"customModes": [\n  {"slug": }\n]}')

        listing = stores.legacy(ModeScope.PROJECT).enumerate()

        assert listing.modes == {}
        assert listing.diagnostics[0].kind == DiagnosticKind.PARSE
        assert listing.diagnostics[0].line == 2

    def test_directory_in_place_of_file(self, stores, test_settings):
        test_settings.project_legacy_path.mkdir()

        listing = stores.legacy(ModeScope.PROJECT).enumerate()

        assert [d.kind for d in listing.diagnostics] == [DiagnosticKind.IS_A_DIRECTORY]

    def test_write_appends_then_replaces(self, stores, test_settings, sample_mode):
        store = stores.legacy(ModeScope.GLOBAL)

        store.write(sample_mode)
        store.write(sample_mode.model_copy(update={"name": "Renamed"}))

        entries = json.loads(test_settings.global_legacy_path.read_text())["customModes"]
        assert len(entries) == 1
        assert entries[0]["name"] == "Renamed"

    def test_write_preserves_other_entries(self, stores, test_settings, write_legacy, sample_mode):
        foreign = {"slug": "other", "name": "Other", "roleDefinition": "x", "groups": [], "extra": 1}
        write_legacy(test_settings.project_legacy_path, [foreign])

        stores.legacy(ModeScope.PROJECT).write(sample_mode)

        entries = json.loads(test_settings.project_legacy_path.read_text())["customModes"]
        assert entries[0] == foreign
        assert entries[1]["slug"] == "architect"

    def test_write_upgrades_bare_array(self, stores, test_settings, legacy_entry, sample_mode):
        test_settings.project_legacy_path.write_text(json.dumps([legacy_entry("old")]))

        stores.legacy(ModeScope.PROJECT).write(sample_mode)

        document = json.loads(test_settings.project_legacy_path.read_text())
        assert [e["slug"] for e in document["customModes"]] == ["old", "architect"]

    def test_write_refuses_to_clobber_unparsable_file(self, stores, test_settings, sample_mode):
        test_settings.project_legacy_path.write_text("{ not json")

        with pytest.raises(ModeParseError):
            stores.legacy(ModeScope.PROJECT).write(sample_mode)

        assert test_settings.project_legacy_path.read_text() == "{ not json"

    def test_delete_entry(self, stores, test_settings, write_legacy, legacy_entry):
        write_legacy(test_settings.project_legacy_path, [legacy_entry("a"), legacy_entry("b")])
        store = stores.legacy(ModeScope.PROJECT)

        assert store.delete("a") is True
        assert store.delete("a") is False
        assert list(store.enumerate().modes) == ["b"]

    def test_delete_without_file(self, stores):
        assert stores.legacy(ModeScope.GLOBAL).delete("anything") is False

    def test_reset(self, stores, test_settings, write_legacy, legacy_entry):
        write_legacy(test_settings.global_legacy_path, [legacy_entry("a")])

        stores.legacy(ModeScope.GLOBAL).reset()

        assert json.loads(test_settings.global_legacy_path.read_text()) == {"customModes": []}

    def test_owns_only_its_file(self, stores, test_settings):
        store = stores.legacy(ModeScope.PROJECT)

        assert store.owns(test_settings.project_legacy_path)
        assert not store.owns(test_settings.global_legacy_path)
        assert store.slug_for(test_settings.project_legacy_path) is None


class TestStoreSet:
    """Tests for store selection."""

    def test_selected_by_scope_and_format(self, stores):
        for scope, fmt in PRECEDENCE:
            store = stores.get(scope, fmt)
            assert store.key == (scope, fmt)

        assert isinstance(stores.get(ModeScope.GLOBAL, ModeFormat.SPLIT), SplitDirectoryStore)
        assert isinstance(stores.get(ModeScope.GLOBAL, ModeFormat.LEGACY), LegacyFileStore)

    def test_iterates_in_precedence_order(self, stores):
        assert [store.key for store in stores] == list(PRECEDENCE)

    def test_owner_of(self, stores, test_settings):
        assert stores.owner_of(test_settings.project_legacy_path).key == (ModeScope.PROJECT, ModeFormat.LEGACY)
        assert stores.owner_of(test_settings.global_split_dir / "x.yml").key == (ModeScope.GLOBAL, ModeFormat.SPLIT)
        assert stores.owner_of(test_settings.project_root / "README.md") is None

    def test_missing_store_rejected(self, stores):
        from modecfg.storage.stores import StoreSet

        with pytest.raises(ValueError):
            StoreSet([stores.split(ModeScope.PROJECT)])


def test_mode_fixture_has_no_provenance(sample_mode: Mode):
    assert sample_mode.provenance == (None, None)


class TestUndecodableFiles:
    """Files that are not valid UTF-8."""

    def test_split_file_becomes_parse_diagnostic(self, stores, test_settings, write_split, split_yaml):
        write_split(test_settings.project_split_dir, "ok", split_yaml("Ok"))
        (test_settings.project_split_dir / "bad.yaml").write_bytes(b"name: \xff\xfe\n")

        listing = stores.split(ModeScope.PROJECT).enumerate()

        assert list(listing.modes) == ["ok"]
        assert [d.kind for d in listing.diagnostics] == [DiagnosticKind.PARSE]
        assert (listing.diagnostics[0].line, listing.diagnostics[0].column) == (1, 7)

    def test_legacy_file_becomes_parse_diagnostic(self, stores, test_settings):
        test_settings.global_root.mkdir()
        test_settings.global_legacy_path.write_bytes(b'{"customModes": ["\xff"]}')

        listing = stores.legacy(ModeScope.GLOBAL).enumerate()

        assert listing.modes == {}
        assert [d.kind for d in listing.diagnostics] == [DiagnosticKind.PARSE]

    def test_legacy_write_leaves_file_alone(self, stores, test_settings, sample_mode):
        raw = b'{"customModes": ["\xff"]}'
        test_settings.project_legacy_path.write_bytes(raw)

        with pytest.raises(ModeParseError, match="UTF-8"):
            stores.legacy(ModeScope.PROJECT).write(sample_mode)

        assert test_settings.project_legacy_path.read_bytes() == raw


class TestRecursiveSplitDirectory:
    """Writes and deletes when modes live in subdirectories."""

    @pytest.fixture
    def store(self, stores):
        store = stores.split(ModeScope.PROJECT)
        store.recursive = True
        return store

    def _files(self, directory):
        return sorted(p.relative_to(directory).as_posix() for p in directory.rglob("*.y*ml"))

    def test_write_updates_nested_file(self, store, test_settings, write_split, split_yaml, sample_mode):
        directory = test_settings.project_split_dir
        nested = write_split(directory / "team", "architect", split_yaml("Original"))

        path = store.write(sample_mode)

        assert path == nested
        assert self._files(directory) == ["team/architect.yaml"]
        assert store.read_one("architect").name == "Architect"

    def test_delete_removes_nested_and_shadowed_files(self, store, test_settings, write_split, split_yaml):
        directory = test_settings.project_split_dir
        write_split(directory, "architect", split_yaml("Top"))
        write_split(directory / "team", "architect", split_yaml("Nested"))

        assert store.delete("architect") is True
        assert self._files(directory) == []
        assert store.read_one("architect") is None

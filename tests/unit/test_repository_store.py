"""Unit tests for RepositoryStore."""

import re
import threading

import pytest

from component_tracker.errors import RepositoryNotFoundError, StorageError
from component_tracker.ingestion import LibraryAdapter, LibraryMetadata
from component_tracker.models import Repository, RepositoryKind
from component_tracker.store import (
    STORAGE_KEY,
    JSONFileBackend,
    MemoryBackend,
    RepositoryStore,
    generate_repository_id,
)


class FlakyBackend(MemoryBackend):
    """Memory backend whose writes can be switched off."""

    def __init__(self):
        super().__init__()
        self.fail_writes = False

    def write(self, key, value):
        if self.fail_writes:
            raise StorageError("disk full", location=key)
        super().write(key, value)


def repo(repo_id: str = "repo_1_kit", name: str = "Kit") -> Repository:
    return Repository(id=repo_id, name=name, path=f"/src/{name.lower()}")


class TestGenerateRepositoryId:
    """Tests for repository id generation."""

    def test_format(self):
        """Test ids have a timestamp and random suffix without colons."""
        repo_id = generate_repository_id()
        assert re.fullmatch(r"repo_\d+_[a-z0-9]{9}", repo_id)

    def test_unique(self):
        """Test consecutive ids differ."""
        assert len({generate_repository_id() for _ in range(50)}) == 50


class TestRegister:
    """Tests for registering and removing repositories."""

    def test_register_assigns_id(self, memory_store):
        """Test an empty id is replaced with a generated one."""
        registered = memory_store.register(Repository(id="", name="Kit", path="/kit"))
        assert registered.id.startswith("repo_")
        assert memory_store.get_repository(registered.id) == registered

    def test_register_persists(self, memory_store):
        """Test registration writes the state blob."""
        memory_store.register(repo())
        state = memory_store.backend.read(STORAGE_KEY)
        assert state["version"] == 2
        assert state["repositories"][0][0] == "repo_1_kit"

    def test_duplicate_id_rejected(self, memory_store):
        """Test the same id cannot be registered twice."""
        memory_store.register(repo())
        with pytest.raises(ValueError, match="already registered"):
            memory_store.register(repo())

    def test_colon_rejected(self, memory_store):
        """Test ids containing the namespace separator are rejected."""
        with pytest.raises(ValueError):
            memory_store.register(repo("repo:bad"))

    def test_register_rolls_back_on_storage_error(self):
        """Test a failed save leaves no repository behind."""
        backend = FlakyBackend()
        store = RepositoryStore(backend)
        backend.fail_writes = True
        with pytest.raises(StorageError):
            store.register(repo())
        assert store.list_repositories() == []

    def test_remove(self, memory_store, make_component):
        """Test removal deletes the repository and its library."""
        memory_store.register(repo())
        memory_store.replace_library("repo_1_kit", [make_component()])
        assert memory_store.remove("repo_1_kit") is True
        assert memory_store.get_repository("repo_1_kit") is None
        assert memory_store.get_library("repo_1_kit") is None
        assert memory_store.all_components() == []

    def test_remove_unknown(self, memory_store):
        """Test removing an unknown id reports False."""
        assert memory_store.remove("repo_missing") is False

    def test_remove_rolls_back(self, make_component):
        """Test a failed save restores the removed repository and library."""
        backend = FlakyBackend()
        store = RepositoryStore(backend)
        store.register(repo())
        store.replace_library("repo_1_kit", [make_component()])
        backend.fail_writes = True
        with pytest.raises(StorageError):
            store.remove("repo_1_kit")
        assert store.get_repository("repo_1_kit") is not None
        assert len(store.get_library("repo_1_kit").components) == 1

    def test_require_repository(self, memory_store):
        """Test unknown ids raise RepositoryNotFoundError."""
        with pytest.raises(RepositoryNotFoundError):
            memory_store.require_repository("repo_missing")


class TestReplaceLibrary:
    """Tests for replace_library."""

    def test_components_namespaced(self, memory_store, make_component):
        """Test component and variant ids get the repository prefix."""
        memory_store.register(repo())
        library = memory_store.replace_library(
            "repo_1_kit", [make_component("Card", variant_count=2)]
        )
        (card,) = library.components
        assert card.id == "repo_1_kit:components/Card.tsx-Card"
        assert card.repository_id == "repo_1_kit"
        assert [v.id for v in card.variants] == [
            "repo_1_kit:components/Card.tsx-Card-v0",
            "repo_1_kit:components/Card.tsx-Card-v1",
        ]

    def test_already_namespaced_not_doubled(self, memory_store, make_component):
        """Test namespacing is idempotent."""
        memory_store.register(repo())
        component = make_component(component_id="repo_1_kit:Card")
        (card,) = memory_store.replace_library("repo_1_kit", [component]).components
        assert card.id == "repo_1_kit:Card"

    def test_same_local_id_in_two_repositories(self, memory_store, make_component):
        """Test equal local ids stay distinct across repositories."""
        memory_store.register(repo("repo_a", "A"))
        memory_store.register(repo("repo_b", "B"))
        memory_store.replace_library("repo_a", [make_component()])
        memory_store.replace_library("repo_b", [make_component()])
        ids = {c.id for c in memory_store.all_components()}
        assert ids == {
            "repo_a:components/Card.tsx-Card",
            "repo_b:components/Card.tsx-Card",
        }

    def test_duplicates_dropped(self, memory_store, make_component):
        """Test repeated ids keep the first component."""
        memory_store.register(repo())
        first = make_component(description="first")
        second = make_component(description="second")
        library = memory_store.replace_library("repo_1_kit", [first, second])
        assert [c.description for c in library.components] == ["first"]

    def test_repeated_variant_ids_made_unique(self, memory_store):
        """Test manifest entries sharing an id still get distinct variant ids."""
        memory_store.register(repo())
        metadata = LibraryMetadata(
            name="Kit",
            components=[{"id": "x", "name": "Alpha"}, {"id": "x", "name": "Beta"}],
        )
        library = memory_store.replace_library(
            "repo_1_kit", LibraryAdapter().convert(metadata)
        )
        ids = [v.id for c in library.components for v in c.variants]
        assert ids == ["repo_1_kit:x", "repo_1_kit:x-2"]

    def test_updates_repository_snapshot(self, memory_store, make_component):
        """Test count and scan time are recorded on the repository."""
        memory_store.register(repo())
        library = memory_store.replace_library(
            "repo_1_kit", [make_component("Card"), make_component("Button")]
        )
        stored = memory_store.get_repository("repo_1_kit")
        assert stored.component_count == 2
        assert stored.last_scanned is not None
        assert library.repository == stored
        assert library.id == "repo_1_kit-library"

    def test_replaces_wholesale(self, memory_store, make_component):
        """Test a second replace discards the previous components."""
        memory_store.register(repo())
        memory_store.replace_library("repo_1_kit", [make_component("Card")])
        memory_store.replace_library("repo_1_kit", [make_component("Button")])
        assert [c.name for c in memory_store.all_components()] == ["Button"]

    def test_unknown_repository(self, memory_store, make_component):
        """Test replacing a library of an unknown repository fails."""
        with pytest.raises(RepositoryNotFoundError):
            memory_store.replace_library("repo_missing", [make_component()])

    def test_rolls_back_on_storage_error(self, make_component):
        """Test the previous library is kept when saving fails."""
        backend = FlakyBackend()
        store = RepositoryStore(backend)
        store.register(repo())
        store.replace_library("repo_1_kit", [make_component("Card")])
        backend.fail_writes = True
        with pytest.raises(StorageError):
            store.replace_library("repo_1_kit", [make_component("Button")])
        assert [c.name for c in store.all_components()] == ["Card"]
        assert store.get_repository("repo_1_kit").component_count == 1

    def test_input_not_mutated(self, memory_store, make_component):
        """Test callers keep their un-namespaced components."""
        memory_store.register(repo())
        component = make_component()
        memory_store.replace_library("repo_1_kit", [component])
        assert component.id == "components/Card.tsx-Card"
        assert component.repository_id is None


class TestLoadSave:
    """Tests for persistence through a backend."""

    def test_reload_from_files(self, tmp_path, make_component):
        """Test a new store sees what an earlier one saved."""
        store = RepositoryStore(JSONFileBackend(tmp_path))
        store.register(repo())
        store.replace_library("repo_1_kit", [make_component()])

        reloaded = RepositoryStore(JSONFileBackend(tmp_path))
        reloaded.load()
        assert reloaded.get_repository("repo_1_kit").component_count == 1
        (card,) = reloaded.all_components()
        assert card.id == "repo_1_kit:components/Card.tsx-Card"
        assert card.repository_id == "repo_1_kit"

    def test_corrupt_blob_loads_empty(self, memory_store):
        """Test unreadable state is logged and treated as empty."""
        memory_store.backend.write_raw(STORAGE_KEY, "{not json")
        memory_store.load()
        assert memory_store.list_repositories() == []

    def test_unversioned_state_is_migrated_and_saved(self):
        """Test loading old state rewrites it at the current version."""
        backend = MemoryBackend(
            {
                STORAGE_KEY: {
                    "repositories": [
                        ["repo_1_kit", {"id": "repo_1_kit", "name": "Kit", "path": "/kit"}]
                    ],
                    "componentLibraries": [
                        [
                            "repo_1_kit",
                            {
                                "id": "repo_1_kit-library",
                                "components": [
                                    {"id": "components/Card.tsx-Card", "name": "Card"}
                                ],
                            },
                        ]
                    ],
                }
            }
        )
        store = RepositoryStore(backend)
        store.load()

        (card,) = store.all_components()
        assert card.id == "repo_1_kit:components/Card.tsx-Card"
        assert card.source_path == "components/Card.tsx"
        assert backend.read(STORAGE_KEY)["version"] == 2

    def test_repository_kind_survives_reload(self):
        """Test the repository kind is persisted."""
        backend = MemoryBackend()
        store = RepositoryStore(backend)
        store.register(
            Repository(
                id="repo_f",
                name="Figma",
                path="https://www.figma.com/file/abc",
                kind=RepositoryKind.FIGMA,
                figma_file_key="abc",
            )
        )
        reloaded = RepositoryStore(backend)
        reloaded.load()
        assert reloaded.get_repository("repo_f").kind is RepositoryKind.FIGMA


class TestLocks:
    """Tests for per-repository locks."""

    def test_same_lock_per_repository(self, memory_store):
        """Test the lock for one repository is shared."""
        assert memory_store.lock_for("repo_a") is memory_store.lock_for("repo_a")
        assert memory_store.lock_for("repo_a") is not memory_store.lock_for("repo_b")

    def test_lock_released_on_remove(self, memory_store):
        """Test removing a repository forgets its lock."""
        memory_store.register(repo("repo_a", "A"))
        before = memory_store.lock_for("repo_a")
        assert memory_store.remove("repo_a")
        assert memory_store.lock_for("repo_a") is not before

    def test_concurrent_replacements(self, memory_store, make_component):
        """Test concurrent writers to different repositories all land."""
        repo_ids = [f"repo_{i}" for i in range(8)]
        for repo_id in repo_ids:
            memory_store.register(repo(repo_id, repo_id))

        def replace(repo_id):
            with memory_store.lock_for(repo_id):
                memory_store.replace_library(repo_id, [make_component()])

        threads = [threading.Thread(target=replace, args=(r,)) for r in repo_ids]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(memory_store.list_libraries()) == 8
        assert len(memory_store.all_components()) == 8

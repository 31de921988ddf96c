"""End-to-end tests: register, scan, persist, reload and compare."""

import json
from pathlib import Path

from component_tracker.config import TrackerConfig
from component_tracker.store import STORAGE_KEY, JSONFileBackend, RepositoryStore
from component_tracker.tracker import ComponentTracker
from tests.conftest import write_files


def file_tracker(state_dir: Path) -> ComponentTracker:
    """Tracker persisting to JSON files under state_dir."""
    return ComponentTracker(TrackerConfig(state_dir=state_dir, max_workers=4))


class TestScanFlow:
    """Full flows across the tracker, store and engine."""

    def test_state_survives_restart(self, tmp_path: Path, sample_repo: Path, second_repo: Path):
        """Test a new tracker process sees the same libraries and comparisons."""
        state_dir = tmp_path / "state"
        tracker = file_tracker(state_dir)
        tracker.add_repository(sample_repo)
        tracker.add_repository(second_repo)
        assert all(r.success for r in tracker.scan_repositories())
        before = [c.to_dict() for c in tracker.compare()]

        restarted = file_tracker(state_dir)
        after = [c.to_dict() for c in restarted.compare()]

        assert after == before
        assert after[0]["componentName"] == "Button"
        assert after[0]["consistencyScore"] == 78

    def test_unversioned_state_upgraded_on_load(self, tmp_path: Path, sample_repo: Path):
        """Test state written before versioning is namespaced and rewritten."""
        state_dir = tmp_path / "state"
        state_dir.mkdir()
        legacy = {
            "repositories": [
                [
                    "repo_1_legacy",
                    {"id": "repo_1_legacy", "name": "Legacy", "path": str(sample_repo)},
                ]
            ],
            "componentLibraries": [
                [
                    "repo_1_legacy",
                    {
                        "id": "repo_1_legacy-library",
                        "components": [
                            {
                                "id": "src/components/Card/Card.tsx-Card",
                                "name": "Card",
                                "variants": [
                                    {"id": "src/components/Card/Card.tsx-Card-default"}
                                ],
                            }
                        ],
                    },
                ],
                ["repo_deleted", {"id": "repo_deleted-library", "components": []}],
            ],
        }
        (state_dir / f"{STORAGE_KEY}.json").write_text(json.dumps(legacy))

        tracker = file_tracker(state_dir)
        (card,) = tracker.get_library("repo_1_legacy").components
        assert card.id == "repo_1_legacy:src/components/Card/Card.tsx-Card"
        assert card.source_path == "src/components/Card/Card.tsx"
        assert tracker.read_component_source("repo_1_legacy", card.source_path).startswith(
            "import React"
        )

        persisted = json.loads((state_dir / f"{STORAGE_KEY}.json").read_text())
        assert persisted["version"] == 2
        assert [repo_id for repo_id, _ in persisted["componentLibraries"]] == [
            "repo_1_legacy"
        ]

        # rescanning the migrated repository keeps ids stable
        library = tracker.scan_repository("repo_1_legacy")
        assert card.id in {c.id for c in library.components}

    def test_corrupt_state_starts_empty(self, tmp_path: Path):
        """Test an unreadable state file does not prevent startup."""
        state_dir = tmp_path / "state"
        state_dir.mkdir()
        (state_dir / f"{STORAGE_KEY}.json").write_text("{truncated")
        assert file_tracker(state_dir).list_repositories() == []

    def test_same_file_layout_in_two_repositories(self, tmp_path: Path):
        """Test identical relative paths produce distinct component ids."""
        files = {"components/Card.tsx": "export function Card() { return null; }"}
        one = write_files(tmp_path / "one", files)
        two = write_files(tmp_path / "two", files)

        tracker = file_tracker(tmp_path / "state")
        first = tracker.add_repository(one)
        second = tracker.add_repository(two)
        tracker.scan_repositories()

        ids = {c.id for c in tracker.store.all_components()}
        assert ids == {
            f"{first.id}:components/Card.tsx-Card",
            f"{second.id}:components/Card.tsx-Card",
        }
        (card,) = tracker.compare()
        assert card.consistency_score == 100
        assert [p.exists for p in card.repositories] == [True, True]

    def test_store_shared_between_trackers(self, tmp_path: Path, sample_repo: Path):
        """Test an explicitly injected store is used as-is."""
        store = RepositoryStore(JSONFileBackend(tmp_path / "state"))
        tracker = ComponentTracker(TrackerConfig(state_dir=tmp_path / "unused"), store=store)
        repo = tracker.add_repository(sample_repo)
        tracker.scan_repository(repo.id)
        assert not (tmp_path / "unused").exists()
        assert len(store.all_components()) == 3

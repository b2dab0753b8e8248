"""Download history persistence and reset rules."""

import json

from sv_app.modules.history.store import NO_ASSETS_HASH, HistoryStore, dataset_hash


class TestDatasetHash:
    def test_empty(self):
        assert dataset_hash([]) == NO_ASSETS_HASH

    def test_depends_on_count_and_ends(self, make_asset):
        a, b, c = make_asset(), make_asset(), make_asset()
        assert dataset_hash([a, b, c]) == dataset_hash([a, make_asset(url=b.url), c])
        assert dataset_hash([a, b, c]) != dataset_hash([a, c])
        assert dataset_hash([a, b, c]) != dataset_hash([c, b, a])


class TestHistoryStore:
    def test_records_and_persists(self, tmp_path, make_asset):
        assets = [make_asset(), make_asset()]
        path = tmp_path / "h.json"

        store = HistoryStore(path, "1.0")
        store.init(assets)
        store.record_success(assets[0].id)
        store.record_success(assets[0].id)
        store.record_failure(assets[1].id)

        reloaded = HistoryStore(path, "1.0")
        reloaded.init(assets)
        h = reloaded.get_history(a.id for a in assets)
        assert h[assets[0].id].success_count == 2
        assert h[assets[1].id].fail_count == 1

    def test_version_change_resets(self, tmp_path, make_asset):
        assets = [make_asset()]
        path = tmp_path / "h.json"
        store = HistoryStore(path, "1.0")
        store.init(assets)
        store.record_success(assets[0].id)

        newer = HistoryStore(path, "1.1")
        newer.init(assets)
        assert newer.get_history([assets[0].id]) == {}
        assert json.loads(path.read_text())["version"] == "1.1"

    def test_different_export_resets(self, tmp_path, make_asset):
        path = tmp_path / "h.json"
        first = [make_asset()]
        store = HistoryStore(path, "1.0")
        store.init(first)
        store.record_failure(first[0].id)

        other = HistoryStore(path, "1.0")
        other.init([make_asset(), make_asset()])
        assert other.get_history([first[0].id]) == {}

    def test_corrupt_file_starts_fresh(self, tmp_path, make_asset):
        path = tmp_path / "h.json"
        path.write_text("{not json", encoding="utf-8")
        store = HistoryStore(path, "1.0")
        store.init([make_asset()])
        assert json.loads(path.read_text())["history"] == {}

    def test_returned_history_is_a_copy(self, tmp_path, make_asset):
        asset = make_asset()
        store = HistoryStore(tmp_path / "h.json", "1.0")
        store.init([asset])
        store.record_success(asset.id)
        store.get_history([asset.id])[asset.id].success_count = 99
        assert store.get_history([asset.id])[asset.id].success_count == 1

    def test_clear(self, tmp_path, make_asset):
        asset = make_asset()
        path = tmp_path / "h.json"
        store = HistoryStore(path, "1.0")
        store.init([asset])
        store.record_success(asset.id)
        store.clear()
        assert not path.exists()
        assert store.get_history([asset.id]) == {}

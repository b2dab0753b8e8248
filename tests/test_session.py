"""Session bookkeeping: progress snapshots, listeners and resets."""

from sv_app.core.session import SessionContext
from sv_app.modules.export.schemas import AssetState


class TestProgress:
    def test_snapshot_counts_scope_only(self, make_asset):
        session = SessionContext()
        assets = [make_asset() for _ in range(4)]
        session.load_assets(assets)
        session.set_scope(assets[:2])

        session.update_asset(assets[0], state=AssetState.success)
        session.update_asset(assets[1], state=AssetState.processing)
        session.update_asset(assets[2], state=AssetState.error)

        snap = session.snapshot()
        assert (snap.total, snap.completed, snap.failed, snap.currently_processing) == (2, 1, 0, 1)
        assert snap.percent == 50
        assert snap.pending == 0

    def test_percent_never_decreases(self, make_asset):
        session = SessionContext()
        assets = [make_asset() for _ in range(2)]
        session.load_assets(assets)
        session.set_scope(assets)
        session.update_asset(assets[0], state=AssetState.success)
        assert session.snapshot().percent == 50

        session.update_asset(assets[0], state=AssetState.processing)
        assert session.snapshot().percent == 50

        session.set_scope(assets)
        assert session.snapshot().percent == 0

    def test_listener_errors_are_contained(self, make_asset):
        session = SessionContext()
        session.load_assets([make_asset()])
        seen = []

        def broken(snap):
            raise RuntimeError("boom")

        session.subscribe(broken)
        unsubscribe = session.subscribe(seen.append)
        session.publish()
        unsubscribe()
        session.publish()
        assert len(seen) == 1


class TestResets:
    def test_reset_for_new_download_keeps_assets(self, make_asset):
        session = SessionContext()
        asset = make_asset(country="France")
        session.load_assets([asset])
        session.update_asset(asset, state=AssetState.error, retry_count=2, progress=40)
        session.record_year_progress(2024, 10)
        session.message_key = "ERROR_ZIP_CREATION"
        session.cancel()

        session.reset_for_new_download()

        assert session.assets == [asset]
        assert asset.country == "France"
        assert (asset.state, asset.progress, asset.retry_count) == (None, 0, 0)
        assert not session.year_files and not session.message_key
        assert not session.cancelled

    def test_full_reset(self, make_asset):
        session = SessionContext()
        session.load_assets([make_asset()])
        session.reset()
        assert session.assets == []
        assert session.expires_at is None

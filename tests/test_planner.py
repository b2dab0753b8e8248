"""Batch planning: sizes, ordering and output names."""

import pytest

from sv_app.modules.export.planner import is_large_selection, plan, single_batch
from sv_app.modules.export.schemas import BatchStatus, SelectionContext, SelectionMode


class TestPlan:
    def test_1200_by_500(self, make_asset):
        assets = [make_asset() for _ in range(1200)]
        batches = plan(assets, 500)
        assert [len(b) for b in batches] == [500, 500, 200]
        assert [b.batch_num for b in batches] == [1, 2, 3]
        assert all(b.total_batches == 3 for b in batches)
        assert all(b.status == BatchStatus.planned for b in batches)

    @pytest.mark.parametrize("count,size", [(0, 3), (1, 1), (7, 3), (9, 3), (10, 500)])
    def test_slices_cover_input_in_order(self, make_asset, count, size):
        assets = [make_asset() for _ in range(count)]
        batches = plan(assets, size)
        assert len(batches) == -(-count // size)
        flat = [a for b in batches for a in b.assets]
        assert flat == assets
        assert len({a.id for a in flat}) == count

    def test_rejects_non_positive_size(self, make_asset):
        with pytest.raises(ValueError):
            plan([make_asset()], 0)

    def test_filenames(self, make_asset):
        ctx = SelectionContext(mode=SelectionMode.country, selection="United States")
        batches = plan([make_asset() for _ in range(3)], 2, ctx)
        assert [b.archive_filename for b in batches] == [
            "memories-country-United-States-part-1-of-2.zip",
            "memories-country-United-States-part-2-of-2.zip",
        ]


class TestThreshold:
    def test_boundary(self):
        assert not is_large_selection(500, 500)
        assert is_large_selection(501, 500)

    def test_single_batch(self, make_asset):
        batch = single_batch(
            [make_asset() for _ in range(4)],
            SelectionContext(mode=SelectionMode.year, selection=2024),
        )
        assert batch.batch_num == batch.total_batches == 1
        assert batch.archive_filename == "memories-year-2024.zip"
        assert batch.status == BatchStatus.processing

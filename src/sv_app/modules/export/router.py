# src/sv_app/modules/export/router.py
from fastapi import APIRouter

from sv_app.api.deps import SettingsDep
from sv_app.core.errors import to_http
from sv_app.core.paths import archive_filename

from .planner import is_large_selection, partition
from .schemas import PlannedBatch, PlanRequest, PlanResponse, SelectionContext

router = APIRouter(prefix="/export", tags=["export"])


@router.post(
    path="/plan",
    response_model=PlanResponse,
    summary="Preview the batch layout for a selection",
    description=(
        "Given the number of selected memories, return how the export would be "
        "split. Selections above the large-selection threshold (or the "
        "`batch_size` override) become numbered parts of at most that size; "
        "smaller selections are a single archive."
    ),
)
def plan_export(req: PlanRequest, settings: SettingsDep) -> PlanResponse:
    try:
        size = settings.resolve_batch_size(req.batch_size)
        context = SelectionContext(mode=req.mode, selection=req.selection)

        if not is_large_selection(req.count, size):
            return PlanResponse(
                batched=False,
                batch_size=size,
                batches=[
                    PlannedBatch(
                        batch_num=1,
                        total_batches=1,
                        size=req.count,
                        archive_filename=archive_filename(context),
                    )
                ],
            )

        ranges = partition(req.count, size)
        return PlanResponse(
            batched=True,
            batch_size=size,
            batches=[
                PlannedBatch(
                    batch_num=n,
                    total_batches=len(ranges),
                    size=len(r),
                    archive_filename=archive_filename(context, n, len(ranges)),
                )
                for n, r in enumerate(ranges, start=1)
            ],
        )
    except Exception as err:
        raise to_http(err) from err

import asyncio

import pytest

from src.wardrobe_uploads.application.pipeline import UploadPipeline
from src.wardrobe_uploads.application.registry import RegistryChangeKind, TaskRegistry
from src.wardrobe_uploads.domain.cancellation import CancellationToken
from src.wardrobe_uploads.domain.models.notification import NotificationKind
from src.wardrobe_uploads.domain.models.task import FailedTask, SucceededTask
from src.wardrobe_uploads.domain.models.task_status import TaskStatus

from tests.conftest import CDN, RecordingNotifier, ScriptedAnalysis, ScriptedTransport


@pytest.fixture
def pipeline(
    registry: TaskRegistry,
    transport: ScriptedTransport,
    analysis: ScriptedAnalysis,
    notifier: RecordingNotifier,
) -> UploadPipeline:
    return UploadPipeline(registry, transport, analysis, notifier)


@pytest.mark.asyncio
async def test_run_walks_states_in_order(pipeline, registry, notifier, source_file) -> None:
    task_id = registry.add_task("a.jpg")
    history = []
    registry.subscribe(
        lambda change: history.append(change.task)
        if change.kind is RegistryChangeKind.UPDATED
        else None
    )

    result = await pipeline.run(task_id, source_file("a.jpg"), CancellationToken())

    statuses = [task.status for task in history]
    assert statuses[0] is TaskStatus.UPLOADING
    assert statuses[-2:] == [TaskStatus.ANALYZING, TaskStatus.SUCCESS]
    progress = [task.progress for task in history]
    assert progress == sorted(progress)
    assert isinstance(result, SucceededTask)
    assert result.progress == 100
    assert result.created_item_data.image_url == CDN + "a.jpg"
    assert result.created_item_id == result.created_item_data.id
    assert [n.kind for n in notifier.notifications] == [NotificationKind.SUCCESS]
    assert notifier.notifications[0].message == '"a.jpg" added to wardrobe!'


@pytest.mark.asyncio
async def test_upload_failure_records_uploading_stage(
    pipeline, registry, transport, analysis, notifier, source_file
) -> None:
    transport.fail("a.jpg")
    task_id = registry.add_task("a.jpg")

    result = await pipeline.run(task_id, source_file("a.jpg"), CancellationToken())

    assert isinstance(result, FailedTask)
    assert result.failed_stage is TaskStatus.UPLOADING
    assert result.error_message == "Upload of a.jpg rejected"
    assert result.asset_url is None
    assert analysis.calls == []
    assert [n.kind for n in notifier.notifications] == [NotificationKind.ERROR]


@pytest.mark.asyncio
async def test_analysis_failure_keeps_uploaded_asset(
    pipeline, registry, analysis, notifier, source_file
) -> None:
    analysis.fail("a.jpg")
    task_id = registry.add_task("a.jpg")

    result = await pipeline.run(task_id, source_file("a.jpg"), CancellationToken())

    assert isinstance(result, FailedTask)
    assert result.failed_stage is TaskStatus.ANALYZING
    assert result.asset_url == CDN + "a.jpg"
    assert result.progress == 100
    assert notifier.notifications[0].message == "Could not analyze a.jpg"


@pytest.mark.asyncio
async def test_unexpected_errors_become_error_records(
    pipeline, registry, transport, source_file
) -> None:
    transport.fail("a.jpg", RuntimeError("socket closed"))
    task_id = registry.add_task("a.jpg")

    result = await pipeline.run(task_id, source_file("a.jpg"), CancellationToken())

    assert isinstance(result, FailedTask)
    assert result.error_message == "socket closed"
    assert result.failed_stage is TaskStatus.UPLOADING


@pytest.mark.asyncio
async def test_resume_from_asset_skips_upload(pipeline, registry, transport, analysis) -> None:
    task_id = registry.add_task(
        "a.jpg", status=TaskStatus.ANALYZING, progress=100, asset_url=CDN + "a.jpg"
    )

    result = await pipeline.run(task_id, None, CancellationToken(), asset_url=CDN + "a.jpg")

    assert isinstance(result, SucceededTask)
    assert transport.calls == []
    assert analysis.calls == [CDN + "a.jpg"]


@pytest.mark.asyncio
async def test_cancelled_run_writes_nothing(pipeline, registry, notifier, source_file) -> None:
    task_id = registry.add_task("a.jpg")
    before = registry.get_task(task_id)
    token = CancellationToken()
    token.cancel()

    with pytest.raises(asyncio.CancelledError):
        await pipeline.run(task_id, source_file("a.jpg"), token)

    assert registry.get_task(task_id) is before
    assert notifier.notifications == []


@pytest.mark.asyncio
async def test_removed_task_is_not_resurrected(
    pipeline, registry, transport, notifier, source_file
) -> None:
    task_id = registry.add_task("a.jpg")
    gate = transport.hold("a.jpg")
    run = asyncio.create_task(pipeline.run(task_id, source_file("a.jpg"), CancellationToken()))
    await asyncio.sleep(0.01)

    registry.remove_task(task_id)
    gate.set()

    assert await run is None
    assert task_id not in registry
    assert notifier.notifications == []


@pytest.mark.asyncio
async def test_notifier_failure_does_not_escape(registry, transport, analysis, source_file) -> None:
    class BrokenNotifier:
        async def notify(self, notification) -> None:
            raise ConnectionError("toast surface gone")

    pipeline = UploadPipeline(registry, transport, analysis, BrokenNotifier())
    task_id = registry.add_task("a.jpg")

    result = await pipeline.run(task_id, source_file("a.jpg"), CancellationToken())

    assert isinstance(result, SucceededTask)

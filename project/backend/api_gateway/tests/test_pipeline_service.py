"""
Tests for the pipeline service helpers and session handling.
"""

import asyncio
import json

import pytest

from api_gateway.services.pipeline_service import continuity_migration, nested_patch
from modules.step_pipeline import AutoInvocationState
from shared.errors import NotFoundError, ServiceNotConfiguredError, ValidationError
from shared.models import VideoProject

SCRIPT = {"uiInputs": {"campaignSpark": "Water meets glass", "visualBeats": {"beat1": "Rise"}}}

LINKED_STORYBOARD = {
    "scenes": [
        {
            "id": "s1",
            "shots": [
                {"id": "a", "duration": 6},
                {"id": "b", "duration": 6, "isLinkedToPrevious": True},
            ],
        }
    ]
}


def test_nested_patch_builds_tree():
    assert nested_patch("assets.product.heroUrl", "u") == {"assets": {"product": {"heroUrl": "u"}}}
    assert nested_patch("logoUrl", "u") == {"logoUrl": "u"}


def test_nested_patch_requires_key():
    with pytest.raises(ValidationError):
        nested_patch(" . ", "u")


def test_continuity_migration_only_for_legacy_vlog():
    legacy = VideoProject(id="v", workspace_id="ws", mode="character-vlog", step4_data={"storyboard": LINKED_STORYBOARD})
    migrated = VideoProject(
        id="v", workspace_id="ws", mode="character-vlog",
        step4_data={"storyboard": LINKED_STORYBOARD, "continuityGroups": {}}
    )
    commerce = VideoProject(id="v", workspace_id="ws", mode="social-commerce", step4_data={"storyboard": LINKED_STORYBOARD})

    patch = continuity_migration(legacy)

    assert patch["continuityGroups"]["s1"][0]["shotIds"] == ["a", "b"]
    assert continuity_migration(migrated) is None
    assert continuity_migration(commerce) is None


@pytest.mark.asyncio
async def test_get_video_persists_migration(pipeline_service, fake_db):
    project = fake_db.add_project(VideoProject(
        id="video-9", workspace_id="ws-1", mode="character-vlog", step4_data={"storyboard": LINKED_STORYBOARD}
    ))

    refreshed = await pipeline_service.get_video(project)

    assert "continuityGroups" in refreshed.step4_data
    assert "continuityGroups" in fake_db.row("video-9")["step4_data"]


@pytest.mark.asyncio
async def test_session_saved_with_ttl(pipeline_service, commerce_project, fake_redis):
    async with pipeline_service.session(commerce_project) as state:
        state.current_step = 1

    key = "pipeline_state:video-1"
    assert key in fake_redis.values
    assert fake_redis.ttls[key] == 600


@pytest.mark.asyncio
async def test_session_saved_when_operation_fails(pipeline_service, commerce_project, fake_redis):
    with pytest.raises(RuntimeError):
        async with pipeline_service.session(commerce_project):
            raise RuntimeError("boom")

    assert "pipeline_state:video-1" in fake_redis.values


@pytest.mark.asyncio
async def test_session_for_other_mode_is_discarded(pipeline_service, commerce_project, fake_redis):
    await fake_redis.set_json("pipeline_state:video-1", {"videoId": "video-1", "mode": "character-vlog"})

    state = await pipeline_service.load_state(commerce_project)

    assert state.mode == "social-commerce"


@pytest.mark.asyncio
async def test_attach_upload_keeps_staged_entry_on_failure(pipeline_service, commerce_project, uploads, mock_storage):
    staged = uploads.add("hero.png", b"\x89PNG\r\n\x1a\n" + b"\x00" * 64)
    mock_storage.put.side_effect = RuntimeError("cdn down")

    with pytest.raises(RuntimeError):
        await pipeline_service.attach_upload(commerce_project, 1, staged.temp_id, "productImageUrl")

    assert uploads.get(staged.temp_id) is staged


@pytest.mark.asyncio
async def test_attach_upload_missing_temp(pipeline_service, commerce_project):
    with pytest.raises(NotFoundError):
        await pipeline_service.attach_upload(commerce_project, 1, "nope", "productImageUrl")


@pytest.fixture
def storyboard_project(fake_db):
    return fake_db.add_project(VideoProject(
        id="video-7",
        workspace_id="ws-1",
        mode="social-commerce",
        current_step=4,
        completed_steps=[1, 2, 3],
        step2_data=SCRIPT,
    ))


@pytest.mark.asyncio
async def test_session_holds_video_lock(pipeline_service, commerce_project, fake_redis):
    async with pipeline_service.session(commerce_project):
        assert fake_redis.locks["pipeline_lock:video-1"].locked()

    assert fake_redis.lock_calls == [("pipeline_lock:video-1", 300, 120.0)]
    assert not fake_redis.locks["pipeline_lock:video-1"].locked()


@pytest.mark.asyncio
async def test_concurrent_patches_keep_every_field(pipeline_service, commerce_project, fake_db, setup_fields):
    """Fields saved by parallel requests all reach Continue."""
    await asyncio.gather(*(
        pipeline_service.patch_step_data(commerce_project, 1, {name: value})
        for name, value in setup_fields.items()
    ))

    result = await pipeline_service.continue_step(commerce_project, 1, {})

    assert result.next_step == 2
    step1 = fake_db.row("video-1")["step1_data"]
    assert {name: step1[name] for name in setup_fields} == setup_fields


@pytest.mark.asyncio
async def test_patch_wins_over_stale_continue_values(pipeline_service, commerce_project, fake_db, setup_fields):
    """A value typed into Continue and then re-saved is not shadowed by the older one."""
    with pytest.raises(ValidationError):
        await pipeline_service.continue_step(commerce_project, 1, {"duration": 15})

    await pipeline_service.patch_step_data(commerce_project, 1, setup_fields)
    result = await pipeline_service.continue_step(commerce_project, 1, {})

    assert result.next_step == 2
    assert fake_db.row("video-1")["step1_data"]["duration"] == 12


@pytest.mark.asyncio
async def test_concurrent_enter_generates_storyboard_once(pipeline_service, storyboard_project, fake_agents):
    first, second = await asyncio.gather(
        pipeline_service.enter_step(storyboard_project, 4),
        pipeline_service.enter_step(storyboard_project, 4),
    )

    assert fake_agents.count("storyboard") == 1
    assert sorted([first.invoked_agent, second.invoked_agent]) == [False, True]
    assert first.auto_state == second.auto_state == AutoInvocationState.COMPLETED


@pytest.mark.asyncio
async def test_edit_detected_after_session_lost(
    pipeline_service, commerce_project, fake_redis, fake_agents, setup_fields
):
    """Completed setup edited 12 -> 24, session expired, Continue on script still asks."""
    await pipeline_service.continue_step(commerce_project, 1, setup_fields)
    patched = await pipeline_service.patch_step_data(commerce_project, 1, {"duration": 24})
    assert patched["dirty"] is True
    fake_redis.values.clear()

    result = await pipeline_service.continue_step(commerce_project, 2, SCRIPT)

    assert result.awaiting_confirmation
    assert result.dirty_step == 1
    assert fake_agents.count("narrative") == 0


@pytest.mark.asyncio
async def test_phase_saved_idle_after_provider_error(
    pipeline_service, commerce_project, fake_redis, fake_agents, setup_fields
):
    fake_agents.error = ServiceNotConfiguredError("OPENAI_API_KEY is not set")

    with pytest.raises(ServiceNotConfiguredError):
        await pipeline_service.continue_step(commerce_project, 1, setup_fields)

    saved = json.loads(fake_redis.values["pipeline_state:video-1"])
    assert saved["phase"] == "idle"


@pytest.mark.asyncio
async def test_status_does_not_wait_for_running_operation(pipeline_service, commerce_project, fake_redis):
    async with fake_redis.lock("pipeline_lock:video-1"):
        status = await pipeline_service.pipeline_status(commerce_project)

    assert status["currentStep"] == 1
    assert status["phase"] == "idle"


@pytest.mark.asyncio
async def test_legacy_session_without_version_is_rebuilt(pipeline_service, commerce_project, fake_redis):
    await fake_redis.set_json("pipeline_state:video-1", {
        "videoId": "video-1",
        "mode": "social-commerce",
        "fields": {"setup": {"duration": None}},
    })

    assert await pipeline_service.sessions.load("video-1") is None

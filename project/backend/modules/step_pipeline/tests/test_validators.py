"""
Unit tests for step validators and versioned reads.
"""

import pytest
from unittest.mock import MagicMock

from modules.step_pipeline import CHARACTER_VLOG, SOCIAL_COMMERCE, can_advance, missing_requirements
from modules.step_pipeline.versioned import read_field, resolve_visual_beats


@pytest.fixture
def setup_data():
    return {1: {"targetAudience": "gen-z", "duration": 12, "customMotionInstructions": "orbit shot"}}


class TestCommerceSetup:

    def test_complete_setup_can_advance(self, setup_data):
        assert can_advance(SOCIAL_COMMERCE, "setup", setup_data)

    def test_reports_every_missing_field(self):
        assert missing_requirements(SOCIAL_COMMERCE, "setup", {}) == [
            "customMotionInstructions",
            "targetAudience",
            "duration",
        ]

    def test_whitespace_motion_instructions_rejected(self, setup_data):
        setup_data[1]["customMotionInstructions"] = "   "
        assert missing_requirements(SOCIAL_COMMERCE, "setup", setup_data) == ["customMotionInstructions"]

    @pytest.mark.parametrize("duration", [15, "12", None, True])
    def test_duration_outside_enum_rejected(self, setup_data, duration):
        setup_data[1]["duration"] = duration
        assert missing_requirements(SOCIAL_COMMERCE, "setup", setup_data) == ["duration"]

    def test_validator_is_pure(self, setup_data):
        """Same input, same output, and no collaborator is touched."""
        agents = MagicMock()
        store = MagicMock()
        snapshot = {1: dict(setup_data[1])}

        first = can_advance(SOCIAL_COMMERCE, "setup", setup_data)
        second = can_advance(SOCIAL_COMMERCE, "setup", setup_data)

        assert first == second is True
        assert setup_data == snapshot
        assert agents.mock_calls == []
        assert store.mock_calls == []


class TestCommerceScript:

    def test_requires_spark_and_beats(self):
        assert missing_requirements(SOCIAL_COMMERCE, "script", {}) == ["creativeSpark", "visualBeats"]

    def test_short_spark_rejected(self):
        data = {2: {"uiInputs": {"campaignSpark": "too short", "visualBeats": {"beat1": "Rise"}}}}
        assert missing_requirements(SOCIAL_COMMERCE, "script", data) == ["creativeSpark"]

    def test_user_beats_satisfy_beats(self):
        data = {2: {"uiInputs": {"campaignSpark": "Water meets glass", "visualBeats": {"beat1": "Rise"}}}}
        assert can_advance(SOCIAL_COMMERCE, "script", data)

    def test_spark_read_from_legacy_step(self):
        """Projects saved before the move keep their spark under step 3."""
        data = {
            2: {"narrative": {"visual_beats": [{"beatId": "beat1", "beatDescription": "Rise"}]}},
            3: {"creativeSpark": "Water meets glass"},
        }
        assert can_advance(SOCIAL_COMMERCE, "script", data)


def test_versioned_read_prefers_current_location():
    data = {2: {"creativeSpark": "current spark"}, 3: {"creativeSpark": "legacy spark"}}
    assert read_field(data, "creativeSpark") == "current spark"


def test_versioned_read_skips_empty_values():
    data = {2: {"uiInputs": {"campaignSpark": "  "}}, 3: {"creativeSpark": "legacy spark"}}
    assert read_field(data, "creativeSpark") == "legacy spark"


def test_generated_beats_win_over_user_beats():
    data = {2: {
        "uiInputs": {"visualBeats": {"beat1": "typed"}},
        "narrative": {"visual_beats": [{"beatId": "beat1", "beatDescription": "generated"}]},
    }}
    assert resolve_visual_beats(data) == [{"beatId": "beat1", "beatDescription": "generated"}]


def test_storyboard_requires_shots_in_every_scene():
    data = {4: {"storyboard": {"scenes": [{"id": "a", "shots": [{"id": "1"}]}, {"id": "b", "shots": []}]}}}
    assert missing_requirements(SOCIAL_COMMERCE, "storyboard", data) == ["storyboard.scenes[1].shots"]


class TestVlog:

    def test_script_requires_prompt_duration_and_style(self):
        assert missing_requirements(CHARACTER_VLOG, "script", {1: {"narrationStyle": "omniscient"}}) == [
            "userPrompt",
            "duration",
            "narrationStyle",
        ]

    def test_script_accepts_written_script(self):
        data = {1: {"script": "Morning walk", "duration": 60, "narrationStyle": "first-person"}}
        assert can_advance(CHARACTER_VLOG, "script", data)

    def test_elements_need_a_named_character(self):
        assert not can_advance(CHARACTER_VLOG, "elements", {2: {"characters": [{"name": " "}]}})
        assert can_advance(CHARACTER_VLOG, "elements", {2: {"characters": [{"name": "Mira"}]}})

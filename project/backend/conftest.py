"""
Pytest configuration and fixtures shared by every test package.

Settings are loaded at import time, so test environment variables are set
before any project module is imported.
"""

import copy
import os
from typing import Any, Callable, Dict, List, Optional

import pytest

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test_service_key_1234567890123456789012345678901234567890")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test_jwt_secret_123456789012345678901234567890")
os.environ.setdefault("FRONTEND_URL", "http://localhost:3000")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from modules.step_pipeline import PipelineState, StepDataStore, StepTransitionController, VideoRepository  # noqa: E402
from shared.models import VideoProject  # noqa: E402


class FakeResult:
    def __init__(self, data: List[Dict[str, Any]]):
        self.data = data
        self.count = len(data)


class FakeQuery:
    """Chainable stand-in for a Supabase table query."""

    def __init__(self, database: "FakeDatabaseClient", table: str):
        self.database = database
        self.table = table
        self.action = "select"
        self.payload: Any = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.order_by: Optional[tuple] = None
        self.max_rows: Optional[int] = None

    def select(self, columns: str = "*", count: Optional[str] = None):
        self.action = "select"
        return self

    def insert(self, data):
        self.action, self.payload = "insert", data
        return self

    def upsert(self, data):
        self.action, self.payload = "upsert", data
        return self

    def update(self, data):
        self.action, self.payload = "update", data
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column, values):
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, count):
        self.max_rows = count
        return self

    def _matches(self) -> List[Dict[str, Any]]:
        rows = self.database.tables.setdefault(self.table, [])
        return [row for row in rows if all(f(row) for f in self.filters)]

    async def execute(self) -> FakeResult:
        rows = self.database.tables.setdefault(self.table, [])
        if self.action in ("insert", "upsert"):
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            if self.action == "upsert":
                ids = {row.get("id") for row in new_rows}
                rows[:] = [row for row in rows if row.get("id") not in ids]
            rows.extend(copy.deepcopy(new_rows))
            return FakeResult(copy.deepcopy(new_rows))

        if self.action == "update":
            if self.table == "videos" and self.database.conflicts > 0:
                # Another writer bumps the revision between our read and write
                self.database.conflicts -= 1
                for row in rows:
                    row["revision"] = row.get("revision", 0) + 1
            matched = self._matches()
            for row in matched:
                row.update(copy.deepcopy(self.payload))
            self.database.writes += len(matched)
            return FakeResult(copy.deepcopy(matched))

        if self.action == "delete":
            matched = self._matches()
            rows[:] = [row for row in rows if row not in matched]
            return FakeResult(copy.deepcopy(matched))

        matched = self._matches()
        if self.order_by:
            column, desc = self.order_by
            matched = sorted(matched, key=lambda row: row.get(column), reverse=desc)
        if self.max_rows is not None:
            matched = matched[:self.max_rows]
        return FakeResult(copy.deepcopy(matched))


class FakeDatabaseClient:
    """In-memory tables with the DatabaseClient interface."""

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {"videos": [], "workspaces": []}
        self.conflicts = 0
        self.writes = 0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    async def health_check(self) -> bool:
        return True

    def add_project(self, project: VideoProject) -> VideoProject:
        self.tables["videos"].append(project.to_row())
        return project

    def add_member(self, workspace_id: str, user_id: str) -> None:
        self.tables["workspaces"].append({"id": workspace_id, "user_id": user_id})

    def row(self, video_id: str) -> Dict[str, Any]:
        return next(row for row in self.tables["videos"] if row["id"] == video_id)


class FakeAgents:
    """Agent invoker returning canned outputs and recording every call."""

    def __init__(self, outputs: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        self.outputs = dict(outputs or {})
        self.error = error
        self.calls: List[tuple] = []

    async def invoke(self, agent_id: str, payload: Dict[str, Any], allow_fallback: bool = False):
        self.calls.append((agent_id, payload, allow_fallback))
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.outputs[agent_id])

    def count(self, agent_id: str) -> int:
        return sum(1 for call in self.calls if call[0] == agent_id)


STRATEGIC_CONTEXT = {
    "strategic_directives": "Lead with the product silhouette.",
    "pacing_profile": "FAST_CUT",
    "optimized_motion_dna": "Slow orbit around the bottle.",
    "optimized_image_instruction": "Soft studio light.",
}

STORYBOARD = {
    "scenes": [
        {
            "id": "beat1",
            "name": "Reveal",
            "shots": [
                {"id": "beat1-shot1", "description": "Bottle on marble", "duration": 6},
                {"id": "beat1-shot2", "description": "Close-up", "duration": 6, "isLinkedToPrevious": True},
            ],
        }
    ]
}


@pytest.fixture
def fake_db():
    return FakeDatabaseClient()


@pytest.fixture
def repository(fake_db):
    return VideoRepository(fake_db)


@pytest.fixture
def store(repository):
    return StepDataStore(repository, max_attempts=5, base_delay=0)


@pytest.fixture
def fake_agents():
    return FakeAgents({
        "strategic_context": STRATEGIC_CONTEXT,
        "narrative": {
            "visual_beats": [{
                "beatId": "beat1",
                "beatName": "Reveal",
                "beatDescription": "The bottle rises out of still water as light sweeps across the glass shoulder.",
                "duration": 12,
            }]
        },
        "beat_prompts": {
            "beat_prompts": [{"beatId": "beat1", "image_prompt": "Bottle in water", "video_prompt": "Rise"}]
        },
        "storyboard": STORYBOARD,
        "vlog_script": {"title": "Day one", "script": "Morning at the lighthouse."},
        "scene_breakdown": {"scenes": [{"id": "s1", "name": "Dawn", "description": "Sunrise", "duration": 30}]},
    })


@pytest.fixture
def controller(store, fake_agents):
    return StepTransitionController(store, fake_agents, disabled_flags=())


@pytest.fixture
def commerce_project(fake_db):
    return fake_db.add_project(VideoProject(id="video-1", workspace_id="ws-1", mode="social-commerce"))


@pytest.fixture
def vlog_project(fake_db):
    return fake_db.add_project(VideoProject(id="video-2", workspace_id="ws-1", mode="character-vlog"))


@pytest.fixture
def commerce_state(commerce_project):
    return PipelineState.from_project(commerce_project)


@pytest.fixture
def setup_fields():
    return {
        "productTitle": "Aqua Serum",
        "targetAudience": "Skincare enthusiasts 25-40",
        "duration": 12,
        "customMotionInstructions": "Slow orbit, rack focus on the label",
    }

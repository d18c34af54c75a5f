# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for the bounded execution log
"""

import json
from unittest.mock import patch

import pytest

from chatflow.engine.execution_log import ExecutionLogStore
from chatflow.engine.models import ExecutionResult, RunStatus


def make_result(index: int, workflow_id: str = "wf_1", status: RunStatus = RunStatus.COMPLETED) -> ExecutionResult:
    return ExecutionResult(
        execution_id=f"exec_{index:03d}",
        workflow_id=workflow_id,
        status=status,
        started_at=f"2025-01-01T00:00:{index % 60:02d}+00:00",
        completed_at=f"2025-01-01T00:01:{index % 60:02d}+00:00",
        duration_ms=float(index),
        execution_order=["trigger"],
    )


@pytest.mark.asyncio
async def test_keeps_newest_fifty():
    store = ExecutionLogStore(limit=50)
    for i in range(60):
        await store.record(make_result(i))

    history = await store.history("wf_1")

    assert len(history) == 50
    assert history[0].execution_id == "exec_059"
    assert history[-1].execution_id == "exec_010"


@pytest.mark.asyncio
async def test_full_results_follow_the_window():
    store = ExecutionLogStore(limit=3)
    for i in range(5):
        await store.record(make_result(i))

    assert store.get("exec_000") is None
    assert store.get("exec_004").execution_id == "exec_004"


@pytest.mark.asyncio
async def test_workflows_are_separate():
    store = ExecutionLogStore(limit=2)
    await store.record(make_result(1, "wf_a"))
    await store.record(make_result(2, "wf_b"))

    assert [e.execution_id for e in await store.history("wf_a")] == ["exec_001"]
    assert (await store.latest("wf_b")).execution_id == "exec_002"
    assert await store.latest("wf_missing") is None


@pytest.mark.asyncio
async def test_stats():
    store = ExecutionLogStore()
    await store.record(make_result(1, status=RunStatus.COMPLETED))
    await store.record(make_result(3, status=RunStatus.PARTIAL))

    stats = await store.stats("wf_1")

    assert stats["total"] == 2
    assert stats["byStatus"]["completed"] == 1
    assert stats["byStatus"]["partial"] == 1
    assert stats["averageDurationMs"] == 2.0


@pytest.mark.asyncio
async def test_persists_and_reloads(temp_dir):
    store = ExecutionLogStore(limit=5, storage_dir=str(temp_dir))
    for i in range(3):
        await store.record(make_result(i))

    on_disk = json.loads((temp_dir / "wf_1.json").read_text())
    assert [e["execution_id"] for e in on_disk] == ["exec_002", "exec_001", "exec_000"]

    reloaded = ExecutionLogStore(limit=5, storage_dir=str(temp_dir))
    await reloaded.record(make_result(3))
    history = await reloaded.history("wf_1")
    assert [e.execution_id for e in history] == ["exec_003", "exec_002", "exec_001", "exec_000"]


@pytest.mark.asyncio
async def test_interrupted_write_keeps_previous_file(temp_dir):
    store = ExecutionLogStore(storage_dir=str(temp_dir))
    await store.record(make_result(0))
    assert sorted(p.name for p in temp_dir.iterdir()) == ["wf_1.json"]
    before = (temp_dir / "wf_1.json").read_text()

    with patch("chatflow.engine.execution_log.json.dumps", side_effect=TypeError("not serializable")):
        with pytest.raises(TypeError):
            await store.record(make_result(1))

    assert (temp_dir / "wf_1.json").read_text() == before


@pytest.mark.asyncio
async def test_clear(temp_dir):
    store = ExecutionLogStore(storage_dir=str(temp_dir))
    await store.record(make_result(1))
    await store.clear("wf_1")

    assert await store.history("wf_1") == []
    assert json.loads((temp_dir / "wf_1.json").read_text()) == []


def test_limit_must_be_positive():
    with pytest.raises(ValueError):
        ExecutionLogStore(limit=0)

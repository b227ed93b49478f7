"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
from typing import Any

import pytest

from stepwise.core.errors import TransportError
from stepwise.core.registry import NodeRegistry
from stepwise.core.sequence import StepSequence


class FakeDescriptorSource:
    """Descriptor source returning scripted responses, optionally after a delay."""

    def __init__(self, *responses: Any, delay: float = 0.0) -> None:
        self.responses = list(responses)
        self.delay = delay
        self.calls = 0

    async def list_node_descriptors(self) -> list[Any]:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, BaseException):
            raise response
        return response


class FakeExecutionBackend:
    """Execution backend serving a scripted sequence of records.

    Each entry of ``records`` is returned by one get_execution() call; the
    last one repeats. An exception instance in the list is raised instead.
    """

    def __init__(
        self,
        records: list[Any],
        logs: list[dict[str, Any]] | None = None,
        cancel_error: Exception | None = None,
    ) -> None:
        self.records = list(records)
        self.logs = logs or []
        self.cancel_error = cancel_error
        self.fetches: list[str] = []
        self.cancels: list[str] = []

    async def get_execution(self, execution_id: str) -> dict[str, Any]:
        self.fetches.append(execution_id)
        record = self.records.pop(0) if len(self.records) > 1 else self.records[0]
        if isinstance(record, BaseException):
            raise record
        return record

    async def get_execution_logs(self, execution_id: str) -> list[dict[str, Any]]:
        return list(self.logs)

    async def cancel_execution(self, execution_id: str) -> dict[str, Any]:
        self.cancels.append(execution_id)
        if self.cancel_error is not None:
            raise self.cancel_error
        return {"message": "Execution cancelled"}


def make_descriptor(descriptor_id: str, name: str | None = None, **extra: Any) -> dict[str, Any]:
    """Raw descriptor the way the backend returns it (snake_case)."""
    data: dict[str, Any] = {
        "id": descriptor_id,
        "name": name or descriptor_id.title(),
        "description": f"{descriptor_id} node",
        "category": "Data",
        "version": 1,
        "icon": "database",
        "input_schema": {
            "type": "object",
            "properties": {
                "url": {"type": "string", "description": "Endpoint"},
                "retries": {"type": "integer", "default": 3},
            },
            "required": ["url"],
        },
        "output_schema": {"type": "object", "properties": {"body": {"type": "object"}}},
        "ui_config": {},
        "config": {},
    }
    data.update(extra)
    return data


def execution_row(status: str = "running", **extra: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "id": "exec-1",
        "workflow_id": "wf-1",
        "status": status,
        "started_at": "2024-05-01T10:00:00.000Z",
        "completed_at": None,
        "error_message": None,
        "output_data": None,
    }
    row.update(extra)
    return row


@pytest.fixture
def descriptor_factory():
    """Build raw descriptor dicts."""
    return make_descriptor


@pytest.fixture
def execution_factory():
    """Build raw execution rows."""
    return execution_row


@pytest.fixture
def fake_source_cls():
    return FakeDescriptorSource


@pytest.fixture
def fake_backend_cls():
    return FakeExecutionBackend


@pytest.fixture
def transport_error():
    return TransportError("connection refused")


@pytest.fixture
def registry():
    """Registry without a remote source (register() only)."""
    return NodeRegistry()


@pytest.fixture
def sequence(registry):
    return StepSequence(registry)

"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Iterator

import pytest

from inkwell.core.invariants import configure_invariants
from inkwell.editor.scheduling import ManualScheduler
from tests.helpers import make_document, make_session


@pytest.fixture(autouse=True)
def strict_invariants() -> Iterator[None]:
    configure_invariants(strict=True)
    yield
    configure_invariants(strict=True)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def two_paragraphs():
    return make_document("hello world\nsecond line")


@pytest.fixture
def session(scheduler: ManualScheduler):
    editing_session = make_session("hello world\nsecond line", scheduler=scheduler)
    yield editing_session
    editing_session.close()

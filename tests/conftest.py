"""Fixtures shared by the controller tests."""

from __future__ import annotations

from typing import List

import pytest

from controller import ItemLifecycleController, RecordingDispatcher
from core import SurveyItem
from fakes import FakeSurveyService, make_settings


@pytest.fixture
def sample_items() -> List[SurveyItem]:
    return [
        SurveyItem(id="a1", category_id="hud", component_key="reticle", title="Reticle"),
        SurveyItem(id="a2", category_id="hud", title="Gauge"),
        SurveyItem(id="b1", category_id="nav", component_key="compass", title="Compass"),
    ]


@pytest.fixture
def service(sample_items) -> FakeSurveyService:
    return FakeSurveyService(sample_items)


@pytest.fixture
def events() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def make_controller(service, events):
    def _build(*, confirm=None, **settings_kwargs) -> ItemLifecycleController:
        return ItemLifecycleController(
            service,
            dispatch=events,
            confirm=confirm,
            settings=make_settings(**settings_kwargs),
        )

    return _build

"""Tests for container wiring."""

import asyncio

from phenotype_live.containers import build_container


def test_build_container_creates_services(settings) -> None:
    container = build_container(settings)

    assert container.session_service is not None
    assert container.photo_timer is None
    asyncio.run(container.close_resources())


def test_build_container_wires_authoritative_timer(settings) -> None:
    timer_settings = settings.model_copy(update={"authoritative_timer": True})

    container = build_container(timer_settings)

    assert container.photo_timer is not None
    assert container.photo_timer.on_session_changed in (
        container.session_service.listeners
    )
    asyncio.run(container.close_resources())

"""Tests for dealdesk logging setup."""

import logging

import pytest

from dealdesk.logging_config import (
    get_log_dir,
    log_commerce_event,
    log_escrow_event,
    log_offer_transition,
    log_sweep,
    setup_dealdesk_logging,
)


@pytest.fixture
def clean_logger():
    logger = logging.getLogger("dealdesk")
    saved = list(logger.handlers)
    logger.handlers = []
    yield logger
    for handler in logger.handlers:
        handler.close()
    logger.handlers = saved


def read_events(log_dir) -> str:
    files = list(log_dir.glob("commerce-events-*.log"))
    assert len(files) == 1
    return files[0].read_text()


def test_log_dir_under_data_dir(isolated_data_dir):
    assert get_log_dir() == isolated_data_dir / "logs"
    assert get_log_dir().is_dir()


class TestSetup:
    def test_file_handler_attached_once(self, clean_logger):
        setup_dealdesk_logging("INFO")
        setup_dealdesk_logging("INFO")
        file_handlers = [h for h in clean_logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert clean_logger.level == logging.INFO

    def test_console_only_at_debug(self, clean_logger):
        setup_dealdesk_logging("DEBUG")
        stream_only = [
            h
            for h in clean_logger.handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        ]
        assert len(stream_only) == 1

    def test_invalid_level_falls_back_to_info(self, clean_logger):
        setup_dealdesk_logging("chatty")
        assert clean_logger.level == logging.INFO


class TestCommerceEvents:
    def test_event_line_format(self):
        log_commerce_event("offer", "id=o1 | new -> pending", actor_id="buyer-1")
        line = read_events(get_log_dir()).strip()
        parts = line.split(" | ")
        assert parts[1:] == ["offer", "actor=buyer-1", "id=o1", "new -> pending"]

    def test_helpers(self):
        log_offer_transition("seller-1", "o1", "pending", "accepted")
        log_escrow_event("system", "t1", "released", 41_000)
        log_sweep("expire_offers", 3, errors=1)

        text = read_events(get_log_dir())
        assert "actor=seller-1 | id=o1 | pending -> accepted" in text
        assert "escrow | actor=system | id=t1 | action=released | amount_cents=41000" in text
        assert "sweep | actor=system | name=expire_offers | processed=3 | errors=1" in text

    def test_service_writes_offer_transitions(self, offer_service):
        offer = offer_service.create_offer("buyer-1", "proj-1", 40_000)
        offer_service.accept_offer("seller-1", offer.id)
        text = read_events(get_log_dir())
        assert f"id={offer.id} | new -> pending" in text
        assert f"id={offer.id} | pending -> accepted" in text

"""Tests for mapping commerce errors onto HTTP status codes."""

import pytest
from app.errors import status_for

from dealdesk.commerce.errors import CommerceError
from dealdesk.commerce.featured import FeaturedListingConflictError, FeaturedListingNotFoundError
from dealdesk.commerce.offers import (
    OfferConflictError,
    OfferNotFoundError,
    OfferPermissionError,
    OfferValidationError,
)
from dealdesk.commerce.transactions import TransactionConflictError, TransactionPermissionError


@pytest.mark.parametrize(
    "exc,code",
    [
        (OfferValidationError("bad"), 400),
        (OfferPermissionError("no"), 403),
        (OfferNotFoundError("missing"), 404),
        (FeaturedListingNotFoundError("missing"), 404),
        (TransactionPermissionError("no"), 403),
    ],
)
def test_categories(exc, code):
    assert status_for(exc) == code


@pytest.mark.parametrize(
    "exc",
    [
        OfferConflictError("raced"),
        TransactionConflictError("raced"),
        FeaturedListingConflictError("raced"),
    ],
)
def test_conflicts_are_409_even_though_they_are_validation_errors(exc):
    assert status_for(exc) == 409


def test_uncategorized_falls_back_to_400():
    assert status_for(CommerceError("odd")) == 400


def test_handler_body_carries_field(client, auth_headers):
    response = client.post(
        "/api/v1/offers",
        json={"project_id": "missing", "offered_price_cents": 4_000},
        headers=auth_headers,
    )
    assert response.status_code == 400
    assert response.json() == {"detail": "Project not found", "field": "project_id"}

"""
Unit tests for product feedback.
"""

import pytest

from mesh_governance.catalog import FeedbackBoard
from mesh_governance.core import NotFoundError, ValidationError
from mesh_governance.models import DataProduct


@pytest.fixture
def board(catalog, clock):
    catalog.publish(DataProduct(id="p1", name="Customer Analytics Dataset", domain="Marketing", owner="ana.costa"))
    return FeedbackBoard(catalog, clock=clock)


def test_submit_and_list_newest_first(board, clock):
    board.submit("p1", "joao.lima", 4, "Useful")
    clock.advance(hours=1)
    board.submit("p1", "maria.santos", 5)

    feedback = board.list_for_product("p1")
    assert [f.user_id for f in feedback] == ["maria.santos", "joao.lima"]
    assert feedback[1].comment == "Useful"
    assert feedback[0].comment == ""


@pytest.mark.parametrize("rating", [0, 6, -1])
def test_rating_out_of_range(board, rating):
    with pytest.raises(ValidationError) as exc_info:
        board.submit("p1", "joao.lima", rating)
    assert exc_info.value.field == "rating"
    assert board.list_for_product("p1") == []


def test_unknown_product(board):
    with pytest.raises(NotFoundError):
        board.submit("missing", "joao.lima", 3)


def test_ratings_by_product(board):
    board.submit("p1", "a", 2)
    board.submit("p1", "b", 5)
    assert board.ratings_by_product() == {"p1": [2, 5]}

import pytest

from livesurvey.errors import InvalidAnswer
from livesurvey.services.aggregation import tally_increments
from livesurvey.services.questions import create_question
from livesurvey.services.results import project_question


def _apply(question, answers):
    tally: dict[str, int] = {}
    for answer in answers:
        for key, amount in tally_increments(question, answer).items():
            tally[key] = tally.get(key, 0) + amount
    return tally


def test_single_choice_increments_only_the_chosen_option():
    q = create_question("singleChoice", text="Lunch?", options=["X", "Y"])
    assert tally_increments(q, "X") == {"X": 1}


def test_multiple_choice_increments_every_selected_option():
    q = create_question("multipleChoice", text="Diet?", options=["X", "Y", "Z"])
    assert tally_increments(q, ["X", "Y"]) == {"X": 1, "Y": 1}


def test_increments_are_commutative():
    q = create_question("singleChoice", text="Pick", options=["A", "B"])
    assert _apply(q, ["A", "B", "A"]) == {"A": 2, "B": 1}
    assert _apply(q, ["B", "A", "A"]) == _apply(q, ["A", "A", "B"])


def test_numeric_answers_track_count_sum_and_distribution():
    q = create_question("rating", text="Hungry?", min=1, max=10)
    tally = _apply(q, [2, 4, 6])
    assert tally["values"] == 3
    assert tally["sum"] == 12
    assert {k: tally[k] for k in ("2", "4", "6")} == {"2": 1, "4": 1, "6": 1}
    assert project_question(q, tally)["average"] == 4.0


def test_ranking_counts_presence_only():
    q = create_question("ranking", text="Rank", options=["A", "B", "C"])
    assert tally_increments(q, ["C", "A", "B"]) == {"A": 1, "B": 1, "C": 1}


def test_free_text_counts_verbatim_text():
    q = create_question("freeText", text="Notes")
    assert _apply(q, ["No onions", "No onions", "Extra napkins"]) == {"No onions": 2, "Extra napkins": 1}


@pytest.mark.parametrize("qtype,kwargs,value", [
    ("singleChoice", {"options": ["A", "B"]}, "C"),
    ("singleChoice", {"options": ["A", "B"]}, ["A"]),
    ("multipleChoice", {"options": ["A", "B"]}, []),
    ("multipleChoice", {"options": ["A", "B"]}, ["A", "A"]),
    ("ranking", {"options": ["A", "B"]}, ["A"]),
    ("ranking", {"options": ["A", "B"]}, ["A", "A"]),
    ("rating", {"min": 1, "max": 5}, 6),
    ("rating", {"min": 1, "max": 5}, True),
    ("rating", {"min": 1, "max": 5}, "3"),
    ("rating", {"min": 1, "max": 5}, 2.5),
    ("slider", {"min": 0, "max": 10, "step": 5}, 3),
    ("freeText", {}, "   "),
    ("freeText", {}, "x" * 1001),
    ("freeText", {}, 7),
])
def test_shape_mismatches_are_rejected(qtype, kwargs, value):
    q = create_question(qtype, text="Q", **kwargs)
    with pytest.raises(InvalidAnswer):
        tally_increments(q, value)


def test_slider_accepts_values_on_the_step_grid():
    q = create_question("slider", text="Budget", min=5, max=30, step=5)
    assert tally_increments(q, 15) == {"values": 1, "sum": 15, "15": 1}
    assert tally_increments(q, 30.0) == {"values": 1, "sum": 30, "30": 1}


def test_free_text_with_nul_is_rejected():
    q = create_question("freeText", text="Notes")
    with pytest.raises(InvalidAnswer):
        tally_increments(q, "a\x00b")

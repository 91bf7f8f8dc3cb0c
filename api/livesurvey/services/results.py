from __future__ import annotations

from typing import Any

from ..schemas import CHOICE_TYPES, NUMERIC_TYPES, Question
from .aggregation import NUMERIC_RESERVED_KEYS, SUM_KEY, VALUES_KEY


def _percentage(votes: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(votes / total * 100, 2)


def _distribution(tally: dict[str, int]) -> list[dict[str, int]]:
    points: list[dict[str, int]] = []
    for key, count in tally.items():
        if key in NUMERIC_RESERVED_KEYS or count <= 0:
            continue
        try:
            value = int(key)
        except ValueError:
            continue
        points.append({"value": value, "count": int(count)})
    return sorted(points, key=lambda p: p["value"])


def _project_choice(question: Question, tally: dict[str, int]) -> dict[str, Any]:
    # votes for options removed by a later edit stay out of the percentages
    total_votes = sum(int(tally.get(option, 0)) for option in question.options)
    orphaned_votes = sum(int(v) for v in tally.values()) - total_votes
    options = []
    for option in question.options:
        votes = int(tally.get(option, 0))
        percentage = _percentage(votes, total_votes)
        options.append(
            {
                "option": option,
                "votes": votes,
                "percentage": percentage,
                "label": f"{option}: {votes} ({percentage:.2f}%)",
            }
        )
    return {"total_votes": total_votes, "orphaned_votes": orphaned_votes, "options": options}


def _project_numeric(tally: dict[str, int]) -> dict[str, Any]:
    values = int(tally.get(VALUES_KEY, 0))
    total = tally.get(SUM_KEY, 0)
    average = round(total / values, 2) if values > 0 else 0.0
    distribution = _distribution(tally)
    return {
        "total_votes": values,
        "sum": total,
        "average": average,
        "min": distribution[0]["value"] if distribution else None,
        "max": distribution[-1]["value"] if distribution else None,
        "distribution": distribution,
    }


def _project_free_text(tally: dict[str, int]) -> dict[str, Any]:
    answers = [{"text": text, "count": int(count)} for text, count in tally.items()]
    return {"total_votes": sum(a["count"] for a in answers), "answers": answers}


def project_question(question: Question, tally: dict[str, int] | None) -> dict[str, Any]:
    """Derive displayable statistics for one question from its tally.

    A missing tally projects as an all-zero result.
    """
    tally = tally or {}
    out: dict[str, Any] = {"question_id": question.id, "type": question.type, "text": question.text}
    if question.type in CHOICE_TYPES:
        out.update(_project_choice(question, tally))
    elif question.type in NUMERIC_TYPES:
        out.update(_project_numeric(tally))
    else:
        out.update(_project_free_text(tally))
    return out


def project_session(questions: list[Question], tallies: dict[int, dict[str, int]]) -> list[dict[str, Any]]:
    results = []
    for index, question in enumerate(questions):
        projected = project_question(question, tallies.get(index))
        projected["question_index"] = index
        results.append(projected)
    return results


def _fmt(value: Any) -> str:
    if value is None:
        return "N/A"
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def render_results_text(title: str, results: list[dict[str, Any]]) -> str:
    lines = [f"{title} - Final Results"]
    for projected in results:
        lines.append("")
        lines.append(f"Q{projected['question_index'] + 1}. {projected['text']}")
        if "options" in projected:
            lines.extend(f"  {row['label']}" for row in projected["options"])
        elif "average" in projected:
            lines.append(f"  Average: {_fmt(projected['average'])}")
            lines.append(f"  Min: {_fmt(projected['min'])}")
            lines.append(f"  Max: {_fmt(projected['max'])}")
            lines.append(f"  Total Votes: {projected['total_votes']}")
        else:
            if not projected["answers"]:
                lines.append("  (no answers)")
            lines.extend(f"  {a['text']}: {a['count']}" for a in projected["answers"])
    return "\n".join(lines)

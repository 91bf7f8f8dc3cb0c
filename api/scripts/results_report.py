import argparse
import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from livesurvey import session_repo
from livesurvey.deps import parse_resource_id
from livesurvey.schemas import dump_questions
from livesurvey.services.results import project_session, render_results_text


def main() -> None:
    parser = argparse.ArgumentParser(description="Print the results of a live survey session")
    parser.add_argument("session_id", type=str)
    parser.add_argument("--json", action="store_true", help="emit the projection as JSON")
    args = parser.parse_args()

    pair = session_repo.get_session_with_survey(parse_resource_id(args.session_id, "session"))
    if not pair or not pair.get("survey"):
        raise SystemExit(f"Session {args.session_id} not found")

    survey = pair["survey"]
    results = project_session(survey["questions"], session_repo.list_tallies(pair["session"]["id"]))
    if args.json:
        report = {
            "session": pair["session"],
            "title": survey["title"],
            "questions": dump_questions(survey["questions"]),
            "results": results,
        }
        print(json.dumps(report, indent=2, default=str))
    else:
        print(render_results_text(survey["title"], results))


if __name__ == "__main__":
    main()

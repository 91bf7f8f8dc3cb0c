import argparse
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from livesurvey.http_helpers import join_url
from livesurvey.logging_config import configure_logging
from livesurvey.services.seeding import seed_demo_data


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed a demo presenter and the Lunch Poll survey")
    parser.add_argument("--email", type=str, default="presenter@example.com")
    parser.add_argument("--password", type=str, default="livesurvey123")
    parser.add_argument("--display-name", type=str, default="Demo Presenter")
    parser.add_argument("--participants", type=int, default=0, help="play the session through with this many random participants")
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    configure_logging()
    summary = seed_demo_data(
        email=args.email.strip().lower(),
        password=args.password,
        display_name=args.display_name,
        n_participants=args.participants,
        seed=args.seed,
    )

    print("Seed completed")
    for k, v in summary.items():
        print(f"- {k}: {v}")
    print(f"- join_url: {join_url(summary['session_id'])}")


if __name__ == "__main__":
    main()

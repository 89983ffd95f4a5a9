# Command-line entry point: print standings for a Challonge tournament

import argparse
import os
import sys
from challonge import ChallongeClient, load_tournament_data
from core.models import ChallongeError
from core.standings import (
    compute_standings,
    derive_stage_label,
    final_stage_matches,
    group_labels,
    group_stage_matches,
    stage_rounds,
    stage_sort_key,
)


def print_standings(title, rows):
    print(f"\n--- {title} ---")
    if not rows:
        print("  No completed matches.")
        return
    print(f"  {'#':>3}  {'Player':<24} {'W':>3} {'L':>3} {'PF':>4} {'PA':>4} {'Diff':>5} {'Buch':>5} {'WR%':>6}")
    for rank, row in enumerate(rows, start=1):
        print(f"  {rank:>3}  {row.name:<24} {row.wins:>3} {row.losses:>3} {row.points_for:>4} "
              f"{row.points_against:>4} {row.differential:>5} {row.buchholz:>5} {row.win_rate:>6}")


def print_final_stage(matches):
    finals = final_stage_matches(matches)
    all_rounds = [m.round for m in finals]
    print("\n--- Final Stage ---")
    if not finals:
        print("  No final stage matches.")
        return
    rounds = sorted(stage_rounds(finals), key=lambda r: stage_sort_key(r, all_rounds), reverse=True)
    for round_number in rounds:
        print(f"\n{derive_stage_label(round_number, all_rounds)}")
        for match in finals:
            if abs(match.round) != round_number:
                continue
            scores = match.scores_csv or '-'
            print(f"  {match.identifier or match.id}: {match.player1_name} vs {match.player2_name}  {scores}  ({match.state})")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Print standings for a Challonge tournament.')
    parser.add_argument('challonge_id', help='Challonge tournament id or URL slug')
    parser.add_argument('--api-key', default=os.environ.get('CHALLONGE_API_KEY'),
                        help='Challonge API key (default: $CHALLONGE_API_KEY)')
    parser.add_argument('--group', help='Only show this group (A, B, ...)')
    parser.add_argument('--final', action='store_true', help='Also show the final stage bracket')
    args = parser.parse_args(argv)

    if not args.api_key:
        print("Error: no API key. Pass --api-key or set CHALLONGE_API_KEY", file=sys.stderr)
        return 1

    try:
        matches, _ = load_tournament_data(ChallongeClient(args.api_key), args.challonge_id)
    except ChallongeError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2

    group_matches = group_stage_matches(matches)
    try:
        labels = group_labels(m.group_id for m in group_matches)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    wanted = args.group.strip().upper() if args.group else None
    for group_id, label in sorted(labels.items(), key=lambda item: item[1]):
        if wanted and label != wanted:
            continue
        rows = compute_standings([m for m in group_matches if m.group_id == group_id])
        print_standings(f"Group {label}", rows)
    if wanted and wanted not in labels.values():
        print(f"Group {wanted} not found.", file=sys.stderr)
        return 1

    if args.final or not labels:
        finals = [m for m in final_stage_matches(matches) if m.is_complete]
        print_standings("Final Stage Standings", compute_standings(finals))
        print_final_stage(matches)
    return 0


if __name__ == '__main__':
    sys.exit(main())

"""
Standings, group labels and bracket stage labels computed from match records.

Every function here is pure: callers fetch matches, pass them in, and get a
fresh result back. Nothing is cached between calls.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .finishes import normalize_name
from .models import MatchRecord, StandingRow


STAGE_LABELS = {
    0: "Finals",
    1: "Semi Finals",
    2: "Quarter Finals",
    3: "Top 16",
    4: "Top 32",
    5: "Top 64",
    6: "Top 128",
}

# Display order for final-stage rounds (lower sorts later)
STAGE_SORT_KEYS = {0: 0, 1: 2, 2: 3, 3: 4, 4: 5, 5: 6, 6: 7}


def win_percentage(wins: int, played: int) -> float:
    """Win percentage to one decimal, half-way values rounded up."""
    if played <= 0:
        return 0
    exact = Decimal(wins * 100) / Decimal(played)
    return float(exact.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def parse_scores(scores_csv: Optional[str]) -> Tuple[int, int]:
    """Parse a '4-2' score string. Missing or non-numeric parts count as 0."""
    parts = scores_csv.split('-') if scores_csv else []
    scores = []
    for i in range(2):
        try:
            scores.append(int(parts[i].strip()))
        except (IndexError, ValueError):
            scores.append(0)
    return scores[0], scores[1]


def compute_standings(matches: Iterable[MatchRecord]) -> List[StandingRow]:
    """
    Calculate standings from completed matches.

    Returns: [StandingRow, ...] where rank = index + 1

    Ranking: wins -> point differential -> points for -> Buchholz -> name
    """
    stats = {}

    for match in matches:
        if not match.is_complete:
            continue

        p1 = match.player1_name or 'Unknown'
        p2 = match.player2_name or 'Unknown'

        for name in (p1, p2):
            if name not in stats:
                stats[name] = {
                    'wins': 0,
                    'losses': 0,
                    'points_for': 0,
                    'points_against': 0,
                    'matches_played': 0,
                    'opponents': []
                }

        p1_score, p2_score = parse_scores(match.scores_csv)

        stats[p1]['matches_played'] += 1
        stats[p1]['points_for'] += p1_score
        stats[p1]['points_against'] += p2_score
        stats[p1]['opponents'].append(p2)

        stats[p2]['matches_played'] += 1
        stats[p2]['points_for'] += p2_score
        stats[p2]['points_against'] += p1_score
        stats[p2]['opponents'].append(p1)

        # A winner id matching neither side counts for nobody
        if match.winner_id is None:
            continue
        if match.winner_id == match.player1_id:
            stats[p1]['wins'] += 1
            stats[p2]['losses'] += 1
        elif match.winner_id == match.player2_id:
            stats[p2]['wins'] += 1
            stats[p1]['losses'] += 1

    rows = []
    for name, s in stats.items():
        buchholz = sum(stats[opponent]['points_for'] for opponent in s['opponents'])
        played = s['matches_played']
        win_rate = win_percentage(s['wins'], played)
        rows.append(StandingRow(
            name=name,
            wins=s['wins'],
            losses=s['losses'],
            points_for=s['points_for'],
            points_against=s['points_against'],
            buchholz=buchholz,
            win_rate=win_rate,
            matches_played=played,
        ))

    rows.sort(key=lambda r: (-r.wins, -r.differential, -r.points_for, -r.buchholz, r.name))
    return rows


def _position_from_end(round_number: int, all_rounds: Iterable[int]) -> int:
    rounds = [abs(r) for r in all_rounds]
    max_round = max(rounds) if rounds else abs(round_number)
    return max_round - abs(round_number)


def derive_stage_label(round_number: int, all_rounds: Iterable[int]) -> str:
    """Get the name of a bracket round relative to the deepest round seen so far.

    Labels shift when the upstream bracket grows new rounds; they describe
    the current snapshot only.
    """
    if round_number == 0:
        return "Placement Match"
    position = _position_from_end(round_number, all_rounds)
    if position in STAGE_LABELS:
        return STAGE_LABELS[position]
    return f"Round {abs(round_number)}"


def stage_sort_key(round_number: int, all_rounds: Iterable[int]) -> int:
    """Sort key for showing early rounds first: Top 128 ... Semi Finals, Placement Match, Finals."""
    if round_number == 0:
        return 1
    position = _position_from_end(round_number, all_rounds)
    return STAGE_SORT_KEYS.get(position, 8)


def group_labels(group_ids: Iterable[Optional[int]]) -> Dict[int, str]:
    """Label groups A, B, C... by ascending group id."""
    ids = sorted({gid for gid in group_ids if gid is not None})
    if len(ids) > 26:
        raise ValueError(f"Cannot label {len(ids)} groups with single letters")
    return {gid: chr(65 + index) for index, gid in enumerate(ids)}


def group_stage_matches(matches: Iterable[MatchRecord]) -> List[MatchRecord]:
    return [m for m in matches if not m.is_final_stage]


def final_stage_matches(matches: Iterable[MatchRecord]) -> List[MatchRecord]:
    return [m for m in matches if m.is_final_stage]


def matches_by_group(matches: Iterable[MatchRecord]) -> Dict[int, List[MatchRecord]]:
    grouped = {}
    for match in matches:
        if match.group_id is None:
            continue
        grouped.setdefault(match.group_id, []).append(match)
    return grouped


def stage_rounds(matches: Iterable[MatchRecord]) -> List[int]:
    """Distinct absolute round numbers, ascending."""
    return sorted({abs(m.round) for m in matches})


def resolve_opponent(player_ids: Set[int], matches: Iterable[MatchRecord],
                     incomplete_only: bool = True) -> Optional[int]:
    """
    Find the opponent id in the first match involving any of player_ids.

    player_ids holds the participant id and its group aliases. The first
    matching record in input order wins, so callers control precedence by
    ordering the list.
    """
    for match in matches:
        if incomplete_only and match.is_complete:
            continue
        if match.player1_id is not None and match.player1_id in player_ids:
            return match.player2_id
        if match.player2_id is not None and match.player2_id in player_ids:
            return match.player1_id
    return None


def find_pending_match(player1_ids: Set[int], player2_ids: Set[int],
                       matches: Iterable[MatchRecord]) -> Optional[MatchRecord]:
    """First non-complete match between the two players, in either seat order."""
    for match in matches:
        if match.is_complete:
            continue
        sides = {match.player1_id, match.player2_id} - {None}
        if sides & player1_ids and sides & player2_ids:
            return match
    return None


def match_side(player_ids: Set[int], match: MatchRecord) -> Optional[str]:
    if match.player1_id is not None and match.player1_id in player_ids:
        return 'player1'
    if match.player2_id is not None and match.player2_id in player_ids:
        return 'player2'
    return None


def player_match_summary(name: str, matches: Iterable[MatchRecord]) -> Dict:
    """Completed match count and win rate for one player across all stages."""
    target = normalize_name(name)
    total = 0
    wins = 0
    for match in matches:
        if not match.is_complete:
            continue
        is_player1 = normalize_name(match.player1_name) == target
        is_player2 = normalize_name(match.player2_name) == target
        if not (is_player1 or is_player2):
            continue
        total += 1
        if match.winner_id is None:
            continue
        if (is_player1 and match.winner_id == match.player1_id) or \
                (is_player2 and match.winner_id == match.player2_id):
            wins += 1
    win_rate = win_percentage(wins, total)
    return {'total_matches': total, 'wins': wins, 'win_rate': win_rate}


def player_position(name: str, rows: List[StandingRow]) -> Optional[int]:
    target = normalize_name(name)
    for index, row in enumerate(rows):
        if normalize_name(row.name) == target:
            return index + 1
    return None


def final_position_label(position: int) -> str:
    if position == 1:
        return "Champion"
    elif position == 2:
        return "1st Runner Up"
    elif position == 3:
        return "2nd Runner Up"
    elif position == 4:
        return "3rd Runner Up"
    elif 5 <= position <= 8:
        return "Top 8"
    elif 9 <= position <= 16:
        return "Top 16"
    elif 17 <= position <= 32:
        return "Top 32"
    elif 33 <= position <= 64:
        return "Top 64"
    else:
        return "Participant"

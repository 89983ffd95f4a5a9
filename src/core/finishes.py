"""
Finish-type tallies embedded in match attachment descriptions.

Judges upload a description such as::

    Finishes – 1. Alice: [Spin: 2, Over: 1, Burst: 0, Extreme: 1, Penalty: 0] | Bob: [Spin: 1, ...]

These helpers pull the per-player counts back out of that text.
"""
import re
from typing import Dict, Iterable, List

FINISH_TYPES = ('spin', 'over', 'burst', 'extreme', 'penalty')

_ZERO_WIDTH = re.compile('[\u200b-\u200d\ufeff]')
_WHITESPACE = re.compile(r'\s+')
_HEADER = re.compile(r'^\s*Finishes\s*[–—-]\s*', re.IGNORECASE)
_ENTRY = re.compile(r'(?:\d+\.\s*)?([^:]+):\s*\[([^\]]+)\]')
_STAT_BLOCK = re.compile(r':\s*\[[^\]]+\]')


def _clean(value: str) -> str:
    value = _ZERO_WIDTH.sub('', value)
    value = value.replace('\u00a0', ' ')
    return _WHITESPACE.sub(' ', value)


def normalize_name(value) -> str:
    """Canonical form for comparing player names typed by hand."""
    return _clean(value or '').strip().lower()


class FinishEntry:
    def __init__(self, name, spin=0, over=0, burst=0, extreme=0, penalty=0):
        self.name = name
        self.spin = spin
        self.over = over
        self.burst = burst
        self.extreme = extreme
        self.penalty = penalty

    @property
    def total(self):
        return self.spin + self.over + self.burst + self.extreme + self.penalty

    def to_dict(self):
        return {
            'name': self.name,
            'spin': self.spin,
            'over': self.over,
            'burst': self.burst,
            'extreme': self.extreme,
            'penalty': self.penalty,
        }

    def __repr__(self):
        return (f"FinishEntry(name={self.name}, spin={self.spin}, over={self.over}, "
                f"burst={self.burst}, extreme={self.extreme}, penalty={self.penalty})")


def _to_number(value: str):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    if number != number or number in (float('inf'), float('-inf')):
        return 0
    return int(number) if number.is_integer() else number


def parse_finish_stats(description: str) -> List[FinishEntry]:
    """Parse every 'Name: [Stat: n, ...]' block in a description."""
    text = _HEADER.sub('', _clean(description or ''))
    entries = []
    for found in _ENTRY.finditer(text):
        raw_name = found.group(1).strip()
        name = re.sub(r'\s*\|?\s*$', '', re.sub(r'^\|?\s*(?:\d+\.\s*)?', '', raw_name)).strip()
        stats = {}
        for pair in found.group(2).split(','):
            label, _, value = pair.partition(':')
            label = normalize_name(label)
            if not label:
                continue
            stats[label] = _to_number(value.strip())
        entries.append(FinishEntry(name, **{key: stats.get(key, 0) for key in FINISH_TYPES}))
    return entries


def format_finish_stats(entries: Iterable[FinishEntry]) -> str:
    """Render entries in the format parse_finish_stats reads back."""
    blocks = []
    for entry in entries:
        stats = ', '.join(f"{key.capitalize()}: {getattr(entry, key)}" for key in FINISH_TYPES)
        blocks.append(f"{entry.name}: [{stats}]")
    return 'Finishes – ' + ' | '.join(blocks)


def is_screenshot_description(description) -> bool:
    return isinstance(description, str) and 'Match Screenshot' in description


def is_finish_description(description) -> bool:
    if not isinstance(description, str):
        return False
    text = _clean(description).strip()
    if re.search(r'match screenshot', text, re.IGNORECASE):
        return False
    return bool(re.search(r'finishes', text, re.IGNORECASE) or _STAT_BLOCK.search(text))


def aggregate_finish_stats(name: str, descriptions_by_match: Dict[int, List[str]]) -> Dict:
    """Sum one player's finish counts over every match description."""
    target = normalize_name(name)
    totals = {key: 0 for key in FINISH_TYPES}
    matches_with_stats = set()
    for match_id, descriptions in descriptions_by_match.items():
        for description in descriptions:
            for entry in parse_finish_stats(description):
                if normalize_name(entry.name) != target:
                    continue
                for key in FINISH_TYPES:
                    totals[key] += getattr(entry, key)
                matches_with_stats.add(match_id)
    totals['total'] = sum(totals[key] for key in FINISH_TYPES)
    totals['matches_with_stats'] = len(matches_with_stats)
    return totals

"""
Thin client for the Challonge v1 REST API.

Only the calls the judge console and dashboards need: matches,
participants, match attachments, and reporting a score.
"""
import logging
import os
from typing import Any, Dict, List, Optional, Tuple

import requests

from core.finishes import is_finish_description, is_screenshot_description
from core.models import ChallongeError, MatchRecord, Participant, build_name_map

logger = logging.getLogger(__name__)

CHALLONGE_API_URL = os.environ.get('CHALLONGE_API_URL', 'https://api.challonge.com/v1')
CHALLONGE_TIMEOUT = float(os.environ.get('CHALLONGE_TIMEOUT', '20'))


class ChallongeClient:
    def __init__(self, api_key: str, base_url: str = None, timeout: float = None, session=None):
        self.api_key = api_key
        self.base_url = (base_url or CHALLONGE_API_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else CHALLONGE_TIMEOUT
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, data=None) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            resp = self.session.request(method, url, params={'api_key': self.api_key},
                                        data=data, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f'Challonge request {method} {path} failed: {e}')
            raise ChallongeError(f'Could not reach Challonge: {e}', 502) from e
        if not resp.ok:
            logger.error(f'Challonge API error {resp.status_code} on {method} {path}: {resp.text}')
            raise ChallongeError(f'Challonge returned {resp.status_code}', resp.status_code)
        try:
            return resp.json()
        except ValueError as e:
            raise ChallongeError('Challonge returned invalid JSON', 502) from e

    def get_matches(self, tournament_id: str) -> List[Dict]:
        return self._request('GET', f'tournaments/{tournament_id}/matches.json') or []

    def get_participants(self, tournament_id: str) -> List[Dict]:
        return self._request('GET', f'tournaments/{tournament_id}/participants.json') or []

    def get_attachments(self, tournament_id: str, match_id: int) -> List[Dict]:
        attachments = self._request('GET', f'tournaments/{tournament_id}/matches/{match_id}/attachments.json')
        return attachments if isinstance(attachments, list) else []

    def update_match(self, tournament_id: str, match_id: int,
                     scores_csv: Optional[str] = None, winner_id: Optional[int] = None) -> Dict:
        data = {}
        if scores_csv:
            data['match[scores_csv]'] = str(scores_csv)
        if winner_id:
            data['match[winner_id]'] = str(winner_id)
        return self._request('PUT', f'tournaments/{tournament_id}/matches/{match_id}.json', data=data)

    def create_attachment(self, tournament_id: str, match_id: int, description: str) -> Dict:
        data = {'match_attachment[description]': description}
        return self._request('POST', f'tournaments/{tournament_id}/matches/{match_id}/attachments.json', data=data)


def load_tournament_data(client: ChallongeClient, tournament_id: str) -> Tuple[List[MatchRecord], List[Participant]]:
    """Fetch matches and participants and adapt them to records.

    Matches come back in ascending id order so first-match lookups are stable.
    """
    raw_matches = client.get_matches(tournament_id)
    try:
        raw_participants = client.get_participants(tournament_id)
    except ChallongeError as e:
        # Names fall back to 'TBD' without participants
        logger.warning(f'Participants unavailable for {tournament_id}: {e.message}')
        raw_participants = []

    participants = [Participant.from_challonge(p) for p in raw_participants]
    names = build_name_map(participants)
    matches = [MatchRecord.from_challonge(m, names) for m in raw_matches]
    matches.sort(key=lambda m: m.id)
    return matches, participants


def split_attachments(attachments: List[Dict]) -> Tuple[List[str], List[str]]:
    """Split raw attachments into (screenshot asset urls, finish descriptions)."""
    assets = []
    texts = []
    for item in attachments:
        data = item.get('match_attachment', item) if isinstance(item, dict) else {}
        description = data.get('description')
        if is_screenshot_description(description):
            asset = data.get('asset_url')
            if isinstance(asset, str) and asset.strip():
                assets.append(asset)
        elif is_finish_description(description) and description.strip():
            texts.append(description)
    return assets, texts


def load_finish_descriptions(client: ChallongeClient, tournament_id: str,
                             matches: List[MatchRecord]) -> Dict[int, List[str]]:
    """Finish descriptions for every completed match, keyed by match id.

    A match whose attachments cannot be fetched is skipped.
    """
    descriptions = {}
    for match in matches:
        if not match.is_complete:
            continue
        try:
            attachments = client.get_attachments(tournament_id, match.id)
        except ChallongeError as e:
            logger.warning(f'Attachments unavailable for match {match.id}: {e.message}')
            continue
        _, texts = split_attachments(attachments)
        if texts:
            descriptions[match.id] = texts
    return descriptions

class ChallongeError(Exception):
    """Raised when the Challonge API fails or returns unusable data."""

    def __init__(self, message, status_code=502):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _unwrap(payload, key):
    # Challonge wraps every object: {"match": {...}}
    if isinstance(payload, dict) and isinstance(payload.get(key), dict):
        return payload[key]
    return payload if isinstance(payload, dict) else {}


def as_int(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class Participant:
    def __init__(self, id, name, group_player_ids=None):
        self.id = id
        self.name = name
        self.group_player_ids = group_player_ids if group_player_ids else []

    @property
    def player_ids(self):
        """All ids that denote this player: the participant id plus group aliases."""
        return {self.id, *self.group_player_ids}

    @classmethod
    def from_challonge(cls, payload):
        data = _unwrap(payload, 'participant')
        participant_id = as_int(data.get('id'))
        if participant_id is None:
            raise ChallongeError('Participant payload has no id')
        aliases = data.get('group_player_ids') or []
        if not isinstance(aliases, list):
            aliases = []
        group_ids = [gid for gid in (as_int(a) for a in aliases) if gid is not None]
        name = data.get('name') or data.get('display_name') or 'TBD'
        return cls(participant_id, str(name), group_ids)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'group_player_ids': list(self.group_player_ids)}

    def __repr__(self):
        return f"Participant(id={self.id}, name={self.name}, group_player_ids={self.group_player_ids})"


class MatchRecord:
    def __init__(self, id, player1_id, player2_id, player1_name, player2_name,
                 round=0, group_id=None, winner_id=None, loser_id=None,
                 scores_csv='', state='pending', identifier=''):
        self.id = id
        self.player1_id = player1_id
        self.player2_id = player2_id
        self.player1_name = player1_name
        self.player2_name = player2_name
        self.round = round
        self.group_id = group_id  # None for the final stage
        self.winner_id = winner_id
        self.loser_id = loser_id
        self.scores_csv = scores_csv
        self.state = state
        self.identifier = identifier

    @property
    def is_complete(self):
        return self.state == 'complete'

    @property
    def is_final_stage(self):
        return self.group_id is None

    @classmethod
    def from_challonge(cls, payload, names=None):
        """Build a record from a Challonge match object.

        ``names`` maps participant and group alias ids to display names;
        unknown ids resolve to 'TBD'.
        """
        names = names or {}
        data = _unwrap(payload, 'match')
        match_id = as_int(data.get('id'))
        if match_id is None:
            raise ChallongeError('Match payload has no id')
        player1_id = as_int(data.get('player1_id'))
        player2_id = as_int(data.get('player2_id'))
        round_number = as_int(data.get('round'))
        return cls(
            id=match_id,
            player1_id=player1_id,
            player2_id=player2_id,
            player1_name=names.get(player1_id, 'TBD'),
            player2_name=names.get(player2_id, 'TBD'),
            round=round_number if round_number is not None else 0,
            group_id=as_int(data.get('group_id')),
            winner_id=as_int(data.get('winner_id')),
            loser_id=as_int(data.get('loser_id')),
            scores_csv=str(data.get('scores_csv') or ''),
            state=data.get('state') or 'pending',
            identifier=data.get('identifier') or '',
        )

    def to_dict(self):
        return {
            'id': self.id,
            'round': self.round,
            'group_id': self.group_id,
            'player1_id': self.player1_id,
            'player2_id': self.player2_id,
            'player1_name': self.player1_name,
            'player2_name': self.player2_name,
            'winner_id': self.winner_id,
            'loser_id': self.loser_id,
            'scores_csv': self.scores_csv,
            'state': self.state,
            'identifier': self.identifier,
        }

    def __repr__(self):
        return (f"MatchRecord(id={self.id}, round={self.round}, group_id={self.group_id}, "
                f"{self.player1_name} vs {self.player2_name}, scores={self.scores_csv}, state={self.state})")


class StandingRow:
    def __init__(self, name, wins=0, losses=0, points_for=0, points_against=0,
                 buchholz=0, win_rate=0, matches_played=0):
        self.name = name
        self.wins = wins
        self.losses = losses
        self.points_for = points_for
        self.points_against = points_against
        self.differential = points_for - points_against
        self.buchholz = buchholz
        self.win_rate = win_rate
        self.matches_played = matches_played

    def to_dict(self):
        return {
            'name': self.name,
            'wins': self.wins,
            'losses': self.losses,
            'points_for': self.points_for,
            'points_against': self.points_against,
            'differential': self.differential,
            'buchholz': self.buchholz,
            'win_rate': self.win_rate,
            'matches_played': self.matches_played,
        }

    def __repr__(self):
        return (f"StandingRow(name={self.name}, wins={self.wins}, losses={self.losses}, "
                f"diff={self.differential}, buchholz={self.buchholz})")


def build_name_map(participants):
    """Map participant ids and group alias ids to display names."""
    names = {}
    for participant in participants:
        for gid in participant.group_player_ids:
            names[gid] = participant.name
        names[participant.id] = participant.name
    return names

"""Per-browser session state for the voting UI."""
from dataclasses import dataclass
from typing import MutableMapping, Optional

SESSION_KEY = 'voting_session'


@dataclass
class VoterSession:
    """
    State of one browser session.

    Lives in Flask's signed cookie session; the API remains the only
    authority on who has voted and who is admin.
    """
    voter_name: Optional[str] = None
    is_admin: bool = False
    admin_token: Optional[str] = None

    @classmethod
    def load(cls, store: MutableMapping) -> 'VoterSession':
        data = store.get(SESSION_KEY) or {}
        return cls(
            voter_name=data.get('voter_name'),
            is_admin=bool(data.get('is_admin')),
            admin_token=data.get('admin_token')
        )

    def save(self, store: MutableMapping) -> None:
        store[SESSION_KEY] = {
            'voter_name': self.voter_name,
            'is_admin': self.is_admin,
            'admin_token': self.admin_token
        }

    def sign_in_voter(self, voter_name: str) -> None:
        self.voter_name = voter_name

    def sign_out_voter(self) -> None:
        self.voter_name = None

    def sign_in_admin(self, token: str) -> None:
        self.is_admin = True
        self.admin_token = token

    def sign_out_admin(self) -> None:
        self.is_admin = False
        self.admin_token = None

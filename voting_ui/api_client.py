"""HTTP client for the election API used by the voting UI."""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests

from voting_ui import config

logger = logging.getLogger(__name__)

UNREACHABLE_MESSAGE = "Unable to reach the election API"


class ApiError(Exception):
    """An API call failed; message is what the API said, verbatim."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class ElectionApiClient:
    """Thin wrapper around the election API REST endpoints."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 session: Optional[Any] = None):
        self.base_url = (base_url or config.ELECTION_API_URL).rstrip('/')
        self.timeout = timeout if timeout is not None else config.API_TIMEOUT
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, json: Optional[Dict] = None,
                 token: Optional[str] = None) -> Dict[str, Any]:
        headers = {'Accept': 'application/json'}
        if token:
            headers['Authorization'] = f'Bearer {token}'

        try:
            response = self.session.request(
                method,
                f'{self.base_url}{path}',
                json=json,
                headers=headers,
                timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"API {method} {path} failed: {e}")
            raise ApiError(UNREACHABLE_MESSAGE, 503)

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.status_code >= 400:
            message = data.get('message') or data.get('detail') or data.get('error') or 'API request failed'
            logger.info(f"API {method} {path} -> {response.status_code}: {message}")
            raise ApiError(message, response.status_code)

        return data

    # Public endpoints

    def list_candidates(self) -> list:
        return self._request('GET', '/candidates')['candidates']

    def has_voted(self, voter_name: str) -> bool:
        return bool(self._request('GET', f'/voters/{quote(voter_name, safe="")}/check')['hasVoted'])

    def cast_vote(self, voter_name: str, candidate_id: int) -> Dict[str, Any]:
        return self._request('POST', '/votes', json={
            'voterName': voter_name,
            'candidateId': candidate_id
        })

    def get_results(self) -> Dict[str, Any]:
        return self._request('GET', '/results')

    def list_voters(self) -> list:
        return self._request('GET', '/voters')['voters']

    def get_settings(self) -> Dict[str, Any]:
        return self._request('GET', '/settings')['settings']

    def check_health(self) -> bool:
        try:
            self._request('GET', '/health')
            return True
        except ApiError:
            return False

    # Admin endpoints

    def admin_login(self, username: str, password: str) -> str:
        """Returns the admin bearer token."""
        return self._request('POST', '/admin/login', json={
            'username': username,
            'password': password
        })['token']

    def add_candidate(self, token: str, name: str) -> Dict[str, Any]:
        return self._request('POST', '/candidates', json={'name': name}, token=token)

    def update_candidate(self, token: str, candidate_id: int, name: str) -> Dict[str, Any]:
        return self._request('PUT', f'/candidates/{candidate_id}', json={'name': name}, token=token)

    def remove_candidate(self, token: str, candidate_id: int) -> Dict[str, Any]:
        return self._request('DELETE', f'/candidates/{candidate_id}', token=token)

    def publish_results(self, token: str, publish: bool) -> Dict[str, Any]:
        return self._request('POST', '/results/publish', json={'publish': publish}, token=token)

    def reset_votes(self, token: str) -> int:
        return self._request('DELETE', '/votes', token=token)['deletedCount']

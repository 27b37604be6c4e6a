"""Slack notifier over the Slack Web API."""

from __future__ import annotations

import logging
import re
import time
from typing import Any, Callable, Dict, List, Optional

import requests

from janitor.errors import NotifyError
from janitor.models.candidate import MarkedCandidate
from janitor.notify.base import Notifier
from janitor.notify.digest import DIGEST_TEXT, render_digest
from janitor.store.candidates import CandidateStore

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"
CHUNK_DELAY_SECONDS = 2
USERS_PAGE_SIZE = 200

EMAIL_CHECK = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


class SlackNotifier(Notifier):
    """Sends each owner a Slack digest of their candidates.

    Owners are matched to Slack users by e-mail first, then by user name.
    Unmatched and empty owners go to the default owner, or to ``channel``
    when one is configured.

    Attributes:
        token: Bot token
        default_owner: E-mail or user name of the fallback recipient
        channel: Channel receiving default-owner digests (optional)
        session: HTTP session
        timeout: Request timeout in seconds
        default_user: Resolved default owner, set by validate()
    """

    def __init__(
        self,
        store: CandidateStore,
        token: str,
        default_owner: str,
        channel: str = "",
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(store)
        self.token = token
        self.default_owner = default_owner
        self.channel = channel
        self.session = session or requests.Session()
        self.timeout = timeout
        self.default_user: Optional[Dict[str, Any]] = None
        self._sleep = sleep
        self._users: Optional[List[Dict[str, Any]]] = None

    def _api(self, method: str, http_method: str = "GET", **payload: Any) -> Dict[str, Any]:
        """Call a Web API method.

        Raises:
            NotifyError: On transport failure or a response with ``ok: false``
        """
        url = f"{SLACK_API_URL}/{method}"
        headers = {"Authorization": f"Bearer {self.token}"}
        try:
            if http_method == "GET":
                response = self.session.get(url, headers=headers, params=payload, timeout=self.timeout)
            else:
                response = self.session.post(url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise NotifyError(f"{method} failed: {e}") from e

        if not data.get("ok"):
            raise NotifyError(f"{method} failed: {data.get('error', 'unknown error')}")
        return data

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        if not EMAIL_CHECK.match(email):
            return None
        try:
            user = self._api("users.lookupByEmail", email=email)["user"]
        except NotifyError as e:
            logger.debug(f"No Slack user with email {email}: {e}")
            return None
        logger.debug(f"Found Slack user {user.get('id')} by email {email}")
        return user

    def find_user_by_name(self, name: str) -> Optional[Dict[str, Any]]:
        try:
            users = self._list_users()
        except NotifyError as e:
            logger.error(f"Could not list Slack users: {e}")
            return None
        for user in users:
            if user.get("name") == name:
                logger.debug(f"Found Slack user {user.get('id')} by name {name}")
                return user
        return None

    def _list_users(self) -> List[Dict[str, Any]]:
        if self._users is None:
            users: List[Dict[str, Any]] = []
            cursor = ""
            while True:
                params: Dict[str, Any] = {"limit": USERS_PAGE_SIZE}
                if cursor:
                    params["cursor"] = cursor
                data = self._api("users.list", **params)
                users.extend(data.get("members", []))
                cursor = (data.get("response_metadata") or {}).get("next_cursor", "")
                if not cursor:
                    break
            self._users = users
        return self._users

    def lookup(self, owner: str) -> Optional[Dict[str, Any]]:
        """Resolve an owner string to a Slack user, by e-mail then by name."""
        if not owner:
            return None
        return self.find_user_by_email(owner) or self.find_user_by_name(owner)

    def validate(self) -> bool:
        self.default_user = self.lookup(self.default_owner)
        if self.default_user is None:
            logger.error(f"Cannot find a default Slack user to notify ({self.default_owner})")
            return False
        return True

    def resolve_target(self, owner: str) -> str:
        user = self.lookup(owner)
        if user is not None:
            return user["id"]

        if self.default_user is None:
            raise NotifyError(f"Owner '{owner}' unresolved and no default owner available")
        logger.debug(f"Owner '{owner}' unresolved, falling back to default owner")
        return self.channel or self.default_user["id"]

    def send(self, target: str, candidates: List[MarkedCandidate]) -> int:
        sent = 0
        for index, attachments in enumerate(render_digest(candidates)):
            if index:
                self._sleep(CHUNK_DELAY_SECONDS)
            try:
                self._api("chat.postMessage", "POST", channel=target, text=DIGEST_TEXT, attachments=attachments)
            except NotifyError as e:
                logger.error(f"Failed to post digest to {target}: {e}")
                continue
            sent += 1
        return sent

    def collect(self) -> Dict[str, int]:
        self._users = None
        return super().collect()

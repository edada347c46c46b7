"""PlayStation Network - presence-based sessions and trophies.

PSN has no play-time API, so each game in the user's presence list is
logged for one poll interval. Trophies earned for those games are
reconciled against local state; trophy names are fetched from the title's
trophy list only when the earned list lacks them.

The snapshot ``state`` persists two maps because they are costly to
rebuild: ``communication_ids`` (normalized title name -> npCommunicationId)
and ``trophies`` (npCommunicationId -> trophy id -> name/description).
This data is private and the snapshot file should never be shared.
"""

import logging
import re
from datetime import datetime
from urllib.parse import parse_qs, urlparse

import httpx
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.adapters.base import PollingAdapter, read_json
from lifesync.exceptions import AuthenticationError
from lifesync.services.achievements import (
    AchievementMetadata,
    AchievementReconciler,
    RemoteAchievement,
    get_unlocked_state,
    record_unlocked,
)
from lifesync.services.delta import parse_items
from lifesync.services.sessions import merge_or_create
from lifesync.services.snapshot_store import Credentials

logger = logging.getLogger(__name__)

AUTH_BASE_URL = "https://ca.account.sony.com/api/authz/v3/oauth"
API_BASE_URL = "https://m.np.playstation.com/api"

# Public client of the PlayStation App
CLIENT_ID = "09515159-7237-4370-9b40-3806e67c0891"
CLIENT_AUTHORIZATION = (
    "Basic MDk1MTUxNTktNzIzNy00MzcwLTliNDAtMzgwNmU2N2MwODkxOnVjUGprYTV0bnRCMktxc1A="
)
REDIRECT_URI = "com.scee.psxandroid.scecompcall://redirect"
SCOPE = "psn:mobile.v2.core psn:clientapp"

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")


def normalize_title(title: str) -> str:
    """Titles are matched across endpoints with punctuation and spaces removed."""
    return _NON_ALPHANUMERIC.sub("", title)


class PresenceTitle(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title_name: str = Field(alias="titleName")
    format: str | None = None

    @property
    def is_ps5(self) -> bool:
        return (self.format or "").upper() == "PS5"


class EarnedTrophy(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    trophy_id: int = Field(alias="trophyId")
    earned: bool = False
    earned_at: datetime | None = Field(default=None, alias="earnedDateTime")

    def to_remote(self) -> RemoteAchievement:
        return RemoteAchievement(
            key=str(self.trophy_id), earned=self.earned, unlocked_at=self.earned_at
        )


class TitleTrophy(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    trophy_id: int = Field(alias="trophyId")
    trophy_name: str | None = Field(default=None, alias="trophyName")
    trophy_detail: str | None = Field(default=None, alias="trophyDetail")


class PsnAdapter(PollingAdapter):
    name = "psn"
    requires_auth = True

    def __init__(self, settings, session_factory, **kwargs) -> None:
        kwargs.setdefault("interval_minutes", settings.psn_poll_interval_minutes)
        kwargs.setdefault("device_id", settings.psn_device_id)
        super().__init__(settings, session_factory, **kwargs)
        self.communication_ids: dict[str, str] = self.snapshot.state.setdefault(
            "communication_ids", {}
        )
        self.reconciler = AchievementReconciler(
            self.snapshot.state.setdefault("trophies", {})
        )

    def is_configured(self) -> bool:
        return bool(self.settings.psn_npsso or self.credentials)

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def refresh_credentials(self, client: httpx.AsyncClient) -> Credentials | None:
        current = self.credentials
        if current is not None and current.access_token_valid():
            return current

        if current is not None and current.refresh_token_valid():
            logger.info("Access token has expired - fetching a new one")
            credentials = await self.exchange_token(
                client,
                {
                    "refresh_token": current.refresh_token,
                    "grant_type": "refresh_token",
                    "token_format": "jwt",
                    "scope": SCOPE,
                },
            )
        else:
            if not self.settings.psn_npsso:
                logger.error("Cannot authenticate with PSN, please provide a new NPSSO")
                return None
            logger.info("Fetching an access code based on NPSSO")
            code = await self.exchange_npsso_for_code(client)
            credentials = await self.exchange_token(
                client,
                {
                    "code": code,
                    "redirect_uri": REDIRECT_URI,
                    "grant_type": "authorization_code",
                    "token_format": "jwt",
                },
            )

        self.update_credentials(credentials)
        return credentials

    async def exchange_npsso_for_code(self, client: httpx.AsyncClient) -> str:
        response = await client.get(
            f"{AUTH_BASE_URL}/authorize",
            params={
                "access_type": "offline",
                "client_id": CLIENT_ID,
                "redirect_uri": REDIRECT_URI,
                "response_type": "code",
                "scope": SCOPE,
            },
            headers={"Cookie": f"npsso={self.settings.psn_npsso}"},
            follow_redirects=False,
        )
        location = response.headers.get("location", "")
        code = parse_qs(urlparse(location).query).get("code")
        if not code:
            raise AuthenticationError("NPSSO was rejected, no access code returned")
        return code[0]

    async def exchange_token(self, client: httpx.AsyncClient, form: dict) -> Credentials:
        response = await client.post(
            f"{AUTH_BASE_URL}/token",
            data=form,
            headers={"Authorization": CLIENT_AUTHORIZATION},
        )
        if response.status_code == 400:
            raise AuthenticationError("PSN token exchange was rejected")
        body = read_json(response)
        try:
            return Credentials.from_token_response(
                access_token=body["access_token"],
                expires_in=int(body["expires_in"]),
                refresh_token=body.get("refresh_token"),
                refresh_expires_in=body.get("refresh_token_expires_in"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthenticationError(f"Unexpected token response: {exc}") from exc

    # ------------------------------------------------------------------
    # Remote calls
    # ------------------------------------------------------------------

    async def api_get(
        self, client: httpx.AsyncClient, credentials: Credentials, path: str, **params
    ):
        return await self.get_json(
            client,
            f"{API_BASE_URL}{path}",
            params=params or None,
            headers={"Authorization": f"Bearer {credentials.access_token}"},
        )

    async def fetch_presence(
        self, client: httpx.AsyncClient, credentials: Credentials
    ) -> list[PresenceTitle]:
        data = await self.api_get(
            client,
            credentials,
            "/userProfile/v1/internal/users/me/basicPresences",
            type="primary",
        )
        raw = (data.get("basicPresence") or {}).get("gameTitleInfoList") or []
        return parse_items(PresenceTitle, raw, self.name)

    async def communication_id_for(
        self, client: httpx.AsyncClient, credentials: Credentials, title: str
    ) -> str | None:
        """The communication id is per user, so it is looked up from their titles."""
        key = normalize_title(title)
        if key not in self.communication_ids:
            logger.debug("Fetching trophy titles to find '%s'", title)
            data = await self.api_get(
                client, credentials, "/trophy/v1/users/me/trophyTitles"
            )
            for entry in data.get("trophyTitles") or []:
                name = entry.get("trophyTitleName")
                np_id = entry.get("npCommunicationId")
                if name and np_id:
                    self.communication_ids.setdefault(normalize_title(name), np_id)
        return self.communication_ids.get(key)

    async def fetch_earned_trophies(
        self,
        client: httpx.AsyncClient,
        credentials: Credentials,
        communication_id: str,
        game: PresenceTitle,
    ) -> list[RemoteAchievement]:
        params = {} if game.is_ps5 else {"npServiceName": "trophy"}
        data = await self.api_get(
            client,
            credentials,
            f"/trophy/v1/users/me/npCommunicationIds/{communication_id}"
            "/trophyGroups/all/trophies",
            **params,
        )
        raw = data.get("trophies") or []
        return [t.to_remote() for t in parse_items(EarnedTrophy, raw, self.name)]

    def metadata_resolver(
        self,
        client: httpx.AsyncClient,
        credentials: Credentials,
        communication_id: str,
        game: PresenceTitle,
    ):
        async def resolve() -> dict[str, AchievementMetadata]:
            logger.debug("Fetching title trophies for %s", game.title_name)
            params = {} if game.is_ps5 else {"npServiceName": "trophy"}
            data = await self.api_get(
                client,
                credentials,
                f"/trophy/v1/npCommunicationIds/{communication_id}"
                "/trophyGroups/all/trophies",
                **params,
            )
            resolved = {}
            for trophy in parse_items(TitleTrophy, data.get("trophies") or [], self.name):
                if trophy.trophy_name:
                    resolved[str(trophy.trophy_id)] = AchievementMetadata(
                        name=trophy.trophy_name, description=trophy.trophy_detail
                    )
            return resolved

        return resolve

    # ------------------------------------------------------------------
    # Synchronization
    # ------------------------------------------------------------------

    async def sync(
        self,
        db: AsyncSession,
        client: httpx.AsyncClient,
        credentials: Credentials | None,
    ) -> list[dict]:
        presence = await self.fetch_presence(client, credentials)

        for game in presence:
            session = await merge_or_create(
                db,
                game.title_name,
                self.interval_minutes,
                self.interval_ms,
                device_id=self.device_id,
            )

            communication_id = await self.communication_id_for(
                client, credentials, game.title_name
            )
            if communication_id is None:
                logger.error(
                    "Could not find communication id for '%s', cannot save trophies",
                    game.title_name,
                )
                continue

            remote = await self.fetch_earned_trophies(
                client, credentials, communication_id, game
            )
            local = await get_unlocked_state(db, session.game_id)
            unlocked = await self.reconciler.reconcile(
                communication_id,
                remote,
                local,
                resolve_metadata=self.metadata_resolver(
                    client, credentials, communication_id, game
                ),
            )
            count = await record_unlocked(db, session.game_id, session.id, unlocked)
            logger.info("%d trophies unlocked for '%s'", count, game.title_name)

        return [game.model_dump(by_alias=True) for game in presence]

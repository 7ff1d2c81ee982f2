"""Browser-based OAuth 2 (PKCE) transport for eduVPN portals.

Flow:
1. `GET <base_url>.well-known/vpn-user-portal` -> API v3 endpoints.
2. Open the authorization URL in the browser; the redirect lands on a
   one-shot loopback HTTP listener. For Secure Internet organizations the URL
   is wrapped in the home server's WAYF template.
3. Exchange the code for tokens.

Outcomes: `error=access_denied` or no answer before the timeout mean the user
dismissed the browser -> `AuthCancelled`. Everything else that goes wrong
-> `AuthError`.
"""

from __future__ import annotations

import asyncio
import base64
import contextlib
import hashlib
import logging
import secrets
import webbrowser
from dataclasses import dataclass
from typing import Any, Callable, Mapping
from urllib.parse import parse_qsl, urlencode, urlsplit

import httpx
from pydantic import ValidationError

from adapters.http_client import ClientFactory, build_async_client
from core.config import AppSettings
from core.domain.auth import AuthState, WayfSkippingInfo
from core.errors import AuthCancelled, AuthError

logger = logging.getLogger(__name__)

WELL_KNOWN_PATH = ".well-known/vpn-user-portal"
API_V3 = "http://eduvpn.org/api#3"
CALLBACK_PATH = "/callback"

_DONE_PAGE = (
    "<!DOCTYPE html><html><head><meta charset=\"utf-8\"><title>eduVPN</title></head>"
    "<body><p>{text}</p></body></html>"
)


@dataclass(frozen=True)
class PortalEndpoints:
    api_endpoint: str
    authorization_endpoint: str
    token_endpoint: str


def parse_portal_info(payload: Any, *, base_url: str) -> PortalEndpoints:
    api = payload.get("api") if isinstance(payload, Mapping) else None
    v3 = api.get(API_V3) if isinstance(api, Mapping) else None
    if not isinstance(v3, Mapping):
        raise AuthError("Server does not offer eduVPN API v3", base_url=base_url)
    try:
        return PortalEndpoints(
            api_endpoint=str(v3["api_endpoint"]),
            authorization_endpoint=str(v3["authorization_endpoint"]),
            token_endpoint=str(v3["token_endpoint"]),
        )
    except KeyError as exc:
        raise AuthError(f"Server info lacks {exc.args[0]}", base_url=base_url) from exc


def make_pkce_pair() -> tuple[str, str]:
    """(code_verifier, S256 code_challenge)."""

    verifier = secrets.token_urlsafe(48)
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return verifier, challenge


def build_authorization_url(
    authorization_endpoint: str,
    *,
    client_id: str,
    redirect_uri: str,
    state: str,
    code_challenge: str,
    scope: str = "config",
) -> str:
    query = urlencode({
        "client_id": client_id,
        "code_challenge": code_challenge,
        "code_challenge_method": "S256",
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": scope,
        "state": state,
    })
    separator = "&" if "?" in authorization_endpoint else "?"
    return f"{authorization_endpoint}{separator}{query}"


class LoopbackReceiver:
    """One-shot HTTP listener on 127.0.0.1 collecting the redirect query."""

    def __init__(self, host: str = "127.0.0.1", port: int = 0, path: str = CALLBACK_PATH) -> None:
        self._host = host
        self._port = port
        self._path = path
        self._server: asyncio.AbstractServer | None = None
        self._result: asyncio.Future[dict[str, str]] | None = None
        self.redirect_uri = ""

    async def __aenter__(self) -> LoopbackReceiver:
        self._result = asyncio.get_running_loop().create_future()
        self._server = await asyncio.start_server(self._handle, self._host, self._port)
        port = self._server.sockets[0].getsockname()[1]
        self.redirect_uri = f"http://{self._host}:{port}{self._path}"
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def wait(self) -> dict[str, str]:
        assert self._result is not None
        return await self._result

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            request_line = await reader.readline()
            while True:
                line = await reader.readline()
                if line in (b"\r\n", b"\n", b""):
                    break

            parts = request_line.decode("latin-1").split()
            target = urlsplit(parts[1] if len(parts) >= 2 else "/")
            if target.path != self._path:
                self._respond(writer, "404 Not Found", "Not found.")
                return

            params = dict(parse_qsl(target.query))
            if "error" in params:
                self._respond(writer, "200 OK", "Authorization was not completed. You can close this window.")
            else:
                self._respond(writer, "200 OK", "Authorization complete. You can close this window.")
            if self._result is not None and not self._result.done():
                self._result.set_result(params)
            await writer.drain()
        finally:
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    @staticmethod
    def _respond(writer: asyncio.StreamWriter, status: str, text: str) -> None:
        body = _DONE_PAGE.format(text=text).encode("utf-8")
        head = (
            f"HTTP/1.1 {status}\r\n"
            "Content-Type: text/html; charset=utf-8\r\n"
            f"Content-Length: {len(body)}\r\n"
            "Connection: close\r\n\r\n"
        ).encode("ascii")
        writer.write(head + body)


class BrowserAuthTransport:
    """`core.interfaces.auth.AuthTransport` backed by the system browser."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        client_factory: ClientFactory | None = None,
        open_url: Callable[[str], object] = webbrowser.open,
        host: str = "127.0.0.1",
        port: int = 0,
    ) -> None:
        self._settings = settings or AppSettings()
        self._client_factory = client_factory or (lambda: build_async_client(self._settings))
        self._open_url = open_url
        self._host = host
        self._port = port

    async def discover(self, client: httpx.AsyncClient, base_url: str) -> PortalEndpoints:
        url = (base_url if base_url.endswith("/") else base_url + "/") + WELL_KNOWN_PATH
        response = await client.get(url)
        response.raise_for_status()
        return parse_portal_info(response.json(), base_url=base_url)

    async def exchange_code(
        self,
        client: httpx.AsyncClient,
        token_endpoint: str,
        *,
        code: str,
        redirect_uri: str,
        code_verifier: str,
    ) -> dict[str, Any]:
        response = await client.post(
            token_endpoint,
            data={
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": redirect_uri,
                "client_id": self._settings.oauth_client_id,
                "code_verifier": code_verifier,
            },
        )
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, dict):
            raise ValueError("Token response is not a JSON object")
        return payload

    async def authorize(self, base_url: str, wayf_skipping_info: WayfSkippingInfo | None = None) -> AuthState:
        try:
            async with self._client_factory() as client:
                endpoints = await self.discover(client, base_url)
                params, redirect_uri, verifier = await self._browser_round_trip(
                    endpoints, base_url, wayf_skipping_info
                )
                token = await self.exchange_code(
                    client,
                    endpoints.token_endpoint,
                    code=params["code"],
                    redirect_uri=redirect_uri,
                    code_verifier=verifier,
                )
            return AuthState.from_token_response(base_url, token)
        except (AuthCancelled, AuthError):
            raise
        except httpx.HTTPStatusError as exc:
            raise AuthError(
                f"{exc.request.url} answered HTTP {exc.response.status_code}",
                base_url=base_url,
                status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, ValidationError, ValueError) as exc:
            raise AuthError(str(exc), base_url=base_url) from exc

    async def _browser_round_trip(
        self,
        endpoints: PortalEndpoints,
        base_url: str,
        wayf_skipping_info: WayfSkippingInfo | None,
    ) -> tuple[dict[str, str], str, str]:
        verifier, challenge = make_pkce_pair()
        state = secrets.token_urlsafe(16)

        async with LoopbackReceiver(self._host, self._port) as receiver:
            url = build_authorization_url(
                endpoints.authorization_endpoint,
                client_id=self._settings.oauth_client_id,
                redirect_uri=receiver.redirect_uri,
                state=state,
                code_challenge=challenge,
            )
            if wayf_skipping_info is not None:
                url = wayf_skipping_info.authorization_url(url)
            logger.debug("Opening authorization URL for %s", base_url)
            self._open_url(url)
            try:
                params = await asyncio.wait_for(receiver.wait(), timeout=self._settings.oauth_timeout_seconds)
            except asyncio.TimeoutError:
                raise AuthCancelled("Authorization was not completed in time", base_url=base_url) from None

        if params.get("state") != state:
            raise AuthError("Authorization response has an unexpected state", base_url=base_url)
        error = params.get("error")
        if error == "access_denied":
            raise AuthCancelled(base_url=base_url)
        if error:
            raise AuthError(f"Authorization server returned {error}", base_url=base_url)
        if not params.get("code"):
            raise AuthError("Authorization response has no code", base_url=base_url)
        return params, receiver.redirect_uri, verifier

"""Credential bootstrap and the process-wide configuration state.

A shared secret is exchanged for the report service URL, the speech-to-text
API key, the list of destination sheets and (optionally) the list of
authorized submitter identities. Nothing downstream runs until this
exchange succeeds.

Usage::

    configuration = Configuration()
    bootstrapper = CredentialBootstrapper(configuration)
    credentials = await bootstrapper.bootstrap("my-secret")
    configuration.confirm_identity("Ann", "HQ")
"""

import logging
import re
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from voicereport.core.config import Settings, get_settings
from voicereport.core.exceptions import (
    ConnectivityError,
    FormatError,
    ServerError,
    ValidationError,
)
from voicereport.core.models import (
    ConfigurationStatus,
    CredentialSet,
    CredentialsPayload,
    Identity,
)

logger = logging.getLogger(__name__)

_RESERVED_SHEET = "LOGS"
_TITLE_RE = re.compile(r"<title>([^<]+)</title>", re.IGNORECASE)
_BODY_RE = re.compile(r"<body[^>]*>([\s\S]*?)</body>", re.IGNORECASE)
_H1_RE = re.compile(r"<h1[^>]*>([^<]+)</h1>", re.IGNORECASE)
_P_RE = re.compile(r"<p[^>]*>([^<]+)</p>", re.IGNORECASE)


def filter_sheets(raw_sheets: list[Any]) -> list[str]:
    """Keep non-empty string sheet names, minus the reserved log sheet.

    Order is preserved and duplicates are dropped (first occurrence wins).
    """
    sheets: list[str] = []
    for sheet in raw_sheets:
        if not sheet or not isinstance(sheet, str):
            continue
        if sheet.upper() == _RESERVED_SHEET or sheet in sheets:
            continue
        sheets.append(sheet)
    return sheets


def looks_like_html(text: str, content_type: str = "") -> bool:
    """Heuristic check for an HTML error page."""
    stripped = text.strip()
    return (
        stripped.startswith("<!DOCTYPE")
        or stripped.startswith("<html>")
        or "html>" in text
        or "text/html" in content_type
    )


def describe_html_error(text: str, status_code: int, reason: str) -> str:
    """Build a readable message from an HTML error page.

    Uses the ``<title>`` and, when present, the first ``<h1>`` or ``<p>``
    inside ``<body>``.
    """
    title_match = _TITLE_RE.search(text)
    title = title_match.group(1) if title_match else "Server Error"

    details = ""
    body_match = _BODY_RE.search(text)
    if body_match:
        body = body_match.group(1)
        detail_match = _H1_RE.search(body) or _P_RE.search(body)
        if detail_match:
            details = f" - {detail_match.group(1).strip()}"

    return (
        f"Server returned an HTML error page ({status_code} {reason}): {title}{details}"
    )


def describe_status_error(status_code: int, reason: str) -> str:
    """User-facing message for a non-2xx credential response."""
    if status_code == 404:
        return "The requested resource was not found. Please check the server URL and try again."
    if status_code >= 500:
        return "The server encountered an error. Please try again later."
    return f"Server error: {status_code} {reason}".strip()


class Configuration:
    """Process-wide configuration state machine.

    Lifecycle: ``unconfigured -> bootstrapping -> bootstrapped``. Entering
    ``bootstrapping`` drops any previously adopted credentials, so a failed
    re-bootstrap leaves the process unconfigured.
    """

    def __init__(self) -> None:
        self.status = ConfigurationStatus.unconfigured
        self.secret = ""
        self.credentials: CredentialSet | None = None
        self.selected_sheet: str | None = None
        self.display_name = ""
        self.display_location = ""
        self.identity_confirmed = False

    @property
    def bootstrapped(self) -> bool:
        return self.status == ConfigurationStatus.bootstrapped

    @property
    def service_url(self) -> str:
        return self.credentials.service_url if self.credentials else ""

    @property
    def api_key(self) -> str:
        return self.credentials.api_key if self.credentials else ""

    @property
    def valid_sheets(self) -> list[str]:
        return list(self.credentials.sheets) if self.credentials else []

    @property
    def authorized_identities(self) -> list[Identity]:
        return list(self.credentials.authorized_identities) if self.credentials else []

    @property
    def identity(self) -> Identity | None:
        """The confirmed submitter identity, or None before confirmation."""
        if not self.identity_confirmed:
            return None
        return Identity(name=self.display_name, location=self.display_location)

    def begin_bootstrap(self, secret: str) -> None:
        self.status = ConfigurationStatus.bootstrapping
        self.secret = secret
        self.credentials = None
        self.selected_sheet = None
        self.identity_confirmed = False

    def adopt(self, credentials: CredentialSet) -> None:
        self.credentials = credentials
        self.selected_sheet = credentials.default_sheet
        self.status = ConfigurationStatus.bootstrapped

    def fail_bootstrap(self) -> None:
        self.credentials = None
        self.selected_sheet = None
        self.status = ConfigurationStatus.unconfigured

    def select_sheet(self, sheet: str) -> None:
        """Choose the destination sheet from the bootstrapped list."""
        if sheet not in self.valid_sheets:
            raise ValidationError(["sheet"], detail=f"Unknown sheet: {sheet}")
        self.selected_sheet = sheet

    def confirm_identity(self, name: str, location: str) -> Identity:
        """Record the submitter identity.

        When the credential service supplied an authorized list, the pair
        must match one entry; otherwise any non-blank pair is accepted.

        Raises:
            ValidationError: Not bootstrapped, blank fields, or unknown identity.
        """
        if not self.bootstrapped:
            raise ValidationError(["credentials"], detail="Please load credentials first.")

        name = (name or "").strip()
        location = (location or "").strip()
        missing = [field for field, value in (("name", name), ("location", location)) if not value]
        if missing:
            raise ValidationError(missing)

        identity = Identity(name=name, location=location)
        authorized = self.authorized_identities
        if authorized and identity not in authorized:
            raise ValidationError(
                ["identity"],
                detail=f"{name} ({location}) is not an authorized submitter.",
            )

        self.display_name = name
        self.display_location = location
        self.identity_confirmed = True
        logger.info("Submitter identity confirmed: %s (%s)", name, location)
        return identity


class CredentialBootstrapper:
    """Exchanges the shared secret for a :class:`CredentialSet`.

    Args:
        configuration: The process-wide configuration to update.
        settings: Optional Settings instance (defaults to get_settings()).
        client: Optional ``httpx.AsyncClient`` (injected in tests).
    """

    def __init__(
        self,
        configuration: Configuration,
        settings: Settings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._configuration = configuration
        self._settings = settings or get_settings()
        self._client = client or httpx.AsyncClient(timeout=self._settings.http_timeout)

    def endpoint_for(self, secret: str) -> str:
        """Service base URL derived from the shared secret."""
        return self._settings.credential_url_template.format(secret=secret).rstrip("/")

    async def bootstrap(self, secret: str) -> CredentialSet:
        """Fetch credentials and adopt them into the configuration.

        Raises:
            ValidationError: Secret is blank.
            ConnectivityError: The service could not be reached.
            ServerError: The service answered with a non-2xx status.
            FormatError: The body is not the expected JSON document.
        """
        secret = (secret or "").strip()
        if not secret:
            raise ValidationError(["password"])

        self._configuration.begin_bootstrap(secret)
        try:
            credentials = await self._fetch(secret)
        except Exception:
            self._configuration.fail_bootstrap()
            raise

        self._configuration.adopt(credentials)
        logger.info(
            "Credentials loaded: %d sheet(s), %d authorized identity(ies)",
            len(credentials.sheets),
            len(credentials.authorized_identities),
        )
        return credentials

    async def _fetch(self, secret: str) -> CredentialSet:
        service_url = self.endpoint_for(secret)
        headers = {
            self._settings.tunnel_bypass_header: "true",
            "Accept": "application/json",
        }

        try:
            response = await self._client.get(f"{service_url}/get_credentials", headers=headers)
        except httpx.InvalidURL:
            raise ValidationError(
                ["password"], detail="The password does not form a valid server address."
            ) from None
        except httpx.HTTPError as exc:
            logger.warning("Credential request failed: %s", exc)
            raise ConnectivityError() from exc

        text = response.text
        if not response.is_success:
            logger.warning(
                "Credential service responded %s %s: %s",
                response.status_code,
                response.reason_phrase,
                text[:300],
            )
            raise ServerError(
                response.status_code,
                describe_status_error(response.status_code, response.reason_phrase),
            )

        try:
            data = response.json()
        except ValueError:
            content_type = response.headers.get("content-type", "")
            if looks_like_html(text, content_type):
                raise FormatError(
                    describe_html_error(text, response.status_code, response.reason_phrase)
                ) from None
            raise FormatError(f"Unexpected response format: {text[:200]}...") from None

        try:
            payload = CredentialsPayload.model_validate(data)
        except PydanticValidationError as exc:
            logger.warning("Credential response missing required fields: %s", exc)
            raise FormatError(
                "Invalid response format from server. Missing required fields."
            ) from None

        return CredentialSet(
            service_url=service_url,
            api_key=payload.api_key,
            sheets=filter_sheets(payload.sheets),
            authorized_identities=payload.authorized_users or [],
        )

    async def aclose(self) -> None:
        await self._client.aclose()

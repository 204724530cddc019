"""HTTP client for the API of another cluster member."""

import logging
import ssl

import httpx

from ..exceptions import (
    AuthenticationFailed,
    FingerprintMismatch,
    PeerUnavailable,
    RemoteRequestFailed,
)
from ..host.trust import cert_fingerprint, normalize_fingerprint

logger = logging.getLogger(__name__)

API_PREFIX = "/cluster/config"


class RemoteClusterClient:
    """Talk to a peer after pinning its TLS certificate.

    The peer certificate is checked against ``fingerprint`` before any
    credential is sent. The HTTP client then trusts exactly that certificate,
    so the connection carrying the credential is bound to the verified peer.
    """

    def __init__(
        self,
        host: str,
        port: int = 8006,
        *,
        password: str,
        fingerprint: str,
        username: str = "root@pam",
        timeout: float = 30.0,
        client: httpx.Client | None = None,
        cert_fetcher=None,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.fingerprint = fingerprint
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self.cert_fetcher = cert_fetcher or self._fetch_certificate
        self._pinned_pem: str | None = None

    def _fetch_certificate(self) -> str:
        return ssl.get_server_certificate((self.host, self.port), timeout=self.timeout)

    def pinned_context(self) -> ssl.SSLContext:
        """TLS context trusting only the verified peer certificate."""
        if self._pinned_pem is None:
            self.verify_fingerprint()
        ctx = ssl.create_default_context(cadata=self._pinned_pem)
        # the pinned certificate itself is the trust anchor, not its issuer
        ctx.check_hostname = False
        ctx.verify_flags |= ssl.VERIFY_X509_PARTIAL_CHAIN
        ctx.verify_flags &= ~ssl.VERIFY_X509_STRICT
        return ctx

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=f"https://{self.host}:{self.port}",
                verify=self.pinned_context(),
                timeout=self.timeout,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
        self._client = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def verify_fingerprint(self) -> str:
        try:
            pem = self.cert_fetcher()
        except OSError as exc:
            raise PeerUnavailable(f"unable to connect to '{self.host}': {exc}")
        actual = cert_fingerprint(pem)
        if normalize_fingerprint(actual) != normalize_fingerprint(self.fingerprint):
            raise FingerprintMismatch(
                f"fingerprint mismatch for host '{self.host}': expected"
                f" {normalize_fingerprint(self.fingerprint)}, got {actual}"
            )
        self._pinned_pem = pem
        return actual

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = self._http().request(
                method,
                API_PREFIX + path,
                auth=(self.username, self.password),
                **kwargs,
            )
        except httpx.HTTPError as exc:
            raise PeerUnavailable(f"request to '{self.host}' failed: {exc}")
        if resp.status_code in (401, 403):
            raise AuthenticationFailed(f"authentication failure on '{self.host}'")
        if resp.status_code >= 400:
            try:
                data = resp.json()
            except ValueError:
                data = {}
            if not isinstance(data, dict):
                data = {}
            detail = data.get("detail") or resp.reason_phrase or "request failed"
            raise RemoteRequestFailed(str(detail), errors=data.get("errors"))
        return resp

    def login(self) -> dict:
        """Verify the peer and the credentials; returns the peer's join info."""
        self.verify_fingerprint()
        return self._request("GET", "/join").json()

    def add_node(self, nodename: str, args: dict) -> dict:
        logger.info("requesting addition of %s on %s", nodename, self.host)
        return self._request("POST", f"/nodes/{nodename}", json=args).json()

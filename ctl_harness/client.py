# /*
# Copyright 2026 The etcd-ctl-harness Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""TLS resolution and RPC client construction against a running cluster."""

from __future__ import annotations

import base64
import ipaddress
import os
import ssl
import tempfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID
from tenacity import Retrying, retry_if_exception, stop_after_delay, wait_fixed

from ctl_harness import logger
from ctl_harness.config import ClientConnType, HarnessSettings, get_settings
from ctl_harness.constants import (
    CLIENT_DIAL_RETRY_WAIT_SECONDS,
    SELF_CERT_HOSTS,
    SELF_CERT_VALIDITY_YEARS,
)
from ctl_harness.errors import DialError, UnsupportedConnTypeError
from ctl_harness.models import Member, MemberListResponse


# ============================================================================
# TLS
# ============================================================================

@dataclass(frozen=True)
class TLSInfo:
    """Certificate material for a client connection.

    Attributes:
        cert_file: Client certificate, PEM.
        key_file: Private key for ``cert_file``, PEM.
        trusted_ca_file: CA bundle used to verify servers, or empty.
        self_cert: The certificate was generated for this run; servers are not verified.
    """

    cert_file: str = ""
    key_file: str = ""
    trusted_ca_file: str = ""
    self_cert: bool = False

    def client_config(self) -> ssl.SSLContext:
        """Build the SSL context a client uses with this identity."""
        context = ssl.create_default_context(cafile=self.trusted_ca_file or None)
        if self.cert_file and self.key_file:
            context.load_cert_chain(self.cert_file, self.key_file)
        if self.self_cert:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context


def _san_entry(host: str) -> x509.GeneralName:
    try:
        return x509.IPAddress(ipaddress.ip_address(host))
    except ValueError:
        return x509.DNSName(host)


def self_cert(
    dirpath: str | Path,
    hosts: list[str] | tuple[str, ...] = SELF_CERT_HOSTS,
    self_signed_cert_validity: int = SELF_CERT_VALIDITY_YEARS,
) -> TLSInfo:
    """Generate a self-signed ECDSA certificate and key under *dirpath*.

    An existing pair in *dirpath* is reused.

    Args:
        dirpath: Directory to write ``cert.pem`` and ``key.pem`` into.
        hosts: Host names or IP addresses for the subject alternative names.
        self_signed_cert_validity: Validity in years.

    Returns:
        TLSInfo pointing at the generated files.
    """
    dirpath = Path(dirpath)
    dirpath.mkdir(parents=True, exist_ok=True)
    cert_path = dirpath / "cert.pem"
    key_path = dirpath / "key.pem"
    if cert_path.exists() and key_path.exists():
        return TLSInfo(cert_file=str(cert_path), key_file=str(key_path), self_cert=True)

    key = ec.generate_private_key(ec.SECP256R1())
    subject = x509.Name([x509.NameAttribute(NameOID.ORGANIZATION_NAME, "etcd")])
    not_before = datetime.now(timezone.utc)
    not_after = not_before + timedelta(days=365 * self_signed_cert_validity)
    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_after)
        .add_extension(x509.SubjectAlternativeName([_san_entry(h) for h in hosts]), critical=False)
        .add_extension(
            x509.ExtendedKeyUsage([ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]),
            critical=False,
        )
        .sign(key, hashes.SHA256())
    )

    cert_path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    os.chmod(key_path, 0o600)
    logger.info("generated self-signed certificate in %s", dirpath)
    return TLSInfo(cert_file=str(cert_path), key_file=str(key_path), self_cert=True)


def fixture_tls_info(settings: HarnessSettings | None = None) -> TLSInfo:
    """Return the pre-provisioned server identity from the fixtures directory."""
    settings = settings or get_settings()
    return TLSInfo(
        cert_file=settings.cert_path,
        key_file=settings.private_key_path,
        trusted_ca_file=settings.ca_path,
    )


def tls_info(
    conn_type: ClientConnType,
    is_auto_tls: bool,
    tmp_dir: str | Path | None = None,
    settings: HarnessSettings | None = None,
) -> TLSInfo | None:
    """Resolve the TLS identity for a connection type.

    Args:
        conn_type: How the cluster serves clients.
        is_auto_tls: Generate a throwaway self-signed identity instead of the fixtures.
        tmp_dir: Directory for generated certificates; required with *is_auto_tls*.
        settings: Harness settings, or None for the process-wide settings.

    Returns:
        TLSInfo, or None for plain-text connections.

    Raises:
        UnsupportedConnTypeError: If *conn_type* has no TLS resolution.
        ValueError: If *is_auto_tls* is set without *tmp_dir*.
    """
    if conn_type in (ClientConnType.NON_TLS, ClientConnType.TLS_AND_NON_TLS):
        return None
    if conn_type == ClientConnType.TLS:
        if is_auto_tls:
            if tmp_dir is None:
                raise ValueError("auto TLS needs a directory for the generated certificate")
            try:
                return self_cert(tmp_dir, SELF_CERT_HOSTS, SELF_CERT_VALIDITY_YEARS)
            except (OSError, ValueError) as e:
                raise RuntimeError(f"failed to generate cert: {e}") from e
        return fixture_tls_info(settings)
    raise UnsupportedConnTypeError(f"config {conn_type!r} not supported")


def _base_url(endpoint: str, secure: bool) -> str:
    if "://" in endpoint:
        return endpoint.rstrip("/")
    scheme = "https" if secure else "http"
    return f"{scheme}://{endpoint.rstrip('/')}"


def _b64(data: str | bytes) -> str:
    if isinstance(data, str):
        data = data.encode()
    return base64.b64encode(data).decode()


def _is_dial_retryable(exc: BaseException) -> bool:
    """Connection failures and 5xx answers (member starting or without a leader) are retried."""
    if isinstance(exc, httpx.TransportError):
        return True
    return isinstance(exc, httpx.HTTPStatusError) and exc.response.is_server_error


# ============================================================================
# v3 client
# ============================================================================

class EtcdClient:
    """Thin v3 client speaking the JSON gateway of each member.

    Construction blocks until one endpoint answers a status request or the
    dial timeout passes.
    """

    def __init__(
        self,
        endpoints: list[str],
        dial_timeout: float,
        tls: ssl.SSLContext | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not endpoints:
            raise ValueError("at least one endpoint is required")
        self.endpoints = [_base_url(ep, tls is not None) for ep in endpoints]
        self.dial_timeout = dial_timeout
        self._http = httpx.Client(
            verify=tls if tls is not None else True,
            timeout=dial_timeout,
            transport=transport,
        )
        try:
            self.active_endpoint = self._dial()
        except BaseException:
            self._http.close()
            raise

    def _dial(self) -> str:
        retryer = Retrying(
            stop=stop_after_delay(self.dial_timeout),
            wait=wait_fixed(CLIENT_DIAL_RETRY_WAIT_SECONDS),
            retry=retry_if_exception(_is_dial_retryable),
            reraise=True,
        )
        try:
            return retryer(self._probe_endpoints)
        except httpx.HTTPError as e:
            raise DialError(
                f"could not connect to any of {self.endpoints} within {self.dial_timeout}s: {e}"
            ) from e

    def _probe_endpoints(self) -> str:
        last_error: httpx.HTTPError | None = None
        for endpoint in self.endpoints:
            try:
                response = self._http.post(f"{endpoint}/v3/maintenance/status", json={})
                response.raise_for_status()
                return endpoint
            except (httpx.TransportError, httpx.HTTPStatusError) as e:
                if not _is_dial_retryable(e):
                    raise
                logger.debug("endpoint %s not ready: %s", endpoint, e)
                last_error = e
        assert last_error is not None
        raise last_error

    def _post(self, path: str, payload: dict) -> dict:
        response = self._http.post(f"{self.active_endpoint}{path}", json=payload)
        response.raise_for_status()
        return response.json()

    def put(self, key: str, value: str | bytes) -> dict:
        return self._post("/v3/kv/put", {"key": _b64(key), "value": _b64(value)})

    def get(self, key: str) -> bytes | None:
        """Return the value stored at *key*, or None if the key does not exist."""
        body = self._post("/v3/kv/range", {"key": _b64(key)})
        kvs = body.get("kvs") or []
        if not kvs:
            return None
        return base64.b64decode(kvs[0].get("value", ""))

    def member_list(self) -> MemberListResponse:
        return MemberListResponse.model_validate(self._post("/v3/cluster/member/list", {}))

    def status(self) -> dict:
        return self._post("/v3/maintenance/status", {})

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> EtcdClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# ============================================================================
# v2 client
# ============================================================================

class EtcdClientV2:
    """Thin client for the v2 keys and members HTTP API."""

    def __init__(
        self,
        endpoints: list[str],
        timeout: float,
        tls: ssl.SSLContext | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not endpoints:
            raise ValueError("at least one endpoint is required")
        self.endpoints = [_base_url(ep, tls is not None) for ep in endpoints]
        self._http = httpx.Client(
            verify=tls if tls is not None else True,
            timeout=timeout,
            transport=transport,
        )

    def set(self, key: str, value: str) -> dict:
        response = self._http.put(f"{self.endpoints[0]}/v2/keys/{key.lstrip('/')}", data={"value": value})
        response.raise_for_status()
        return response.json()

    def get(self, key: str) -> str | None:
        response = self._http.get(f"{self.endpoints[0]}/v2/keys/{key.lstrip('/')}")
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return response.json()["node"].get("value")

    def members(self) -> list[Member]:
        response = self._http.get(f"{self.endpoints[0]}/v2/members")
        response.raise_for_status()
        return [
            Member(
                id=int(m["id"], 16),
                name=m.get("name", ""),
                peer_urls=m.get("peerURLs") or [],
                client_urls=m.get("clientURLs") or [],
            )
            for m in response.json().get("members", [])
        ]

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> EtcdClientV2:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# ============================================================================
# Factories
# ============================================================================

def _client_tls(
    conn_type: ClientConnType,
    is_auto_tls: bool,
    tmp_dir: str | Path | None,
    settings: HarnessSettings,
) -> ssl.SSLContext | None:
    """Resolve the SSL context shared by both client factories.

    Without *tmp_dir*, a generated self-signed pair lives in a temporary
    directory that is removed once the context has loaded it.
    """
    if is_auto_tls and tmp_dir is None and conn_type == ClientConnType.TLS:
        with tempfile.TemporaryDirectory(prefix="ctl-harness-tls-") as scratch:
            tlscfg = tls_info(conn_type, is_auto_tls, scratch, settings)
            return tlscfg.client_config()
    tlscfg = tls_info(conn_type, is_auto_tls, tmp_dir, settings)
    return tlscfg.client_config() if tlscfg is not None else None


def new_client(
    endpoints: list[str],
    conn_type: ClientConnType,
    is_auto_tls: bool,
    tmp_dir: str | Path | None = None,
    settings: HarnessSettings | None = None,
    transport: httpx.BaseTransport | None = None,
) -> EtcdClient:
    """Build a v3 client for *endpoints*; blocks until connected. Caller closes it."""
    settings = settings or get_settings()
    tls = _client_tls(conn_type, is_auto_tls, tmp_dir, settings)
    return EtcdClient(endpoints, settings.client_dial_timeout, tls=tls, transport=transport)


def new_client_v2(
    endpoints: list[str],
    conn_type: ClientConnType,
    is_auto_tls: bool,
    tmp_dir: str | Path | None = None,
    settings: HarnessSettings | None = None,
    transport: httpx.BaseTransport | None = None,
) -> EtcdClientV2:
    """Build a v2 client for *endpoints*. Caller closes it."""
    settings = settings or get_settings()
    tls = _client_tls(conn_type, is_auto_tls, tmp_dir, settings)
    return EtcdClientV2(endpoints, settings.client_dial_timeout, tls=tls, transport=transport)

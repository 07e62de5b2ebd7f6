# Copyright 2022 Akamai Technologies, Inc
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

from __future__ import annotations

import dataclasses
import enum
import functools
import logging
import re
import ssl
from typing import Callable, Sequence, Union

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from OpenSSL import SSL, crypto

from ._configuration import TLSConfig, load_tls_config
from ._errors import (
    BuildError,
    CertificateError,
    FileError,
    InvalidModeError,
    TLSConfigError,
)

logger = logging.getLogger("hotls.policy")

_PEM_CERTIFICATE = re.compile(
    rb"-----BEGIN CERTIFICATE-----.+?-----END CERTIFICATE-----", re.DOTALL
)


class ClientAuth(enum.IntEnum):
    """
    How strictly a server demands a certificate from its clients.

    Members are ordered by strength of the requirement.
    """

    #: No client certificate is requested.
    NO_CLIENT_CERT = 0
    #: A client certificate is requested, but not required.
    REQUEST_CLIENT_CERT = 1
    #: A client certificate is required, but not verified against client CAs.
    REQUIRE_ANY_CLIENT_CERT = 2
    #: A client certificate is verified if a client sends one.
    VERIFY_CLIENT_CERT_IF_GIVEN = 3
    #: A client certificate is required and verified.
    REQUIRE_AND_VERIFY_CLIENT_CERT = 4

    @classmethod
    def parse(cls, value: str) -> ClientAuth:
        """
        Parse a mode from its name used in configuration files.

        :param value: one of ``RequestClientCert``, ``RequireClientCert``,
            ``VerifyClientCertIfGiven``, or ``RequireAndVerifyClientCert``
        :return: a member of this enum
        :raises InvalidModeError: for any other value
        """
        try:
            return _CLIENT_AUTH_NAMES[value]
        except KeyError:
            raise InvalidModeError(value) from None

    @property
    def requires_certificate(self) -> bool:
        """Whether a handshake fails if a client sends no certificate."""
        return self in (
            ClientAuth.REQUIRE_ANY_CLIENT_CERT,
            ClientAuth.REQUIRE_AND_VERIFY_CLIENT_CERT,
        )

    @property
    def accepts_untrusted(self) -> bool:
        """
        Whether client certificates are accepted without verification.

        The :mod:`ssl` module verifies every certificate that a client sends,
        so these modes are served using pyOpenSSL.
        """
        return self in (
            ClientAuth.REQUEST_CLIENT_CERT,
            ClientAuth.REQUIRE_ANY_CLIENT_CERT,
        )

    @property
    def verify_mode(self) -> ssl.VerifyMode:
        """
        Verify mode of a server-side :class:`ssl.SSLContext`.

        :raises ValueError: for modes that accept unverified certificates
        """
        if self.accepts_untrusted:
            raise ValueError(f"{self.name} cannot be enforced by the ssl module.")
        if self == ClientAuth.NO_CLIENT_CERT:
            return ssl.CERT_NONE
        if self.requires_certificate:
            return ssl.CERT_REQUIRED
        return ssl.CERT_OPTIONAL

    @property
    def openssl_verify_mode(self) -> int:
        """Verify flags of a server-side :class:`OpenSSL.SSL.Context`."""
        if self == ClientAuth.NO_CLIENT_CERT:
            return SSL.VERIFY_NONE
        if self.requires_certificate:
            return SSL.VERIFY_PEER | SSL.VERIFY_FAIL_IF_NO_PEER_CERT
        return SSL.VERIFY_PEER


_CLIENT_AUTH_NAMES = {
    "RequestClientCert": ClientAuth.REQUEST_CLIENT_CERT,
    "RequireClientCert": ClientAuth.REQUIRE_ANY_CLIENT_CERT,
    "VerifyClientCertIfGiven": ClientAuth.VERIFY_CLIENT_CERT_IF_GIVEN,
    "RequireAndVerifyClientCert": ClientAuth.REQUIRE_AND_VERIFY_CLIENT_CERT,
}


@dataclasses.dataclass(frozen=True)
class TLSCertificate:
    """
    A certificate chain with a matching private key.
    """

    #: File the chain was loaded from.
    certfile: str
    #: File the key was loaded from.
    keyfile: str
    #: Certificates from the certfile, the leaf certificate first.
    chain: tuple[x509.Certificate, ...]
    #: Private key for the leaf certificate.
    private_key: PrivateKeyTypes = dataclasses.field(repr=False, compare=False)

    @property
    def leaf(self) -> x509.Certificate:
        """The certificate presented to clients."""
        return self.chain[0]

    def install(self, context: ssl.SSLContext | SSL.Context) -> None:
        """
        Load this certificate to the given SSL context.

        A pyOpenSSL context receives the very chain and key held by this
        instance. The :mod:`ssl` module loads certificates from files only,
        so an :class:`ssl.SSLContext` gets :attr:`certfile` and :attr:`keyfile`
        read once more. If the files are replaced in between, the served pair
        is not the pair checked by :func:`load_certificate`.

        :param context: server-side SSL context
        :raises CertificateError: if the context refuses the certificate
        """
        if isinstance(context, SSL.Context):
            self._install_openssl(context)
            return
        try:
            context.load_cert_chain(certfile=self.certfile, keyfile=self.keyfile)
        except (OSError, ssl.SSLError) as exc:
            raise CertificateError(
                f"Cannot load certificate {self.certfile!r}: {exc}"
            ) from exc

    def _install_openssl(self, context: SSL.Context) -> None:
        try:
            context.use_certificate(crypto.X509.from_cryptography(self.leaf))
            for certificate in self.chain[1:]:
                context.add_extra_chain_cert(crypto.X509.from_cryptography(certificate))
            context.use_privatekey(
                crypto.PKey.from_cryptography_key(self.private_key)  # type: ignore
            )
        except (SSL.Error, TypeError) as exc:
            raise CertificateError(
                f"Cannot load certificate {self.certfile!r}: {exc}"
            ) from exc


CertificateProvider = Callable[[], TLSCertificate]


def _read_file(path: str) -> bytes:
    try:
        with open(path, "rb") as f:
            return f.read()
    except OSError as exc:
        raise FileError(path, exc.strerror or str(exc)) from exc


def _public_key_der(key: object) -> bytes:
    return key.public_bytes(  # type: ignore[attr-defined]
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def load_certificate(certfile: str, keyfile: str) -> TLSCertificate:
    """
    Load a certificate chain and its private key from PEM files.

    :param certfile: file with a certificate chain, the leaf certificate first
    :param keyfile: file with an unencrypted private key
    :return: a new instance
    :raises CertificateError: if the files cannot be read or parsed,
        or if the key does not belong to the certificate
    """
    if not keyfile:
        raise CertificateError(f"No key configured for certificate {certfile!r}.")
    try:
        cert_data = _read_file(certfile)
        key_data = _read_file(keyfile)
    except FileError as exc:
        raise CertificateError(str(exc)) from exc
    try:
        chain = tuple(x509.load_pem_x509_certificates(cert_data))
    except ValueError as exc:
        raise CertificateError(f"Invalid certificate in {certfile!r}: {exc}") from exc
    try:
        private_key = serialization.load_pem_private_key(key_data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise CertificateError(f"Invalid private key in {keyfile!r}: {exc}") from exc
    if _public_key_der(chain[0].public_key()) != _public_key_der(
        private_key.public_key()
    ):
        raise CertificateError(
            f"Private key in {keyfile!r} does not match certificate in {certfile!r}."
        )
    return TLSCertificate(
        certfile=certfile,
        keyfile=keyfile,
        chain=chain,
        private_key=private_key,
    )


@dataclasses.dataclass(frozen=True)
class TrustPool:
    """
    CA certificates trusted to issue client certificates.
    """

    certificates: tuple[x509.Certificate, ...]

    def __len__(self) -> int:
        return len(self.certificates)

    @property
    def cadata(self) -> str:
        """PEM-encoded certificates, as accepted by the :mod:`ssl` module."""
        return "".join(
            certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")
            for certificate in self.certificates
        )


def load_trust_pool(path: str) -> TrustPool:
    """
    Load PEM-encoded CA certificates from a file.

    PEM blocks other than certificates are ignored,
    invalid certificates are skipped.

    :param path: path to a file with one or more certificates
    :return: a new instance
    :raises FileError: if the file cannot be read
    :raises BuildError: if the file contains no valid certificate
    """
    data = _read_file(path)
    certificates = []
    for match in _PEM_CERTIFICATE.finditer(data):
        try:
            certificates.append(x509.load_pem_x509_certificate(match.group()))
        except ValueError as exc:
            logger.warning(f"Invalid certificate in {path!r} skipped: {exc}")
    if not certificates:
        raise BuildError(f"No valid certificates found in {path!r}.")
    return TrustPool(tuple(certificates))


@dataclasses.dataclass(frozen=True)
class SecurityPolicy:
    """
    TLS settings applied to server connections.

    Policies are built by :func:`build_policy`.
    """

    #: Returns a certificate to present to clients. Called for each connection.
    #: ``None`` if no certificate is configured.
    certificate: CertificateProvider | None = None

    #: Configured server name, ``None`` if not configured.
    server_name: str | None = None

    #: CA certificates for client verification.
    #: ``None`` if not configured (system CA certificates are used).
    client_cas: TrustPool | None = None

    #: Client authentication requirement.
    client_auth: ClientAuth = ClientAuth.NO_CLIENT_CERT

    def ssl_context(
        self, *, alpn_protocols: Sequence[str] | None = None
    ) -> ssl.SSLContext:
        """
        Create a server-side SSL context that enforces this policy.

        Calls the certificate provider, so certificate files are read again.
        Modes that accept unverified client certificates cannot be enforced
        by the :mod:`ssl` module, use :meth:`openssl_context` for them.

        :param alpn_protocols: ALPN protocols to offer in a TLS handshake
        :return: a new SSL context
        :raises CertificateError: if the certificate cannot be loaded
        :raises BuildError: if client CA certificates cannot be loaded
        :raises ValueError: if the client authentication mode accepts
            unverified certificates
        """
        verify_mode = self.client_auth.verify_mode
        context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
        if self.client_cas is not None:
            try:
                context.load_verify_locations(cadata=self.client_cas.cadata)
            except ssl.SSLError as exc:
                raise BuildError(f"Cannot load client CAs: {exc}") from exc
        elif self.client_auth != ClientAuth.NO_CLIENT_CERT:
            context.load_default_certs(ssl.Purpose.CLIENT_AUTH)
        context.verify_mode = verify_mode
        if self.certificate is not None:
            self.certificate().install(context)
        if alpn_protocols is not None:
            context.set_alpn_protocols(alpn_protocols)
        return context

    def openssl_context(
        self, *, alpn_protocols: Sequence[str] | None = None
    ) -> SSL.Context:
        """
        Create a server-side pyOpenSSL context that enforces this policy.

        Unlike :meth:`ssl_context`, supports all client authentication modes.
        In modes that accept unverified certificates, client CAs are only
        sent to clients as a hint.

        :param alpn_protocols: ALPN protocols to offer in a TLS handshake
        :return: a new SSL context
        :raises CertificateError: if the certificate cannot be loaded
        :raises BuildError: if client CA certificates cannot be loaded
        """
        context = SSL.Context(SSL.TLS_SERVER_METHOD)
        context.set_min_proto_version(SSL.TLS1_2_VERSION)
        context.set_options(SSL.OP_NO_COMPRESSION | SSL.OP_CIPHER_SERVER_PREFERENCE)
        context.set_session_id(b"hotls")
        if self.client_auth.accepts_untrusted:
            verify_callback = _accept_any_certificate
        else:
            verify_callback = _accept_verified_certificate
        context.set_verify(self.client_auth.openssl_verify_mode, verify_callback)
        if self.client_cas is not None:
            try:
                self._install_client_cas(context, self.client_cas)
            except SSL.Error as exc:
                raise BuildError(f"Cannot load client CAs: {exc}") from exc
        elif self.client_auth in (
            ClientAuth.VERIFY_CLIENT_CERT_IF_GIVEN,
            ClientAuth.REQUIRE_AND_VERIFY_CLIENT_CERT,
        ):
            context.set_default_verify_paths()
        if self.certificate is not None:
            self.certificate().install(context)
        if alpn_protocols is not None:
            context.set_alpn_select_callback(_alpn_selector(alpn_protocols))
        return context

    def tls_context(
        self, *, alpn_protocols: Sequence[str] | None = None
    ) -> TLSContextType:
        """
        Create a server-side context using the :mod:`ssl` module if possible.

        :param alpn_protocols: ALPN protocols to offer in a TLS handshake
        :return: an :class:`ssl.SSLContext`, or a pyOpenSSL context
            for modes that accept unverified client certificates
        :raises CertificateError: if the certificate cannot be loaded
        :raises BuildError: if client CA certificates cannot be loaded
        """
        if self.client_auth.accepts_untrusted:
            return self.openssl_context(alpn_protocols=alpn_protocols)
        return self.ssl_context(alpn_protocols=alpn_protocols)

    def _install_client_cas(self, context: SSL.Context, pool: TrustPool) -> None:
        certificates = [crypto.X509.from_cryptography(c) for c in pool.certificates]
        context.set_client_ca_list([c.get_subject() for c in certificates])
        if self.client_auth.accepts_untrusted:
            return
        store = context.get_cert_store()
        assert store is not None
        for certificate in certificates:
            store.add_cert(certificate)


TLSContextType = Union[ssl.SSLContext, SSL.Context]


def _accept_any_certificate(
    connection: SSL.Connection,
    certificate: crypto.X509,
    error_number: int,
    error_depth: int,
    ok: int,
) -> bool:
    return True


def _accept_verified_certificate(
    connection: SSL.Connection,
    certificate: crypto.X509,
    error_number: int,
    error_depth: int,
    ok: int,
) -> bool:
    return bool(ok)


def _alpn_selector(
    protocols: Sequence[str],
) -> Callable[[SSL.Connection, list[bytes]], bytes]:
    supported = [protocol.encode("ascii") for protocol in protocols]

    def select(connection: SSL.Connection, offered: list[bytes]) -> bytes:
        # In server preference order.
        for protocol in supported:
            if protocol in offered:
                return protocol
        return SSL.NO_OVERLAPPING_PROTOCOLS  # type: ignore[no-any-return]

    return select


def build_policy(config: TLSConfig) -> SecurityPolicy:
    """
    Build a security policy from TLS configuration.

    The certificate and its key are not loaded here;
    they are loaded whenever the certificate provider is called.

    :param config: TLS configuration
    :return: a new security policy
    :raises FileError: if the client CA file cannot be read
    :raises BuildError: if the client CA file has no valid certificate
    :raises InvalidModeError: if the client-authentication mode is not recognized
    """
    certificate = None
    if config.cert_path:
        certificate = functools.partial(
            load_certificate, config.cert_path, config.key_path
        )
    client_cas = None
    if config.client_cas:
        client_cas = load_trust_pool(config.client_cas)
    client_auth = ClientAuth.NO_CLIENT_CERT
    if config.client_auth:
        client_auth = ClientAuth.parse(config.client_auth)
    return SecurityPolicy(
        certificate=certificate,
        server_name=config.server_name or None,
        client_cas=client_cas,
        client_auth=client_auth,
    )


def load_policy(path: str) -> SecurityPolicy:
    """
    Load TLS configuration from a file and build a security policy from it.

    :param path: path to a YAML configuration file
    :return: a new security policy
    :raises TLSConfigError: if the configuration is not valid
    """
    try:
        config = load_tls_config(path)
    except TLSConfigError as exc:
        logger.error(f"TLS configuration failed to load from {path!r}: {exc}")
        raise
    try:
        return build_policy(config)
    except TLSConfigError as exc:
        logger.error(f"Invalid TLS configuration in {path!r}: {exc}")
        raise

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
import datetime
import ipaddress
import ssl
from pathlib import Path
from typing import Any

import anyio
import h11
import yaml
from anyio.abc import ByteStream
from anyio.streams.tls import TLSAttribute, TLSStream
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from hotls import AddressType

#: Errors seen by a client whose connection was rejected by a server.
REJECTED_ERRORS = (
    anyio.BrokenResourceError,
    anyio.EndOfStream,
    h11.RemoteProtocolError,
    OSError,  # Includes ssl.SSLError
)


def _key_usage(*, ca: bool) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=True,
        content_commitment=False,
        key_encipherment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=ca,
        crl_sign=ca,
        encipher_only=False,
        decipher_only=False,
    )


class CertificateAuthority:
    """
    Issues certificates for tests.
    """

    key: ec.EllipticCurvePrivateKey
    certificate: x509.Certificate

    def __init__(self, common_name: str = "hotls test CA") -> None:
        self.key = ec.generate_private_key(ec.SECP256R1())
        name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
        now = datetime.datetime.now(datetime.timezone.utc)
        self.certificate = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(self.key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(days=1))
            .not_valid_after(now + datetime.timedelta(days=30))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), True)
            .add_extension(_key_usage(ca=True), True)
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(self.key.public_key()),
                False,
            )
            .sign(self.key, hashes.SHA256())
        )

    def issue(
        self, common_name: str, *, client: bool = False
    ) -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
        """
        Issue a server (or client) certificate valid for localhost.
        """
        key = ec.generate_private_key(ec.SECP256R1())
        now = datetime.datetime.now(datetime.timezone.utc)
        if client:
            usage = ExtendedKeyUsageOID.CLIENT_AUTH
        else:
            usage = ExtendedKeyUsageOID.SERVER_AUTH
        certificate = (
            x509.CertificateBuilder()
            .subject_name(
                x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
            )
            .issuer_name(self.certificate.subject)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now - datetime.timedelta(days=1))
            .not_valid_after(now + datetime.timedelta(days=30))
            .add_extension(x509.BasicConstraints(ca=False, path_length=None), True)
            .add_extension(_key_usage(ca=False), True)
            .add_extension(x509.ExtendedKeyUsage([usage]), False)
            .add_extension(
                x509.SubjectAlternativeName(
                    [
                        x509.DNSName("localhost"),
                        x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
                    ]
                ),
                False,
            )
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(key.public_key()), False
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(
                    self.key.public_key()
                ),
                False,
            )
            .sign(self.key, hashes.SHA256())
        )
        return certificate, key


def write_certificates(path: Path, *certificates: x509.Certificate) -> str:
    path.write_bytes(
        b"".join(c.public_bytes(serialization.Encoding.PEM) for c in certificates)
    )
    return str(path)


def write_key(path: Path, key: ec.EllipticCurvePrivateKey) -> str:
    path.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        )
    )
    return str(path)


def write_tls_config(path: Path, **fields: Any) -> str:
    """
    Write a YAML configuration file with the given ``tlsConfig`` fields.
    """
    path.write_text(yaml.safe_dump({"tlsConfig": fields}))
    return str(path)


@dataclasses.dataclass
class PKI:
    """
    Files with a CA, a server certificate and a client certificate.
    """

    directory: Path
    ca: CertificateAuthority
    ca_file: str
    cert_file: str
    key_file: str
    client_cert_file: str
    client_key_file: str
    #: Certificate and key of a client, issued by a CA that nobody trusts.
    untrusted_client: tuple[str, str]

    def rotate_server_certificate(self, common_name: str) -> x509.Certificate:
        """
        Replace the server certificate and its key with a new pair.
        """
        certificate, key = self.ca.issue(common_name)
        write_certificates(Path(self.cert_file), certificate)
        write_key(Path(self.key_file), key)
        return certificate


def create_pki(directory: Path) -> PKI:
    ca = CertificateAuthority()
    server_certificate, server_key = ca.issue("server")
    client_certificate, client_key = ca.issue("client", client=True)
    untrusted_certificate, untrusted_key = CertificateAuthority("untrusted").issue(
        "untrusted client", client=True
    )
    return PKI(
        directory=directory,
        ca=ca,
        ca_file=write_certificates(directory / "ca.pem", ca.certificate),
        cert_file=write_certificates(directory / "server.crt", server_certificate),
        key_file=write_key(directory / "server.key", server_key),
        client_cert_file=write_certificates(
            directory / "client.crt", client_certificate
        ),
        client_key_file=write_key(directory / "client.key", client_key),
        untrusted_client=(
            write_certificates(directory / "untrusted.crt", untrusted_certificate),
            write_key(directory / "untrusted.key", untrusted_key),
        ),
    )


async def connect_tls(
    address: AddressType,
    *,
    cafile: str,
    certfile: str | None = None,
    keyfile: str | None = None,
) -> TLSStream:
    context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=cafile)
    if certfile is not None:
        context.load_cert_chain(certfile=certfile, keyfile=keyfile)
    context.set_alpn_protocols(["http/1.1"])
    tcp_stream = await anyio.connect_tcp(*address)
    try:
        return await TLSStream.wrap(
            tcp_stream,
            server_side=False,
            hostname="localhost",
            ssl_context=context,
            standard_compatible=False,
        )
    except BaseException:
        await anyio.aclose_forcefully(tcp_stream)
        raise


def peer_certificate(stream: TLSStream) -> x509.Certificate:
    der = stream.extra(TLSAttribute.peer_certificate_binary)
    assert der is not None
    return x509.load_der_x509_certificate(der)


class HTTPClient:
    """
    Sends HTTP/1.1 requests over one connection.
    """

    def __init__(self, stream: ByteStream) -> None:
        self._stream = stream
        self._connection = h11.Connection(h11.CLIENT)

    async def request(
        self,
        method: bytes = b"GET",
        target: bytes = b"/",
        *,
        headers: list[tuple[bytes, bytes]] | None = None,
        body: bytes = b"",
    ) -> tuple[h11.Response, bytes]:
        if self._connection.our_state is h11.DONE:
            self._connection.start_next_cycle()
        request_headers = [(b"host", b"localhost")] + (headers or [])
        if body:
            request_headers.append((b"content-length", str(len(body)).encode()))
        await self._send(
            h11.Request(method=method, target=target, headers=request_headers)
        )
        if body:
            await self._send(h11.Data(body))
        await self._send(h11.EndOfMessage())
        response = await self._next_event()
        assert isinstance(response, h11.Response)
        chunks = []
        while True:
            event = await self._next_event()
            if isinstance(event, h11.EndOfMessage):
                break
            assert isinstance(event, h11.Data)
            chunks.append(bytes(event.data))
        return response, b"".join(chunks)

    async def _send(self, event: h11.Event) -> None:
        data = self._connection.send(event)
        if data:
            await self._stream.send(data)

    async def _next_event(self) -> h11.Event:
        while True:
            event = self._connection.next_event()
            if event is not h11.NEED_DATA:
                return event
            try:
                data = await self._stream.receive()
            except anyio.EndOfStream:
                data = b""
            self._connection.receive_data(data)


async def https_get(
    address: AddressType,
    pki: PKI,
    *,
    client_certificate: bool = False,
    certificate: tuple[str, str] | None = None,
) -> tuple[h11.Response, bytes, x509.Certificate]:
    """
    Send a GET request over TLS, return a response and a server certificate.

    Sends the client certificate from the PKI if ``client_certificate`` is true,
    or the given ``certificate`` and key files.
    """
    if client_certificate:
        certificate = (pki.client_cert_file, pki.client_key_file)
    certfile, keyfile = certificate or (None, None)
    stream = await connect_tls(
        address, cafile=pki.ca_file, certfile=certfile, keyfile=keyfile
    )
    async with stream:
        response, body = await HTTPClient(stream).request()
        return response, body, peer_certificate(stream)

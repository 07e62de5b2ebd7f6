import anyio

from hotls import SecurityPolicy, load_certificate
from hotls.http import HTTPHandler
from hotls.http.examples.hello import application
from hotls.server import Server


def policy_factory() -> SecurityPolicy:
    # Called for every TLS handshake.
    return SecurityPolicy(
        certificate=lambda: load_certificate("certs/cert.pem", "certs/key.pem"),
    )


async def main():
    handler = HTTPHandler(application)
    server = Server(
        handler, ("localhost", 5443), alpn_protocols=handler.alpn_protocols
    )
    server.tls_policy_factory = policy_factory
    await server.serve_tls()


if __name__ == "__main__":
    anyio.run(main)

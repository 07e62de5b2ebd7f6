import anyio

from hotls.http import HTTPHandler, Request, Response
from hotls.server import Server, listen


async def application(request: Request) -> Response:
    return Response(body=f"Hello from {request.target}\n".encode())


async def main():
    handler = HTTPHandler(application)
    server = Server(
        handler, ("localhost", 5443), alpn_protocols=handler.alpn_protocols
    )
    await listen(server, "certs/tls.yml")


if __name__ == "__main__":
    anyio.run(main)

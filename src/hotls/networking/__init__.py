from ._networking import SystemNetworking, TCPServerNetworking, static_policy
from ._openssl import OpenSSLStream
from ._tls import PolicyFactoryType, PolicyTLSListener
from ._typing import ByteStream

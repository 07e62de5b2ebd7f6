from ._listen import listen
from ._models import ListenAddress
from ._server import HandlerType, Server

from ._handler import HTTPHandler
from ._models import AppType, HeadersType, HeaderType, Request, Response

from ._main import run

from ._main import run

run(prog="hotls")

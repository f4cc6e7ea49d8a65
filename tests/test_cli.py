import pytest

from lansync.cli import build_parser, main, register
from lansync.server import SyncServer


def test_parser_reads_mode():
    args = build_parser().parse_args(["-m", "Server"])
    assert args.mode == "Server"
    assert build_parser().parse_args(["--mode", "client"]).mode == "client"


def test_parser_default_mode_is_empty():
    assert build_parser().parse_args([]).mode == ""


def test_version_option(capsys):
    with pytest.raises(SystemExit) as info:
        build_parser().parse_args(["--version"])
    assert info.value.code == 0
    assert "1.0" in capsys.readouterr().out


@pytest.mark.parametrize("argv", [[], ["--mode", "bogus"], ["-m", ""]])
def test_main_rejects_unknown_mode(argv, capsys):
    assert main(argv) == 1
    assert "Specify --mode server or --mode client" in capsys.readouterr().err


@pytest.mark.asyncio
async def test_register_records_client(tmp_path):
    server = SyncServer(tmp_path)
    listener = await server.listen("127.0.0.1", 0)
    port = listener.sockets[0].getsockname()[1]
    try:
        response = await register("127.0.0.1", port)
    finally:
        await server.stop()
    assert response.endswith(b"Registered\n")
    assert response.startswith(b"HTTP/1.1 200 OK")
    assert "127.0.0.1" in server.registered_clients
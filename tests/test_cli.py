import socket

from envoy_control_plane.cli import main


def _write_config(path, rest_port, xds_port):
    path.write_text(
        "[server]\n"
        f"rest_port = {rest_port}\n"
        f"xds_port = {xds_port}\n"
        'host = "127.0.0.1"\n'
        "[envoy]\n"
        'config_dir = "envoy"\n'
        "admin_port = 9901\n"
        "[logging]\n"
        'level = "info"\n',
        encoding="utf-8",
    )


def test_missing_config_fails(tmp_path, capsys):
    code = main(["--config", str(tmp_path / "absent")])
    assert code == 1
    assert "not found" in capsys.readouterr().err


def test_incomplete_config_fails(tmp_path, capsys):
    config_path = tmp_path / "config.toml"
    config_path.write_text("[server]\nrest_port = 8080\n", encoding="utf-8")
    code = main(["--config", str(tmp_path / "config")])
    assert code == 1
    assert "missing field" in capsys.readouterr().err


def test_busy_rest_port_fails_after_announcing(tmp_path, capsys):
    occupier = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        occupier.bind(("127.0.0.1", 0))
        occupier.listen()
        port = occupier.getsockname()[1]
        _write_config(tmp_path / "config.toml", port, 18000)
        code = main(["--config", str(tmp_path / "config.toml")])
    finally:
        occupier.close()
    captured = capsys.readouterr()
    assert code == 1
    assert "Envoy Control Plane starting..." in captured.out
    assert f"REST API running on http://127.0.0.1:{port}" in captured.out
    assert "Error:" in captured.err
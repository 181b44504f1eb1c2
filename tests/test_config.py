import pytest

from grapevine.client import Grapevine
from shared.config import ClientConfig, InvalidCredentialsError, load_config


@pytest.mark.parametrize(
    "client_id, client_secret",
    [("", "secret"), ("id", ""), (None, "secret"), ("id", None), (42, "secret"), ("id", ["s"])],
)
def test_bad_credentials_fail_before_connecting(monkeypatch, client_id, client_secret):
    import websockets

    def _fail(*args, **kwargs):
        raise AssertionError("connection attempted")

    monkeypatch.setattr(websockets, "connect", _fail)

    with pytest.raises(InvalidCredentialsError):
        Grapevine(client_id, client_secret)


def test_invalid_credentials_is_a_type_error():
    with pytest.raises(TypeError):
        ClientConfig(client_id="", client_secret="secret")


def test_user_agent_resolved_at_construction():
    default = ClientConfig(client_id="id", client_secret="secret")
    custom = ClientConfig(client_id="id", client_secret="secret", user_agent="MyMUD 2.0")

    assert default.user_agent == "PyGrapevine 0.1.0"
    assert custom.user_agent == "MyMUD 2.0"


def test_lists_are_copied():
    supports = ["channels"]
    cfg = ClientConfig(client_id="id", client_secret="secret", supports=supports)
    supports.append("tells")

    assert cfg.supports == ["channels"]


def test_non_positive_timeout_rejected():
    with pytest.raises(ValueError):
        ClientConfig(client_id="id", client_secret="secret", request_timeout=0)


def test_load_config_from_yaml(tmp_path, monkeypatch):
    for name in ("GRAPEVINE_CLIENT_ID", "GRAPEVINE_CLIENT_SECRET", "GRAPEVINE_URL"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "grapevine.yml"
    path.write_text(
        "client_id: abc\n"
        "client_secret: xyz\n"
        "supports: [channels, players, tells]\n"
        "channels: [gossip]\n"
        "players: [eric]\n"
        "request_timeout: 5\n"
    )

    cfg = load_config(path)

    assert cfg.client_id == "abc"
    assert cfg.client_secret == "xyz"
    assert cfg.supports == ["channels", "players", "tells"]
    assert cfg.channels == ["gossip"]
    assert cfg.players == ["eric"]
    assert cfg.request_timeout == 5
    assert cfg.url == "wss://grapevine.haus/socket"


def test_environment_and_overrides_take_precedence(tmp_path, monkeypatch):
    monkeypatch.delenv("GRAPEVINE_CLIENT_SECRET", raising=False)
    path = tmp_path / "grapevine.yml"
    path.write_text("client_id: from-file\nclient_secret: file-secret\n")
    monkeypatch.setenv("GRAPEVINE_CLIENT_ID", "from-env")
    monkeypatch.setenv("GRAPEVINE_URL", "wss://staging.example/socket")

    cfg = load_config(path, client_secret="from-arg", url=None)

    assert cfg.client_id == "from-env"
    assert cfg.client_secret == "from-arg"
    assert cfg.url == "wss://staging.example/socket"


def test_load_config_requires_credentials(monkeypatch):
    for name in ("GRAPEVINE_CLIENT_ID", "GRAPEVINE_CLIENT_SECRET", "GRAPEVINE_URL"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(InvalidCredentialsError):
        load_config()


def test_load_config_rejects_unknown_keys(tmp_path, monkeypatch):
    for name in ("GRAPEVINE_CLIENT_ID", "GRAPEVINE_CLIENT_SECRET", "GRAPEVINE_URL"):
        monkeypatch.delenv(name, raising=False)
    path = tmp_path / "grapevine.yml"
    path.write_text("client_id: a\nclient_secret: b\nsecrets: c\n")

    with pytest.raises(ValueError):
        load_config(path)


def test_from_config_uses_given_config():
    cfg = ClientConfig(client_id="id", client_secret="secret", players=["eric", "eric"])
    client = Grapevine.from_config(cfg)

    assert client.config is cfg
    assert client.players.snapshot() == ["eric"]

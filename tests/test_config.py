"""
Tests for configuration loading
"""

import textwrap

import pytest

from httpupload.config import load_config, parse_config, ConfigurationError
from httpupload.utils import parse_listen_address, normalize_prefix, strip_prefix


def write_config(tmp_path, body: str):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(textwrap.dedent(body), encoding="utf-8")
    return config_path


class TestLoadConfig:
    """Test reading the YAML configuration"""

    def test_load_valid_config(self, tmp_path):
        store = tmp_path / "store"
        config_path = write_config(tmp_path, f"""
            listenport: "127.0.0.1:5050"
            secret: "s3cr3t"
            storedir: "{store.as_posix()}"
            uploadSubDir: "upload/"
            logging:
              json: true
              level: "debug"
        """)

        config = load_config(str(config_path))

        assert config.listenport == "127.0.0.1:5050"
        assert config.secret == "s3cr3t"
        assert config.storedir == str(store.resolve())
        assert config.upload_sub_dir == "upload/"
        assert config.logging.json is True
        assert config.logging.level == "DEBUG"

    def test_config_from_environment(self, tmp_path, monkeypatch):
        config_path = write_config(tmp_path, """
            listenport: ":5050"
            secret: "env"
            storedir: "/tmp/httpupload"
            uploadSubDir: "files"
        """)
        monkeypatch.setenv("HTTPUPLOAD_CONFIG", str(config_path))

        assert load_config().secret == "env"

    def test_config_is_immutable(self, tmp_path):
        config = parse_config({
            "listenport": ":5050",
            "secret": "s3cr3t",
            "storedir": str(tmp_path),
            "uploadSubDir": "upload/",
        })

        with pytest.raises(AttributeError):
            config.secret = "other"

    def test_secret_not_in_repr(self, tmp_path):
        config = parse_config({
            "listenport": ":5050",
            "secret": "s3cr3t",
            "storedir": str(tmp_path),
            "uploadSubDir": "upload/",
        })

        assert "s3cr3t" not in repr(config)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        config_path = write_config(tmp_path, """
            listenport: [unclosed
        """)

        with pytest.raises(ConfigurationError):
            load_config(str(config_path))

    @pytest.mark.parametrize("data", [
        None,
        "just a string",
        {"secret": "s", "storedir": "/tmp", "uploadSubDir": "u"},
        {"listenport": ":5050", "secret": "", "storedir": "/tmp", "uploadSubDir": "u"},
        {"listenport": ":5050", "secret": 1234, "storedir": "/tmp", "uploadSubDir": "u"},
        {"listenport": "5050", "secret": "s", "storedir": "/tmp", "uploadSubDir": "u"},
        {"listenport": ":http", "secret": "s", "storedir": "/tmp", "uploadSubDir": "u"},
        {"listenport": ":5050", "secret": "s", "storedir": "/tmp", "uploadSubDir": "u",
         "logging": {"level": "LOUD"}},
    ])
    def test_malformed_config(self, data):
        with pytest.raises(ConfigurationError):
            parse_config(data)


class TestAddressAndPrefix:
    """Test listen address and upload prefix helpers"""

    def test_parse_listen_address(self):
        assert parse_listen_address("127.0.0.1:5050") == ("127.0.0.1", 5050)
        assert parse_listen_address(":5050") == ("0.0.0.0", 5050)
        assert parse_listen_address("[::1]:8080") == ("::1", 8080)

        with pytest.raises(ValueError):
            parse_listen_address("localhost")
        with pytest.raises(ValueError):
            parse_listen_address("localhost:99999")

    def test_normalize_prefix(self):
        assert normalize_prefix("upload/") == "/upload/"
        assert normalize_prefix("/upload") == "/upload/"
        assert normalize_prefix("a/b") == "/a/b/"
        assert normalize_prefix("") == "/"

    def test_strip_prefix_is_exact(self):
        assert strip_prefix("/upload/thomas/abc/catmetal.jpg", "/upload/") == "thomas/abc/catmetal.jpg"

        # Leading characters that also occur in the prefix are kept
        assert strip_prefix("/upload/papa/load.png", "/upload/") == "papa/load.png"
        assert strip_prefix("/upload//double", "/upload/") == "/double"

        assert strip_prefix("/other/file", "/upload/") is None


class TestStartup:
    """Test fatal startup errors of the command line entry point"""

    def test_unusable_storedir_exits(self, tmp_path, monkeypatch, capsys):
        import httpupload.main as main_module

        blocker = tmp_path / "not-a-directory"
        blocker.write_text("plain file", encoding="utf-8")
        config_path = write_config(tmp_path, f"""
            listenport: "127.0.0.1:5050"
            secret: "s3cr3t"
            storedir: "{(blocker / "store").as_posix()}"
            uploadSubDir: "upload/"
        """)

        def fail_run(*args, **kwargs):
            raise AssertionError("server must not start")

        monkeypatch.setattr(main_module, "setup_logging", lambda config, debug=False: None)
        monkeypatch.setattr(main_module.uvicorn, "run", fail_run)

        with pytest.raises(SystemExit) as exc_info:
            main_module.main(["--config", str(config_path)])

        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert "Configuration error" in err
        assert "s3cr3t" not in err

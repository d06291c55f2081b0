import pytest

from host_config import DEFAULT_MAX_OUTGOING, HostConfig, config_path_from_env, load_host_config


def test_defaults_without_file():
    cfg = load_host_config(None, environ={})
    assert cfg == HostConfig()
    assert cfg.max_frame_size is None
    assert cfg.max_outgoing_size == DEFAULT_MAX_OUTGOING


def test_yaml_values(tmp_path):
    path = tmp_path / "host.yaml"
    path.write_text("log_level: debug\nmax_frame_size: 1024\nmirror_input_path: logs/in.log\n", encoding="utf-8")
    cfg = load_host_config(str(path), environ={})
    assert cfg.log_level == "DEBUG"
    assert cfg.max_frame_size == 1024
    assert cfg.mirror_input_path == "logs/in.log"
    assert cfg.mirror_output_path is None


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_host_config(str(path), environ={}) == HostConfig()


def test_env_overrides_file(tmp_path):
    path = tmp_path / "host.yaml"
    path.write_text("read_chunk_size: 512\nlog_file: a.log\n", encoding="utf-8")
    cfg = load_host_config(str(path), environ={"CNB_READ_CHUNK_SIZE": "64", "CNB_LOG_FILE": "none",
                                               "CNB_MAX_OUTGOING_SIZE": "null"})
    assert cfg.read_chunk_size == 64
    assert cfg.log_file is None
    assert cfg.max_outgoing_size is None


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        load_host_config("/nonexistent/host.yaml", environ={})


def test_invalid_values(tmp_path):
    path = tmp_path / "host.yaml"
    path.write_text("max_frame_size: lots\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_host_config(str(path), environ={})

    path.write_text("surprise: 1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_host_config(str(path), environ={})

    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_host_config(str(path), environ={})

    with pytest.raises(ValueError):
        load_host_config(None, environ={"CNB_READ_CHUNK_SIZE": "0"})


def test_config_path_from_env():
    assert config_path_from_env({"CNB_CONFIG": "/etc/host.yaml"}) == "/etc/host.yaml"
    assert config_path_from_env({}) is None

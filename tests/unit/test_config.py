import pytest

from paste_lib.config import Config, ConfigError, load_config


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(tmp_path / "nope.yml")
    assert cfg == Config()
    assert cfg.model == "filesystem"
    assert cfg.expire_seconds("never") == 0


def test_load_sections(tmp_path):
    path = tmp_path / "pastestore.yml"
    path.write_text(
        """
main:
  discussion: false
  discussiondatedisplay: false
  log_level: DEBUG
expire:
  default: 10min
expire_options:
  10min: 600
  never: 0
formatter_options:
  plaintext: Plain Text
  markdown: Markdown
purge:
  limit: 0
  batchsize: 50
model:
  class: database
model_options:
  dsn: sqlite:///data/paste.sq3
  usr: null
  pwd: null
  opt: null
  tbl: paste_
"""
    )
    cfg = load_config(path)
    assert cfg.discussion is False
    assert cfg.discussion_date_display is False
    assert cfg.log_level == "DEBUG"
    assert cfg.default_expire == "10min"
    assert cfg.expire_options == {"10min": 600, "never": 0}
    assert cfg.expire_seconds("1day") == 600
    assert cfg.formatter_options == ["plaintext", "markdown"]
    assert cfg.purge_limit == 0
    assert cfg.purge_batchsize == 50
    assert cfg.model == "database"
    assert cfg.model_options["tbl"] == "paste_"
    assert cfg.model_options["usr"] is None


def test_model_may_be_a_plain_name(tmp_path):
    path = tmp_path / "pastestore.yml"
    path.write_text("model: memory\nformatter_options: [plaintext]\n")
    cfg = load_config(path)
    assert cfg.model == "memory"
    assert cfg.formatter_options == ["plaintext"]


@pytest.mark.parametrize("content", ["- just\n- a list\n", "main: [1, 2]\n", "main: {: bad"])
def test_unusable_files(tmp_path, content):
    path = tmp_path / "pastestore.yml"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(path)


@pytest.mark.parametrize(
    "content",
    ["purge:\n  limit: soon\n", "purge:\n  batchsize: [10]\n", "expire_options:\n  5min: five\n"],
)
def test_non_integer_settings(tmp_path, content):
    path = tmp_path / "pastestore.yml"
    path.write_text(content)
    with pytest.raises(ConfigError):
        load_config(path)

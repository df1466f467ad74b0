"""Tests for the entropy dump script."""

import pytest

from libs.common.config import SolrConfig
from libs.solr.errors import TransportError
from scripts import dump_entropy


def test_format_pair():
    """Keys are printed as-is, hashes base64-encoded."""
    assert dump_entropy.format_pair((("b", "k"), b"\x01\x02")) == "('b', 'k') AQI="


def test_main_keeps_logs_off_stdout(monkeypatch, capsys):
    """Pairs go to stdout; log lines go to stderr."""
    names = []

    def fake_get_config(name):
        names.append(name)
        return SolrConfig()

    async def fake_dump(core, partition, limit, before, config):
        print(dump_entropy.format_pair((("b", "k"), b"\x01\x02")))
        return 1

    monkeypatch.setattr(dump_entropy, "get_config", fake_get_config)
    monkeypatch.setattr(dump_entropy, "dump_entropy", fake_dump)
    monkeypatch.setattr("sys.argv", ["yz-dump-entropy", "--core", "fruit"])

    dump_entropy.main()

    out, err = capsys.readouterr()
    assert names == ["solr"]
    assert out == "('b', 'k') AQI=\n"
    assert "Entropy dump completed" in err


def test_main_exits_on_solr_error(monkeypatch):
    """A failed dump exits with status 1."""
    async def failing_dump(core, partition, limit, before, config):
        raise TransportError("connection refused", operation="entropy_data")

    monkeypatch.setattr(dump_entropy, "dump_entropy", failing_dump)
    monkeypatch.setattr("sys.argv", ["yz-dump-entropy", "--core", "fruit"])

    with pytest.raises(SystemExit) as excinfo:
        dump_entropy.main()
    assert excinfo.value.code == 1

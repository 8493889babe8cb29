"""Тесты базового класса сканера и семейства."""

import pytest

from scanners.base import BaseScanner, Family, split_target
from tlsprobe.context import ScanContext
from tlsprobe.errors import ConnectError, HandshakeError, ResolutionError
from tlsprobe.models import AddressList, CipherVersionMap, Grade, ScanResult


class StaticScanner(BaseScanner):
    """Минимальный сканер для тестирования: возвращает заранее заданное."""

    def __init__(self, name: str, result: ScanResult = None, raises: Exception = None, calls: list = None):
        self.name = name
        self.description = f"{name} description"
        self._result = result
        self._raises = raises
        self._calls = calls if calls is not None else []

    def probe(self, host, ctx) -> ScanResult:
        self._calls.append(self.name)
        if self._raises is not None:
            raise self._raises
        return self._result


GOOD = ScanResult(grade=Grade.GOOD, output=AddressList(addresses=["192.0.2.1"]))


class TestBaseScanner:
    def test_cannot_instantiate_abstract(self):
        with pytest.raises(TypeError):
            BaseScanner()  # type: ignore

    def test_success_recorded(self):
        ctx = ScanContext()
        result = StaticScanner("ok", GOOD).scan("h:443", ctx)
        assert result is GOOD
        assert ctx.history.get_all("ok", "h:443") == [GOOD.output]

    def test_repeated_scans_append(self):
        ctx = ScanContext()
        scanner = StaticScanner("ok", GOOD)
        scanner.scan("h:443", ctx)
        scanner.scan("h:443", ctx)
        assert len(ctx.history.get_all("ok", "h:443")) == 2

    def test_raised_scan_error_becomes_bad_result(self):
        ctx = ScanContext()
        result = StaticScanner("fail", raises=ConnectError("refused")).scan("h:443", ctx)
        assert result.grade == Grade.BAD
        assert isinstance(result.error, ConnectError)
        assert result.output is None
        assert ctx.history.keys() == []

    def test_partial_output_returned_not_recorded(self):
        ctx = ScanContext()
        partial = ScanResult(
            grade=Grade.BAD,
            output=CipherVersionMap(versions={"TLS1.0": ["x"]}),
            error=ConnectError("refused"),
        )
        result = StaticScanner("partial", partial).scan("h:443", ctx)
        assert result.output.versions == {"TLS1.0": ["x"]}
        assert ctx.history.get_all("partial", "h:443") == []

    def test_unexpected_exception_propagates(self):
        with pytest.raises(ZeroDivisionError):
            StaticScanner("boom", raises=ZeroDivisionError()).scan("h:443", ScanContext())

    def test_label(self):
        scanner = StaticScanner("ok", GOOD)
        assert scanner.label() == "ok"
        assert scanner.label(verbose=True) == "ok: ok description"
        assert str(scanner) == "ok"
        assert "ok" in repr(scanner)


class TestSplitTarget:
    def test_default_port_from_context(self):
        assert split_target("example.com", ScanContext(default_port=8443)) == ("example.com", 8443)

    def test_bad_port(self):
        with pytest.raises(ResolutionError):
            split_target("example.com:99999", ScanContext())


class TestFamily:
    def test_runs_in_declared_order_and_continues_after_failure(self):
        calls: list[str] = []
        family = Family(
            name="F",
            description="test family",
            scanners=(
                StaticScanner("first", GOOD, calls=calls),
                StaticScanner("second", raises=HandshakeError("alert"), calls=calls),
                StaticScanner("third", GOOD, calls=calls),
            ),
        )
        results = family.run("h:443", ScanContext())
        assert calls == ["first", "second", "third"]
        assert [r.grade for _, r in results] == [Grade.GOOD, Grade.BAD, Grade.GOOD]
        assert family.scanner_names() == ["first", "second", "third"]

    def test_label(self):
        family = Family(name="F", description="test family")
        assert family.label() == "F"
        assert family.label(verbose=True) == "F: test family"
        assert str(family) == "F"

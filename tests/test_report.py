import logging
import threading

import pytest

from depresolve import (
    InMemoryProvider,
    LoggingReporter,
    PackageNotFound,
    ProviderUnavailable,
    ResolutionCancelled,
    ResolutionReport,
    Unsatisfiable,
    resolve,
)


def test_report_success():
    provider = InMemoryProvider(
        {"app": {"1.0": ["lib>=2"]}, "lib": {"1.0": [], "2.1": []}}
    )
    report = resolve(["app"], provider)
    assert report.ok
    assert report.error is None
    report.raise_for_error()
    assert report.graph.mapping == {
        "app": report.graph["app"].version,
        "lib": report.graph["lib"].version,
    }
    assert report.explain().splitlines() == [
        "Resolved 2 packages, install order:",
        "  lib==2.1",
        "  app==1.0",
    ]


def test_report_unsatisfiable():
    provider = InMemoryProvider(
        {"x": {"1.0": [], "2.0": []}, "y": {"1.0": ["x==2.0"]}}
    )
    report = resolve(["x==1.0", "y"], provider)
    assert not report.ok
    assert report.graph is None
    assert isinstance(report.error, Unsatisfiable)
    explanation = report.explain()
    assert explanation.startswith("Cannot find versions of x")
    assert "x==1.0, required by the root project" in explanation
    assert "x==2.0, required by y==1.0 <- the root project" in explanation
    with pytest.raises(Unsatisfiable):
        report.raise_for_error()


def test_report_package_not_found():
    report = resolve(["nothing"], InMemoryProvider({}))
    assert isinstance(report.error, PackageNotFound)
    assert "nothing" in report.explain()


def test_report_cancelled():
    cancel = threading.Event()
    cancel.set()
    provider = InMemoryProvider({"a": {"1.0": []}})
    report = resolve(["a"], provider, cancel=cancel)
    assert isinstance(report.error, ResolutionCancelled)


def test_report_provider_unavailable():
    class Provider(InMemoryProvider):
        def candidates(self, name):
            raise ProviderUnavailable(name, OSError("connection reset"))

    report = resolve(["a"], Provider({}))
    assert isinstance(report.error, ProviderUnavailable)
    assert "reachable again later" in report.explain()


def test_report_requires_exactly_one_outcome():
    with pytest.raises(ValueError):
        ResolutionReport()


def test_logging_reporter(caplog):
    provider = InMemoryProvider({"a": {"1.0": []}})
    with caplog.at_level(logging.DEBUG, logger="depresolve.resolution"):
        report = resolve(["a"], provider, LoggingReporter())
    assert report.ok
    assert "Pinning <a==1.0>" in caplog.text
    assert "Resolution finished with 1 pinned" in caplog.text

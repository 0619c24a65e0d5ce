import json
import threading

import pytest

from depresolve import (
    AbstractProvider,
    CycleDetected,
    InMemoryProvider,
    PackageCandidate,
    PackageNotFound,
    ProviderUnavailable,
    Requirement,
    ResolutionCancelled,
    ResolutionTooDeep,
    Unsatisfiable,
    parse_version,
)
from depresolve.resolvers import (
    CandidateCache,
    RequirementInformation,
    Resolver,
)


def _pins(result):
    return {name: str(c.version) for name, c in result.mapping.items()}


def test_diamond_shares_one_version(reporter):
    provider = InMemoryProvider(
        {
            "a": {"1.0": ["c==1.0"]},
            "b": {"1.0": ["c>=1.0,<2.0"]},
            "c": {"1.0": [], "1.5": [], "2.0": []},
        }
    )
    result = Resolver(provider, reporter).resolve(["a", "b"])

    assert _pins(result) == {"a": "1.0", "b": "1.0", "c": "1.0"}
    assert [node.name for node in result.graph] == ["a", "b", "c"]
    assert sorted(result.graph.iter_edges()) == [("a", "c"), ("b", "c")]
    assert [result.graph.nodes[i].name for i in result.graph.roots] == [
        "a",
        "b",
    ]


def test_unsatisfiable_names_both_sides():
    provider = InMemoryProvider(
        {
            "x": {"1.0": [], "2.0": []},
            "y": {"1.0": ["x==2.0"]},
        }
    )
    with pytest.raises(Unsatisfiable) as ctx:
        Resolver(provider).resolve(["x==1.0", "y"])

    causes = ctx.value.causes
    assert Requirement("x", "==1.0") in [c.requirement for c in causes]
    assert Requirement("x", "==2.0") in [c.requirement for c in causes]
    parents = {str(c.requirement): c.parent for c in causes}
    assert parents["x==1.0"] is None
    assert parents["x==2.0"] == PackageCandidate("y", "1.0")

    explanation = str(ctx.value)
    assert "x==1.0, required by the root project" in explanation
    assert "x==2.0, required by y==1.0 <- the root project" in explanation


def test_root_requirements_conflict():
    provider = InMemoryProvider({"x": {"1.0": [], "2.0": []}})
    with pytest.raises(Unsatisfiable) as ctx:
        Resolver(provider).resolve(["x==1.0", "x==2.0"])
    assert [str(c.requirement) for c in ctx.value.causes] == [
        "x==1.0",
        "x==2.0",
    ]
    assert all(c.parent is None for c in ctx.value.causes)


def test_no_matching_version():
    provider = InMemoryProvider({"x": {"1.0": []}})
    with pytest.raises(Unsatisfiable) as ctx:
        Resolver(provider).resolve(["x>=2"])
    assert ctx.value.causes == [
        RequirementInformation(Requirement("x", ">=2"), None)
    ]


def test_newest_allowed_version_preferred():
    provider = InMemoryProvider(
        {"a": {"1.0": [], "2.0": [], "3.0": [], "3.1a1": []}}
    )
    result = Resolver(provider).resolve(["a<3"])
    assert _pins(result) == {"a": "2.0"}


def test_prerelease_used_when_nothing_else_fits():
    provider = InMemoryProvider({"a": {"1.0": [], "2.0b1": []}})
    result = Resolver(provider).resolve(["a>1"])
    assert _pins(result) == {"a": "2.0b1"}


def test_backtracks_to_older_version(reporter):
    # a 2.0 is tried first, but its b can only work with c 2.0, which the
    # root project forbids. Going back to a 1.0 fixes it.
    provider = InMemoryProvider(
        {
            "a": {"1.0": ["b==1.0"], "2.0": ["b==2.0"]},
            "b": {"1.0": [], "2.0": ["c==2.0"]},
            "c": {"1.0": [], "2.0": []},
        }
    )
    result = Resolver(provider, reporter).resolve(["a", "c<2"])

    assert _pins(result) == {"a": "1.0", "b": "1.0", "c": "1.0"}
    assert PackageCandidate("a", "2.0") in reporter.backtracked


def test_candidate_contradicting_a_pin_is_rejected():
    # b 2.0 (and with it d) is pinned before z is considered. z 2.0 asks for
    # b<2, so the older z is used instead of undoing b.
    provider = InMemoryProvider(
        {
            "a": {"1.0": ["b"]},
            "b": {"1.0": [], "2.0": ["d"]},
            "d": {"1.0": []},
            "z": {"1.0": [], "2.0": ["b<2"]},
        }
    )
    result = Resolver(provider).resolve(["a", "z"])
    assert _pins(result) == {"a": "1.0", "b": "2.0", "d": "1.0", "z": "1.0"}


def test_dependency_excluding_its_dependent_backtracks(reporter):
    # a 2.0 needs c, and c only works with a 1.0.
    provider = InMemoryProvider(
        {
            "a": {"1.0": [], "2.0": ["c==1.0"]},
            "c": {"1.0": ["a==1.0"]},
        }
    )
    result = Resolver(provider, reporter).resolve(["a"])
    assert _pins(result) == {"a": "1.0"}
    assert "c" not in result.graph
    assert PackageCandidate("a", "2.0") in reporter.backtracked


def test_long_chain_fits_default_rounds():
    index = {f"p{i:03}": {"1.0": [f"p{i + 1:03}"]} for i in range(150)}
    index["p150"] = {"1.0": []}
    result = Resolver(InMemoryProvider(index)).resolve(["p000"])
    assert len(result.graph) == 151


def test_candidate_restricting_itself_is_rejected():
    provider = InMemoryProvider({"a": {"1.0": ["a>=1"], "2.0": ["a<2"]}})
    result = Resolver(provider).resolve(["a"])
    assert _pins(result) == {"a": "1.0"}
    assert result.graph.edges == ()


def test_resolution_is_deterministic():
    index = {
        "app": {"1.0": ["web>=1", "db", "cache"]},
        "web": {"1.0": ["util<2"], "1.1": ["util>=1.5"]},
        "db": {"1.0": ["util"], "2.0": ["util<1.5"]},
        "cache": {"1.0": ["util"]},
        "util": {"1.0": [], "1.5": [], "2.0": []},
    }
    dumps = {
        json.dumps(
            Resolver(InMemoryProvider(index)).resolve(["app"]).graph.to_dict()
        )
        for _ in range(5)
    }
    assert len(dumps) == 1


def test_each_name_queried_once():
    provider = InMemoryProvider(
        {
            "a": {"1.0": ["c"], "2.0": ["c", "b==9"]},
            "b": {"1.0": ["c"]},
            "c": {"1.0": [], "2.0": []},
        }
    )
    Resolver(provider).resolve(["a", "b", "c>=1"])
    assert dict(provider.calls) == {"a": 1, "b": 1, "c": 1}


def test_missing_package_propagates():
    provider = InMemoryProvider({"a": {"1.0": ["ghost"]}})
    with pytest.raises(PackageNotFound) as ctx:
        Resolver(provider).resolve(["a"])
    assert ctx.value.name == "ghost"


class BlockingProvider(InMemoryProvider):
    """Never answer for one package until released."""

    def __init__(self, index, blocked):
        super().__init__(index)
        self.blocked = blocked
        self.release = threading.Event()

    def candidates(self, name):
        if name == self.blocked:
            self.release.wait(10)
        return super().candidates(name)


def test_provider_timeout():
    provider = BlockingProvider(
        {"a": {"1.0": ["z"]}, "z": {"1.0": []}}, blocked="z"
    )
    try:
        with pytest.raises(ProviderUnavailable) as ctx:
            Resolver(provider, timeout=0.1).resolve(["a"])
    finally:
        provider.release.set()
    assert ctx.value.name == "z"
    assert isinstance(ctx.value.cause, TimeoutError)


def test_lazy_dependencies_bounded_by_timeout():
    release = threading.Event()

    def requirements():
        release.wait(10)
        return []

    class Provider(AbstractProvider):
        def candidates(self, name):
            return [PackageCandidate(name, "1.0", requirements)]

    try:
        with pytest.raises(ProviderUnavailable) as ctx:
            Resolver(Provider(), timeout=0.1).resolve(["slow"])
    finally:
        release.set()
    assert ctx.value.name == "slow"
    assert isinstance(ctx.value.cause, TimeoutError)


def test_cancelled_before_first_round():
    cancel = threading.Event()
    cancel.set()
    provider = InMemoryProvider({"a": {"1.0": []}})
    with pytest.raises(ResolutionCancelled):
        Resolver(provider).resolve(["a"], cancel=cancel)


def test_cancelled_during_resolution(reporter_cls):
    cancel = threading.Event()

    class CancellingReporter(reporter_cls):
        def pinning(self, candidate):
            super().pinning(candidate)
            cancel.set()

    provider = InMemoryProvider({"a": {"1.0": ["b"]}, "b": {"1.0": []}})
    with pytest.raises(ResolutionCancelled):
        Resolver(provider, CancellingReporter()).resolve(
            ["a"], cancel=cancel
        )


def test_too_deep():
    index = {f"p{i}": {"1.0": [f"p{i + 1}"]} for i in range(10)}
    index["p10"] = {"1.0": []}
    with pytest.raises(ResolutionTooDeep) as ctx:
        Resolver(InMemoryProvider(index)).resolve(["p0"], max_rounds=5)
    assert ctx.value.round_count == 5


def test_cycle_rejected_by_default():
    provider = InMemoryProvider({"a": {"1.0": ["b"]}, "b": {"1.0": ["a"]}})
    with pytest.raises(CycleDetected) as ctx:
        Resolver(provider).resolve(["a"])
    assert ctx.value.cycle == ["a", "b"]


def test_cycle_allowed():
    provider = InMemoryProvider({"a": {"1.0": ["b"]}, "b": {"1.0": ["a"]}})
    result = Resolver(provider).resolve(["a"], allow_cycles=True)
    assert _pins(result) == {"a": "1.0", "b": "1.0"}
    install_order = [n.name for n in result.graph.iter_install_order()]
    assert install_order == ["a", "b"]


def test_extras_pull_in_optional_dependencies():
    provider = InMemoryProvider(
        {
            "app": {"1.0": ["lib[speed]>=1"]},
            "lib": {
                "1.0": [],
                "2.0": ["fast>=2; extra == 'speed'"],
            },
            "fast": {"1.0": [], "2.0": []},
        }
    )
    result = Resolver(provider).resolve(["app"])
    assert _pins(result) == {
        "app": "1.0",
        "lib[speed]": "2.0",
        "lib": "2.0",
        "fast": "2.0",
    }
    assert [node.name for node in result.graph] == ["app", "fast", "lib"]
    assert list(result.graph.iter_children("lib")) == ["fast"]


def test_extras_and_base_agree_on_version():
    provider = InMemoryProvider(
        {
            "lib": {"1.0": [], "2.0": []},
        }
    )
    result = Resolver(provider).resolve(["lib[x]", "lib<2"])
    assert _pins(result) == {"lib": "1.0", "lib[x]": "1.0"}
    assert len(result.graph) == 1


def test_markers_select_requirements():
    provider = InMemoryProvider(
        {
            "app": {"1.0": ["winonly; sys_platform == 'win32'", "common"]},
            "winonly": {"1.0": []},
            "common": {"1.0": []},
        }
    )
    resolver = Resolver(provider, environment={"sys_platform": "linux"})
    result = resolver.resolve(["app", "tool; sys_platform == 'win32'"])
    assert _pins(result) == {"app": "1.0", "common": "1.0"}
    assert provider.calls["winonly"] == 0
    assert provider.calls["tool"] == 0


def test_custom_provider():
    class Provider(AbstractProvider):
        def candidates(self, name):
            if name != "only":
                raise PackageNotFound(name)
            return [PackageCandidate("only", v) for v in ["3", "2", "1"]]

    result = Resolver(Provider()).resolve([Requirement("only", "<3")])
    assert result.mapping["only"].version == parse_version("2")


def test_candidate_cache_reuses_answers():
    provider = InMemoryProvider({"a": {"1.0": []}})
    with CandidateCache(provider) as cache:
        first = cache.get("a")
        assert cache.get("a") is first
        assert cache.prefetch("a").result() == list(first)
    assert provider.calls["a"] == 1

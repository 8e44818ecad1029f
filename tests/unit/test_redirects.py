"""
Tests for redirect resolution.
"""

from __future__ import annotations

from dataclasses import replace

import pytest

from redirector.adapters.memory_store import InMemoryRedirectRuleStore
from redirector.components.redirects import (
    RedirectConfig,
    RedirectResolver,
    merge_query_params,
)
from redirector.core.entities import RedirectDecision, RedirectRule
from redirector.core.services.canonical import fingerprint

SITE = "http://localhost:8000"


@pytest.fixture
def resolver(memory_store: InMemoryRedirectRuleStore, config: RedirectConfig) -> RedirectResolver:
    return RedirectResolver(store=memory_store, config=config)


# --- Query merging ---


class TestMergeQueryParams:
    """Incoming query forwarded onto a target."""

    def test_appends_new_params(self) -> None:
        assert merge_query_params("/t?with=query-param", "diff=x") == "/t?with=query-param&diff=x"

    def test_target_wins_on_collision(self) -> None:
        assert merge_query_params("/t?a=1", "a=2&b=3") == "/t?a=1&b=3"

    def test_excluded_keys(self) -> None:
        assert merge_query_params("/t", "a=1&b=2", exclude_keys=["a"]) == "/t?b=2"

    def test_empty_incoming(self) -> None:
        assert merge_query_params("/t?a=1", "") == "/t?a=1"

    def test_segments_copied_verbatim(self) -> None:
        assert merge_query_params("/t", "q=a%20b&arr[]=1") == "/t?q=a%20b&arr[]=1"

    def test_absolute_target(self) -> None:
        assert merge_query_params(f"{SITE}/t", "x=1") == f"{SITE}/t?x=1"

    def test_keeps_fragment(self) -> None:
        assert merge_query_params("/t#top", "x=1") == "/t?x=1#top"


# --- End-to-end scenarios ---


class TestResolveScenarios:
    """Rule, request, expected decision."""

    def test_simple_redirect(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/original-post", "/redirected-post", status_code=301))

        decision = resolver.resolve("/original-post")

        assert decision is not None
        assert decision.destination == f"{SITE}/redirected-post"
        assert decision.status_code == 301

    def test_preserve_query_params(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(
            make_rule("/original-post", "/redirected-post", preserve_query_params=True)
        )

        decision = resolver.resolve("/original-post?with=query-param")

        assert decision is not None
        assert decision.destination == f"{SITE}/redirected-post?with=query-param"

    def test_target_params_win_and_new_ones_appended(
        self, resolver, memory_store, make_rule
    ) -> None:
        memory_store.put(
            make_rule(
                "/original-post",
                "/redirected-post?with=query-param",
                preserve_query_params=True,
            )
        )

        decision = resolver.resolve("/original-post?diff=x")

        assert decision is not None
        assert decision.destination == f"{SITE}/redirected-post?with=query-param&diff=x"

    def test_unmapped_path(self, resolver) -> None:
        assert resolver.resolve("/unmapped-path") is None

    def test_external_host_from_rule_is_allowed(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/partner", "https://www.example.org/landing"))

        decision = resolver.resolve("/partner")

        assert decision is not None
        assert decision.destination == "https://www.example.org/landing"

    def test_request_cannot_choose_external_host(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(
            make_rule("/original-post", "/redirected-post", preserve_query_params=True)
        )

        decision = resolver.resolve("/original-post?next=https://evil.example/")

        assert decision is not None
        assert decision.destination.startswith(f"{SITE}/redirected-post?")

    def test_request_host_is_ignored(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/original-post", "/redirected-post"))

        decision = resolver.resolve("//evil.example/original-post")

        assert decision is not None
        assert decision.destination == f"{SITE}/redirected-post"


# --- Matching ---


class TestResolveMatching:
    """How requests find rules."""

    def test_case_insensitive(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/Original-Post", "/redirected-post"))
        assert resolver.resolve("/original-post/") is not None

    def test_percent_encoding_insensitive(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/caf%c3%a9", "/coffee"))
        assert resolver.resolve("/caf%C3%A9") is not None

    def test_query_order_insensitive(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/search?b=2&a=1", "/found"))

        decision = resolver.resolve("/search?a=1&b=2")

        assert decision is not None
        assert decision.destination == f"{SITE}/found"

    def test_query_rule_does_not_match_bare_path(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/search?a=1", "/found"))
        assert resolver.resolve("/search") is None

    def test_query_is_dropped_without_preserve(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/original-post", "/redirected-post"))

        decision = resolver.resolve("/original-post?utm_source=x")

        assert decision is not None
        assert decision.destination == f"{SITE}/redirected-post"

    def test_path_fallback_can_be_disabled(self, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/original-post", "/redirected-post"))
        resolver = RedirectResolver(
            store=memory_store,
            config=RedirectConfig(site_url=SITE, fallback_to_path_match=False),
        )

        assert resolver.resolve("/original-post?utm_source=x") is None
        assert resolver.resolve("/original-post") is not None

    def test_query_subset_is_not_matched(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/p?id=7", "/post-seven"))
        assert resolver.resolve("/p?utm_source=news&id=7") is None

    def test_exact_query_match_forwards_nothing_it_matched(
        self, resolver, memory_store, make_rule
    ) -> None:
        memory_store.put(make_rule("/p?id=7", "/post-seven", preserve_query_params=True))

        decision = resolver.resolve("/p?id=7")

        assert decision is not None
        assert decision.destination == f"{SITE}/post-seven"

    def test_inactive_rule_never_matches(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/original-post", "/redirected-post", active=False))
        assert resolver.resolve("/original-post") is None

    @pytest.mark.parametrize("request_path", ["/bad%ZZ", "/a b", "", "http://example.com"])
    def test_unparseable_request_is_no_match(self, resolver, request_path: str) -> None:
        assert resolver.resolve(request_path) is None


# --- Decisions ---


class TestResolveDecision:
    """Shape of the returned decision."""

    def test_marker_header(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/old", "/new"))

        decision = resolver.resolve("/old")

        assert decision is not None
        assert dict(decision.headers) == {"X-Redirect-By": "redirector"}

    def test_custom_marker_header(self, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/old", "/new"))
        resolver = RedirectResolver(
            store=memory_store,
            config=RedirectConfig(site_url=SITE, marker_header="X-Moved-By", marker_value="me"),
        )

        decision = resolver.resolve("/old")

        assert decision is not None
        assert dict(decision.headers) == {"X-Moved-By": "me"}

    def test_rule_id(self, resolver, memory_store, make_rule) -> None:
        rule = make_rule("/old", "/new")
        memory_store.put(rule)

        decision = resolver.resolve("/old")

        assert decision is not None
        assert decision.rule_id == rule.id

    @pytest.mark.parametrize("status_code", [301, 302, 303, 307])
    def test_forwarding_status_codes(self, resolver, memory_store, make_rule, status_code) -> None:
        memory_store.put(make_rule("/old", "/new", status_code=status_code))

        decision = resolver.resolve("/old")

        assert decision is not None
        assert decision.status_code == status_code
        assert decision.has_location is True

    @pytest.mark.parametrize("status_code", [403, 404])
    def test_removed_status_codes(self, resolver, memory_store, make_rule, status_code) -> None:
        memory_store.put(make_rule("/gone", "/", status_code=status_code))

        decision = resolver.resolve("/gone")

        assert decision is not None
        assert decision.status_code == status_code
        assert decision.has_location is False

    def test_unsafe_stored_target_is_no_match(self, resolver, memory_store) -> None:
        memory_store.put(
            RedirectRule(
                from_canonical="/xss",
                fingerprint=fingerprint("/xss"),
                to_target="javascript:alert(1)",
            )
        )

        assert resolver.resolve("/xss") is None

    def test_schemeless_stored_target_stays_on_site(self, resolver, memory_store) -> None:
        memory_store.put(
            RedirectRule(
                from_canonical="/sneaky",
                fingerprint=fingerprint("/sneaky"),
                to_target="//evil.example/x",
            )
        )

        decision = resolver.resolve("/sneaky")

        assert decision is not None
        assert decision.destination == f"{SITE}/evil.example/x"


# --- Extension points ---


class TestResolverExtensions:
    """Path transforms, decision transforms and the redirect callback."""

    def test_path_transforms_apply_in_order(self, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/new-home", "/landing"))
        resolver = RedirectResolver(
            store=memory_store,
            config=RedirectConfig(site_url=SITE),
            path_transforms=[
                lambda p: p.replace("/legacy", "", 1),
                lambda p: "/new-home" if p == "/home" else p,
            ],
        )

        decision = resolver.resolve("/legacy/home")

        assert decision is not None
        assert decision.destination == f"{SITE}/landing"

    def test_decision_transforms(self, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/old", "/new", status_code=301))
        resolver = RedirectResolver(
            store=memory_store,
            config=RedirectConfig(site_url=SITE),
            decision_transforms=[lambda d: replace(d, status_code=307)],
        )

        decision = resolver.resolve("/old")

        assert decision is not None
        assert decision.status_code == 307

    def test_on_redirect_called_with_decision(self, memory_store, make_rule) -> None:
        seen: list[RedirectDecision] = []
        memory_store.put(make_rule("/old", "/new"))
        resolver = RedirectResolver(
            store=memory_store,
            config=RedirectConfig(site_url=SITE),
            on_redirect=seen.append,
        )

        decision = resolver.resolve("/old")
        resolver.resolve("/unmapped")

        assert seen == [decision]

    def test_decision_transform_destination_is_validated(self, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/old", "/new", status_code=301))
        resolver = RedirectResolver(
            store=memory_store,
            config=RedirectConfig(site_url=SITE),
            decision_transforms=[lambda d: replace(d, destination="https://evil.test/")],
        )

        assert resolver.resolve("/old") is None

    def test_decision_transform_may_rewrite_to_local_path(self, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/old", "/new"))
        resolver = RedirectResolver(
            store=memory_store,
            config=RedirectConfig(site_url=SITE),
            decision_transforms=[lambda d: replace(d, destination=f"{SITE}/newer")],
        )

        decision = resolver.resolve("/old")

        assert decision is not None
        assert decision.destination == f"{SITE}/newer"

    def test_failing_path_transform_is_no_match(
        self, memory_store, make_rule, caplog: pytest.LogCaptureFixture
    ) -> None:
        def boom(path: str) -> str:
            raise ValueError("boom")

        memory_store.put(make_rule("/old", "/new"))
        resolver = RedirectResolver(
            store=memory_store, config=RedirectConfig(site_url=SITE), path_transforms=[boom]
        )

        assert resolver.resolve("/old") is None
        assert "Path transform failed" in caplog.text

    def test_failing_decision_transform_is_no_match(self, memory_store, make_rule) -> None:
        def boom(decision: RedirectDecision) -> RedirectDecision:
            raise RuntimeError("boom")

        memory_store.put(make_rule("/old", "/new"))
        resolver = RedirectResolver(
            store=memory_store, config=RedirectConfig(site_url=SITE), decision_transforms=[boom]
        )

        assert resolver.resolve("/old") is None

    def test_failing_on_redirect_still_redirects(
        self, memory_store, make_rule, caplog: pytest.LogCaptureFixture
    ) -> None:
        def boom(decision: RedirectDecision) -> None:
            raise RuntimeError("boom")

        memory_store.put(make_rule("/old", "/new"))
        resolver = RedirectResolver(
            store=memory_store, config=RedirectConfig(site_url=SITE), on_redirect=boom
        )

        decision = resolver.resolve("/old")

        assert decision is not None
        assert decision.destination == f"{SITE}/new"
        assert "on_redirect callback failed" in caplog.text


# --- Base path ---


class TestBasePath:
    """Site served from a subdirectory."""

    @pytest.fixture
    def resolver(self, memory_store: InMemoryRedirectRuleStore) -> RedirectResolver:
        return RedirectResolver(
            store=memory_store, config=RedirectConfig(site_url=f"{SITE}/blog")
        )

    def test_base_path_stripped(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/old", "/new"))

        decision = resolver.resolve("/blog/old")

        assert decision is not None
        assert decision.destination == f"{SITE}/blog/new"

    def test_base_path_with_query(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/", "/home", preserve_query_params=True))

        decision = resolver.resolve("/blog?p=1")

        assert decision is not None
        assert decision.destination == f"{SITE}/blog/home?p=1"

    def test_similar_prefix_not_stripped(self, resolver, memory_store, make_rule) -> None:
        memory_store.put(make_rule("/ger", "/new"))
        assert resolver.resolve("/blogger") is None


class TestRedirectConfig:
    def test_derived_properties(self) -> None:
        config = RedirectConfig(site_url="https://Example.com/blog/")

        assert config.site_root == "https://Example.com/blog"
        assert config.site_host == "example.com"
        assert config.base_path == "/blog"

from pathlib import Path

import pytest

from redirector.adapters.memory_store import InMemoryRedirectRuleStore
from redirector.adapters.sqlite.migrator import SQLiteMigrator
from redirector.adapters.sqlite_db import SQLiteRedirectRuleStore
from redirector.components.redirects import RedirectConfig, RedirectService
from redirector.core.entities import RedirectRule
from redirector.core.services.canonical import canonicalize_from, fingerprint, normalise_target

SITE_URL = "http://localhost:8000"


def _make_rule(
    from_url: str,
    to_url: str,
    status_code: int = 301,
    preserve_query_params: bool = False,
    active: bool = True,
) -> RedirectRule:
    """Build a rule the way the authoring service would store it."""
    from_canonical = canonicalize_from(from_url)
    return RedirectRule(
        from_canonical=from_canonical,
        fingerprint=fingerprint(from_canonical),
        to_target=normalise_target(to_url),
        status_code=status_code,
        preserve_query_params=preserve_query_params,
        active=active,
    )


@pytest.fixture
def memory_store() -> InMemoryRedirectRuleStore:
    """Fresh in-memory rule store for each test."""
    return InMemoryRedirectRuleStore()


@pytest.fixture
def config() -> RedirectConfig:
    return RedirectConfig(site_url=SITE_URL)


@pytest.fixture
def service(memory_store: InMemoryRedirectRuleStore, config: RedirectConfig) -> RedirectService:
    return RedirectService(store=memory_store, config=config)


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """Migrated SQLite database in a temp directory."""
    path = str(tmp_path / "redirects.db")
    SQLiteMigrator(path).run_migrations()
    return path


@pytest.fixture
def sqlite_store(db_path: str) -> SQLiteRedirectRuleStore:
    return SQLiteRedirectRuleStore(db_path)


@pytest.fixture
def rules_file(tmp_path: Path) -> Path:
    path = tmp_path / "rules.yaml"
    path.write_text(
        "project:\n"
        "  slug: redirector-test\n"
        '  rules_version: "1"\n'
        "redirects:\n"
        f'  site_url: "{SITE_URL}"\n'
        "  default_status_code: 302\n"
        "  allowed_status_codes: [301, 302, 303, 307, 403, 404]\n"
        "  allowed_hosts: []\n"
    )
    return path


@pytest.fixture
def make_rule():
    """Factory for rules stored the way the authoring service stores them."""
    return _make_rule

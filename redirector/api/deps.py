import os
from functools import lru_cache
from pathlib import Path

from fastapi import Depends

from redirector.adapters.sqlite_db import SQLiteRedirectRuleStore
from redirector.components.redirects import (
    RedirectResolver,
    RedirectService,
    create_redirect_resolver,
    create_redirect_service,
)
from redirector.rules.loader import RedirectRulesAdapter, load_rules
from redirector.rules.models import Rules


# --- Settings ---
class Settings:
    def __init__(self) -> None:
        self.data_dir = Path(os.environ.get("REDIRECTS_DATA_DIR", "./data"))
        self.db_path = str(self.data_dir / "redirects.db")
        self.rules_path = Path(os.environ.get("REDIRECTS_RULES_PATH", "rules.yaml"))


@lru_cache
def get_settings() -> Settings:
    return Settings()


# --- Rules ---
@lru_cache
def get_rules() -> Rules:
    return load_rules(get_settings().rules_path)


def get_rules_port(rules: Rules = Depends(get_rules)) -> RedirectRulesAdapter:
    return RedirectRulesAdapter(rules.redirects)


# --- Store ---
def get_rule_store(settings: Settings = Depends(get_settings)) -> SQLiteRedirectRuleStore:
    return SQLiteRedirectRuleStore(settings.db_path)


# --- Component Services ---
def get_redirect_service(
    store: SQLiteRedirectRuleStore = Depends(get_rule_store),
    rules: RedirectRulesAdapter = Depends(get_rules_port),
) -> RedirectService:
    return create_redirect_service(store, rules)


def get_redirect_resolver(
    store: SQLiteRedirectRuleStore = Depends(get_rule_store),
    rules: RedirectRulesAdapter = Depends(get_rules_port),
) -> RedirectResolver:
    return create_redirect_resolver(store, rules)


def default_resolver() -> RedirectResolver:
    """Resolver wired from settings, for use outside dependency injection."""
    settings = get_settings()
    rules = RedirectRulesAdapter(get_rules().redirects)
    return create_redirect_resolver(SQLiteRedirectRuleStore(settings.db_path), rules)

"""
Redirects component - canonical URL redirect rules and resolution.
"""

from ._impl import (
    DEFAULT_CONFIG,
    DecisionTransform,
    PathTransform,
    RedirectConfig,
    RedirectResolver,
    RedirectService,
    config_from_rules,
    create_redirect_resolver,
    create_redirect_service,
    merge_query_params,
    validate_rule_input,
)
from .component import (
    run,
    run_create,
    run_delete,
    run_get,
    run_list,
    run_resolve,
    run_update,
)
from .models import (
    CreateRedirectInput,
    DeleteRedirectInput,
    GetRedirectInput,
    ListRedirectsInput,
    RedirectListOutput,
    RedirectOperationOutput,
    RedirectOutput,
    RedirectValidationError,
    ResolveOutput,
    ResolveRedirectInput,
    UpdateRedirectInput,
)
from .ports import RedirectRuleStorePort, RulesPort

__all__ = [
    # Entry points
    "run",
    "run_create",
    "run_delete",
    "run_get",
    "run_list",
    "run_resolve",
    "run_update",
    # Input models
    "CreateRedirectInput",
    "DeleteRedirectInput",
    "GetRedirectInput",
    "ListRedirectsInput",
    "ResolveRedirectInput",
    "UpdateRedirectInput",
    # Output models
    "RedirectListOutput",
    "RedirectOperationOutput",
    "RedirectOutput",
    "RedirectValidationError",
    "ResolveOutput",
    # Ports
    "RedirectRuleStorePort",
    "RulesPort",
    # Engine
    "DEFAULT_CONFIG",
    "DecisionTransform",
    "PathTransform",
    "RedirectConfig",
    "RedirectResolver",
    "RedirectService",
    "config_from_rules",
    "create_redirect_resolver",
    "create_redirect_service",
    "merge_query_params",
    "validate_rule_input",
]

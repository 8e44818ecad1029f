import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from redirector.rules.models import RedirectRules, Rules

# Rules may live in a ```yaml block of a markdown file.
_YAML_FENCE = re.compile(r"^\s*```yaml[^\n]*\n(.*?)(?:^\s*```|\Z)", re.MULTILINE | re.DOTALL)


def _extract_yaml(text: str) -> str:
    match = _YAML_FENCE.search(text)
    return match.group(1) if match else text


def load_rules(path: Path) -> Rules:
    """Parse and validate a rules file.

    Raises FileNotFoundError when the file is absent and ValueError when the
    YAML is malformed or does not match the schema.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    try:
        data = yaml.safe_load(_extract_yaml(path.read_text(encoding="utf-8")))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    try:
        return Rules.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e


class RedirectRulesAdapter:
    """Exposes the ``redirects`` rules section through RulesPort."""

    def __init__(self, rules: RedirectRules) -> None:
        self._rules = rules

    def get_site_url(self) -> str:
        return self._rules.site_url

    def get_default_status_code(self) -> int:
        return self._rules.default_status_code

    def get_allowed_status_codes(self) -> list[int]:
        return list(self._rules.allowed_status_codes)

    def get_allowed_hosts(self) -> list[str]:
        return list(self._rules.allowed_hosts)

    def get_marker_header(self) -> tuple[str, str]:
        return self._rules.marker_header, self._rules.marker_value

    def get_fallback_to_path_match(self) -> bool:
        return self._rules.fallback_to_path_match

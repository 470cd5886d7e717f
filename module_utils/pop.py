# module_utils/pop.py
#
# Point-of-presence (pop) resolution shared by the `pop` lookup and filter.
#
# The pop denotes the location of a host. This is useful when dealing with
# multiple sites as well as with pre-production. Hostnames follow the form:
#
#   hostname.pop.yourdomain.tld
#
# Resolution order:
#   1) second label of the fqdn, if it is in the allow-list
#   2) the manually supplied `pop` variable (raw)
#   3) default, whenever the value from 1) or 2) is not in the allow-list

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Optional, Tuple

from ansible.errors import AnsibleError
from jinja2 import Undefined

VALID_POPS = ("dfw1", "lab0", "sea0")
DEFAULT_POP = "broken"

FQDN_VAR = "fqdn"
POP_VAR = "pop"

# Inventory-level overrides for the built-in constants
VALID_CONF_VAR = "POP_VALID"
DEFAULT_CONF_VAR = "POP_DEFAULT"

SOURCE_FQDN = "fqdn"
SOURCE_POP = "pop"
SOURCE_DEFAULT = "default"

Lookup = Callable[[str], Optional[Any]]


def is_undefined(value: Any) -> bool:
    """True for missing values: None and Jinja2/Ansible undefined objects."""
    return value is None or isinstance(value, Undefined)


def looks_like_template(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return ("{{" in value) or ("{%" in value) or ("{#" in value)


def fqdn_segment(fqdn: Any) -> Optional[str]:
    """Return the pop label (index 1) of a dotted hostname, or None."""
    if not isinstance(fqdn, str):
        return None
    labels = fqdn.split(".")
    if len(labels) < 2:
        return None
    return labels[1]


def _normalize_valid(valid: Any) -> frozenset:
    if isinstance(valid, str):
        items: Iterable[Any] = [v.strip() for v in valid.split(",")]
    elif isinstance(valid, (list, tuple, set, frozenset)):
        items = valid
    else:
        raise AnsibleError(
            f"allow-list must be a list or comma-separated string, got {type(valid).__name__}"
        )

    out = set()
    for item in items:
        if not isinstance(item, str) or not item:
            raise AnsibleError(f"invalid allow-list entry {item!r}")
        out.add(item)

    if not out:
        raise AnsibleError("allow-list must not be empty")
    return frozenset(out)


@dataclass(frozen=True)
class PopResolver:
    valid: frozenset = frozenset(VALID_POPS)
    default: str = DEFAULT_POP

    @classmethod
    def from_options(cls, valid: Any = None, default: Any = None) -> "PopResolver":
        """
        Build a resolver from user supplied options. None keeps the built-in
        value. Raises AnsibleError on unusable configuration.
        """
        if valid is None:
            valid_set = frozenset(VALID_POPS)
        else:
            valid_set = _normalize_valid(valid)

        if default is None:
            default = DEFAULT_POP
        if not isinstance(default, str) or not default.strip():
            raise AnsibleError(
                f"default must be a non-empty string, got {default!r}"
            )

        return cls(valid=valid_set, default=default)

    def is_valid(self, value: Any) -> bool:
        return isinstance(value, str) and value in self.valid

    def resolve_with_source(self, lookup: Lookup) -> Tuple[str, str]:
        """
        Resolve the pop and report which step produced it
        (SOURCE_FQDN, SOURCE_POP or SOURCE_DEFAULT).
        """
        pop = None
        source = SOURCE_DEFAULT

        fqdn = lookup(FQDN_VAR)
        if not is_undefined(fqdn):
            pop = fqdn_segment(fqdn)
            if not self.is_valid(pop):
                pop = None
            else:
                source = SOURCE_FQDN

        if pop is None:
            pop_fact = lookup(POP_VAR)
            if not is_undefined(pop_fact):
                # Accepted raw here; validated below with everything else.
                pop = pop_fact
                source = SOURCE_POP

        if pop is None or not self.is_valid(pop):
            return self.default, SOURCE_DEFAULT
        return pop, source

    def resolve(self, lookup: Lookup) -> str:
        return self.resolve_with_source(lookup)[0]


def _facts_fqdn(variables: Mapping[str, Any]) -> Any:
    facts = variables.get("ansible_facts")
    if isinstance(facts, Mapping):
        value = facts.get("fqdn")
        if not is_undefined(value):
            return value
    return variables.get("ansible_fqdn")


def variables_lookup(
    variables: Optional[Mapping[str, Any]],
    render: Optional[Callable[[str], Any]] = None,
    on_unrendered: Optional[Callable[[str, Any, Optional[Exception]], None]] = None,
) -> Lookup:
    """
    Adapt an Ansible variables mapping to the lookup capability used by
    PopResolver.

    `fqdn` falls back to the gathered facts when the variable is not set.
    Values still carrying Jinja2 markers are passed through `render`; values
    that cannot be rendered count as undefined and are reported through
    `on_unrendered(name, raw, exc)`.
    """
    variables = variables or {}

    def lookup(name: str) -> Optional[Any]:
        value = variables.get(name)
        if name == FQDN_VAR and is_undefined(value):
            value = _facts_fqdn(variables)
        if is_undefined(value):
            return None

        if looks_like_template(value):
            raw = value
            if render is None:
                if on_unrendered is not None:
                    on_unrendered(name, raw, None)
                return None
            try:
                value = render(raw)
            except Exception as exc:
                if on_unrendered is not None:
                    on_unrendered(name, raw, exc)
                return None
            if is_undefined(value) or looks_like_template(value):
                if on_unrendered is not None:
                    on_unrendered(name, raw, None)
                return None

        return value

    return lookup


OPTIONS = ("valid", "default")


def _render_config(name: str, value: Any, render: Optional[Callable[[str], Any]]) -> Any:
    if not looks_like_template(value):
        return value
    if render is None:
        raise AnsibleError(f"unresolved template for '{name}': {value}")

    try:
        rendered = render(value)
    except Exception as exc:
        raise AnsibleError(
            f"failed to render template for '{name}': {value}"
        ) from exc

    if looks_like_template(rendered):
        raise AnsibleError(f"unresolved template for '{name}': {value}")
    if is_undefined(rendered):
        return None
    return rendered


def resolver_for(
    variables: Optional[Mapping[str, Any]],
    options: Optional[Mapping[str, Any]] = None,
    render: Optional[Callable[[str], Any]] = None,
) -> PopResolver:
    """
    Resolver honouring `options` (valid/default) first, then POP_VALID and
    POP_DEFAULT from the variable context, then the built-in constants.
    Templated configuration variables are passed through `render`.
    """
    variables = variables or {}
    options = options or {}

    unknown = sorted(k for k in options if k not in OPTIONS)
    if unknown:
        raise AnsibleError(
            f"unknown option(s) {unknown}, supported: {list(OPTIONS)}"
        )

    valid = options.get("valid")
    if valid is None and not is_undefined(variables.get(VALID_CONF_VAR)):
        valid = _render_config(VALID_CONF_VAR, variables.get(VALID_CONF_VAR), render)

    default = options.get("default")
    if default is None and not is_undefined(variables.get(DEFAULT_CONF_VAR)):
        default = _render_config(DEFAULT_CONF_VAR, variables.get(DEFAULT_CONF_VAR), render)

    if valid is None and default is None:
        return DEFAULT_RESOLVER
    return PopResolver.from_options(valid=valid, default=default)


DEFAULT_RESOLVER = PopResolver()

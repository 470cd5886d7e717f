# lookup_plugins/pop.py
#
# Ansible lookup plugin returning the point-of-presence (pop) of the current host.
#
# Examples:
#   lookup('pop')                                   -> dfw1   (fqdn host1.dfw1.example.com)
#   lookup('pop')                                   -> sea0   (no fqdn, pop: sea0)
#   lookup('pop')                                   -> broken (nothing valid found)
#   lookup('pop', valid=['ams1', 'lab0'], default='unknown')
#
# Reads:
#   - fqdn (falls back to ansible_facts.fqdn / ansible_fqdn)
#   - pop  (manual override, e.g. from host_vars)
#   - POP_VALID / POP_DEFAULT (optional, overridden by keyword arguments)

from __future__ import annotations

from typing import Any, Dict, Optional

from ansible.errors import AnsibleError
from ansible.plugins.lookup import LookupBase
from ansible.utils.display import Display

from module_utils.pop import SOURCE_DEFAULT, resolver_for, variables_lookup

display = Display()


def _make_render(templar):
    if templar is None:
        return None

    def render(value: str):
        try:
            return templar.template(value, disable_lookups=False)
        except TypeError:
            # Unit tests can inject a minimal templar without Ansible's full signature.
            return templar.template(value)

    return render


def _report_unrendered(name: str, raw: Any, exc: Optional[Exception]) -> None:
    reason = f": {exc}" if exc is not None else ""
    display.vvv(f"pop lookup: treating '{name}' as undefined, unresolved template {raw!r}{reason}")


class LookupModule(LookupBase):
    """
    Usage:
      {{ lookup('pop') }}
      {{ lookup('pop', valid='dfw1,sea0', default='broken') }}

    Returns:
      - [pop] where pop is in the allow-list or equals the default
    """

    def run(self, terms, variables: Optional[Dict[str, Any]] = None, **kwargs):
        if terms:
            raise AnsibleError(
                f"pop lookup: takes no terms, got {list(terms)!r}"
            )

        variables = variables or {}
        render = _make_render(getattr(self, "_templar", None))

        try:
            resolver = resolver_for(variables, options=kwargs, render=render)
        except AnsibleError as exc:
            raise AnsibleError(f"pop lookup: {exc}") from exc

        lookup = variables_lookup(
            variables,
            render=render,
            on_unrendered=_report_unrendered,
        )
        pop, source = resolver.resolve_with_source(lookup)

        if source == SOURCE_DEFAULT:
            display.vvv(
                f"pop lookup: no valid pop found, using default '{pop}'"
            )
        else:
            display.vvv(f"pop lookup: resolved '{pop}' from {source}")

        return [pop]

# filter_plugins/pop.py
#
# Explicit-argument variant of lookup('pop'):
#
#   {{ ansible_fqdn | pop }}
#   {{ ansible_fqdn | pop(pop | default(none)) }}
#   {{ inventory_hostname | pop(valid=['ams1', 'lab0'], default='unknown') }}

from __future__ import annotations

from typing import Any

from ansible.errors import AnsibleError, AnsibleFilterError
from ansible.utils.display import Display

from module_utils.pop import FQDN_VAR, POP_VAR, PopResolver, is_undefined

display = Display()


def pop(fqdn: Any, pop_fact: Any = None, valid: Any = None, default: Any = None) -> str:
    """
    Return the pop of `fqdn`, falling back to `pop_fact` and then to the default.
    """
    try:
        resolver = PopResolver.from_options(valid=valid, default=default)
    except AnsibleError as exc:
        raise AnsibleFilterError(f"pop filter: {exc}") from exc

    values = {
        FQDN_VAR: None if is_undefined(fqdn) else fqdn,
        POP_VAR: None if is_undefined(pop_fact) else pop_fact,
    }
    result, source = resolver.resolve_with_source(values.get)
    display.vvv(f"pop filter: {values[FQDN_VAR]!r} -> '{result}' ({source})")
    return result


class FilterModule(object):
    def filters(self):
        return {
            "pop": pop,
        }

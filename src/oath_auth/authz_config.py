"""
Authz configuration helpers.

Role-to-group mapping is configured in role_groups (each role maps to a set of
authentik group names, as delivered in the `groups` claim of the profile scope).
Role inheritance is configured in role_inherits (a role can imply other roles).
"""

from typing import Iterable, Mapping, Set


def compute_roles(
    member_groups: Iterable[str],
    role_groups: Mapping[str, Iterable[str]],
    role_inherits: Mapping[str, Iterable[str]],
) -> Set[str]:
    """
    Compute roles for a user from the groups in their claims.

    A role is granted when any of its configured groups is among member_groups
    (case-insensitive), then expanded with role_inherits so implied roles are included.
    """
    member = {group.lower() for group in member_groups if group}
    roles = {
        role
        for role, groups in role_groups.items()
        if member & {group.lower() for group in groups if group}
    }

    # no cycles assumed, but the visited set keeps a cycle from looping
    expanded = set(roles)
    stack = list(roles)
    while stack:
        for implied in role_inherits.get(stack.pop(), ()):
            if implied not in expanded:
                expanded.add(implied)
                stack.append(implied)
    return expanded

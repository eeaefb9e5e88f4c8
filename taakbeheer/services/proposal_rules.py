"""Pure decision rules for delegation and alias-change proposals."""

from collections.abc import Iterable

from taakbeheer.core.errors import ConflictError
from taakbeheer.core.tree import alias_sets_equal, unique_sorted_aliases
from taakbeheer.domain.proposal import ProposalStatus
from taakbeheer.domain.user import UserRole


def can_actor_decide_proposal(
    *,
    proposer_alias: str,
    proposed_alias: str,
    actor_alias: str,
    effective_coordinator_aliases: Iterable[str],
) -> bool:
    """Self-registrations are decided by the governing coordinators, nominations by the nominee."""
    if proposer_alias == proposed_alias:
        return actor_alias in set(effective_coordinator_aliases)
    return actor_alias == proposed_alias


def coordinator_aliases_after_accept(*, proposed_alias: str, current_own_aliases: Iterable[str]) -> list[str]:
    """Acceptance adds the proposed alias to the own set; it never replaces it."""
    return unique_sorted_aliases([*current_own_aliases, proposed_alias])


def own_coordinator_aliases_after_release(
    *,
    actor_alias: str,
    current_effective_aliases: Iterable[str],
    parent_effective_aliases: Iterable[str],
) -> list[str]:
    """Compute the own coordinator set stored after `actor_alias` lets go of a task.

    An empty result means the task inherits from its parent again.

    Raises:
        ConflictError: If the parent is coordinated only by the actor
    """
    parent_effective = unique_sorted_aliases(parent_effective_aliases)
    next_effective = unique_sorted_aliases(a for a in current_effective_aliases if a != actor_alias)

    if not next_effective:
        parent_without_actor = [a for a in parent_effective if a != actor_alias]
        if parent_without_actor:
            return parent_without_actor
        if actor_alias in parent_effective:
            msg = "Cannot release this task: the parent task only has you as coordinator"
            raise ConflictError(msg)
        return []

    if alias_sets_equal(next_effective, parent_effective):
        return []
    return next_effective


def is_proposal_relevant(
    *,
    status: ProposalStatus,
    proposer_alias: str,
    proposed_alias: str | None,
    actor_alias: str,
    can_decide: bool,
    effective_coordinator_aliases: Iterable[str],
) -> bool:
    """Listing read-model: who gets to see a proposal. Not an authorization check."""
    if status == ProposalStatus.AFGEWEZEN:
        return actor_alias == proposer_alias
    return (
        can_decide
        or actor_alias in (proposer_alias, proposed_alias)
        or actor_alias in set(effective_coordinator_aliases)
    )


def can_decide_alias_change(*, actor_alias: str, actor_role: UserRole, requester_alias: str) -> bool:
    """Only board members decide alias changes, and never their own."""
    return actor_role == UserRole.BESTUUR and actor_alias != requester_alias

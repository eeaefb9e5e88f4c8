"""Governance proposal models: task delegation and alias changes."""

from enum import StrEnum

from pydantic import BaseModel, Field


class ProposalStatus(StrEnum):
    """Persisted proposal status.

    Accepted and acknowledged proposals are deleted, so they have no stored status.
    """

    OPEN = "OPEN"
    AFGEWEZEN = "AFGEWEZEN"


class OpenTask(BaseModel):
    """Task delegation proposal."""

    id: str = Field(..., description="Unique proposal ID")
    task_id: str = Field(..., description="Task the proposal is about")
    proposer_alias: str = Field(..., description="Alias of whoever created the proposal")
    proposed_alias: str | None = Field(
        default=None,
        description="Proposed coordinator; equal to proposer for self-registration, None when still undecided",
    )
    status: ProposalStatus = Field(default=ProposalStatus.OPEN, description="Proposal status")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")

    @property
    def is_self_registration(self) -> bool:
        return self.proposed_alias is not None and self.proposer_alias == self.proposed_alias


class AliasChangeProposal(BaseModel):
    """Request to rename an actor's own alias, decided by the board."""

    id: str = Field(..., description="Unique proposal ID")
    requester_alias: str = Field(..., description="Alias of the requesting user")
    current_alias: str = Field(..., description="Alias at the time of the request")
    requested_alias: str = Field(..., description="Alias the requester wants")
    status: ProposalStatus = Field(default=ProposalStatus.OPEN, description="Proposal status")
    created_at: str = Field(..., description="Creation timestamp (ISO format)")

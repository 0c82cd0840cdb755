"""Post-hoc reporting over finalized votes."""

from collections import defaultdict
from dataclasses import dataclass
from uuid import UUID

from phenotype_live.domain.stats import ConsensusRow, DivergenceRow
from phenotype_live.domain.votes import VoteRecord, VoteResponse
from phenotype_live.services.aggregator import VoteReader, consensus, tally_votes
from phenotype_live.services.sessions import SessionService


@dataclass
class ReportService:
    """Consensus and divergence figures for admin dashboards."""

    session_service: SessionService
    vote_repository: VoteReader

    def consensus_by_photo(self, session_id: UUID) -> list[ConsensusRow]:
        """Return agreement figures for every photo that received votes."""
        self.session_service.get_session(session_id)
        rows = []
        for photo, votes in sorted(self._votes_by_photo(session_id).items()):
            tally = tally_votes(votes, photo=photo)
            counts = tally.counts
            rows.append(
                ConsensusRow(
                    photo=photo,
                    deferido=counts[VoteResponse.DEFERIDO],
                    indeferido=counts[VoteResponse.INDEFERIDO],
                    not_answered=counts[VoteResponse.NOT_ANSWERED],
                    total=tally.total,
                    consensus=consensus(counts),
                    majority=_majority(counts),
                )
            )
        return rows

    def divergences(self, session_id: UUID) -> list[DivergenceRow]:
        """Return photos where the admin answer differs from the majority."""
        self.session_service.get_session(session_id)
        rows = []
        for photo, votes in sorted(self._votes_by_photo(session_id).items()):
            tally = tally_votes(votes, photo=photo)
            deferido = tally.counts[VoteResponse.DEFERIDO]
            indeferido = tally.counts[VoteResponse.INDEFERIDO]
            if tally.admin_response is None or deferido + indeferido == 0:
                continue
            majority = (
                VoteResponse.DEFERIDO
                if deferido > indeferido
                else VoteResponse.INDEFERIDO
            )
            if tally.admin_response == majority:
                continue
            rows.append(
                DivergenceRow(
                    photo=photo,
                    admin_response=tally.admin_response,
                    majority_response=majority,
                    majority_count=max(deferido, indeferido),
                    deferido=deferido,
                    indeferido=indeferido,
                    total_votes=tally.total,
                )
            )
        return rows

    def _votes_by_photo(self, session_id: UUID) -> dict[int, list[VoteRecord]]:
        # Only the latest run of each photo counts; older generations are
        # leftovers from restarts.
        grouped: dict[int, list[VoteRecord]] = defaultdict(list)
        for vote in self.vote_repository.list_votes(session_id):
            grouped[vote.photo].append(vote)
        latest = {}
        for photo, votes in grouped.items():
            generation = max(vote.generation for vote in votes)
            latest[photo] = [vote for vote in votes if vote.generation == generation]
        return latest


def _majority(counts: dict[VoteResponse, int]) -> VoteResponse | None:
    deferido = counts[VoteResponse.DEFERIDO]
    indeferido = counts[VoteResponse.INDEFERIDO]
    if deferido == indeferido:
        return None
    return VoteResponse.DEFERIDO if deferido > indeferido else VoteResponse.INDEFERIDO


def serialize_consensus(row: ConsensusRow) -> dict[str, object]:
    return {
        "photo": row.photo,
        "deferido": row.deferido,
        "indeferido": row.indeferido,
        "not_answered": row.not_answered,
        "total": row.total,
        "consensus": round(row.consensus, 1),
        "majority": row.majority.value if row.majority else None,
        "low_consensus": row.is_low_consensus,
    }


def serialize_divergence(row: DivergenceRow) -> dict[str, object]:
    return {
        "photo": row.photo,
        "admin_response": row.admin_response.value,
        "majority_response": row.majority_response.value,
        "majority_count": row.majority_count,
        "deferido": row.deferido,
        "indeferido": row.indeferido,
        "total_votes": row.total_votes,
    }

"""Supabase-backed vote repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from phenotype_live.adapters.supabase_errors import execute
from phenotype_live.domain.errors import PersistenceError
from phenotype_live.domain.votes import (
    DemographicSnapshot,
    NewVote,
    VoteRecord,
    VoteResponse,
)
from phenotype_live.services.sessions import VoteRepository

_COLUMNS = (
    "id, session_id, foto_id, user_id, resposta, tempo_gasto, genero, "
    "faixa_etaria, regiao, is_admin_vote, generation, created_at"
)

# Stored answers use the labels the reporting tools already read.
_STORED_RESPONSES = {
    VoteResponse.DEFERIDO: "DEFERIDO",
    VoteResponse.INDEFERIDO: "INDEFERIDO",
    VoteResponse.NOT_ANSWERED: "NÃO_RESPONDIDO",
}
_PARSED_RESPONSES = {value: key for key, value in _STORED_RESPONSES.items()}


@dataclass
class SupabaseVoteRepository(VoteRepository):
    """Supabase implementation for vote records (table ``avaliacoes``)."""

    client: Client

    def insert_vote(self, vote: NewVote) -> VoteRecord:
        """Insert a vote; the unique index rejects repeated identities."""
        response = execute(
            self.client.table("avaliacoes").insert(
                {
                    "session_id": str(vote.session_id),
                    "foto_id": vote.photo,
                    "user_id": str(vote.identity),
                    "resposta": _STORED_RESPONSES[vote.response],
                    "tempo_gasto": vote.elapsed_ms,
                    "genero": vote.demographics.gender,
                    "faixa_etaria": vote.demographics.age_bracket,
                    "regiao": vote.demographics.region,
                    "is_admin_vote": vote.is_admin_vote,
                    "generation": vote.generation,
                }
            ),
            "save vote",
        )
        if not response.data:
            raise PersistenceError("Failed to save vote")
        return _parse_row(response.data[0])

    def list_votes(
        self, session_id: UUID, photo: int | None = None, generation: int | None = None
    ) -> list[VoteRecord]:
        """Return votes for a session ordered by creation time."""
        query = (
            self.client.table("avaliacoes")
            .select(_COLUMNS)
            .eq("session_id", str(session_id))
        )
        if photo is not None:
            query = query.eq("foto_id", photo)
        if generation is not None:
            query = query.eq("generation", generation)
        response = execute(query.order("created_at", desc=False), "load votes")
        return [_parse_row(row) for row in response.data or []]

    def delete_vote(self, vote_id: UUID) -> None:
        """Delete one vote row."""
        execute(
            self.client.table("avaliacoes").delete().eq("id", str(vote_id)),
            "delete vote",
        )

    def delete_stale_votes(self, session_id: UUID, photo: int, generation: int) -> int:
        """Delete votes on a photo left over from an earlier run."""
        response = execute(
            self.client.table("avaliacoes")
            .delete()
            .eq("session_id", str(session_id))
            .eq("foto_id", photo)
            .neq("generation", generation),
            "delete stale votes",
        )
        return len(response.data or [])

    def delete_admin_vote(
        self, session_id: UUID, photo: int, identity: UUID, generation: int
    ) -> None:
        """Delete the admin's previous answer for a photo run."""
        execute(
            self.client.table("avaliacoes")
            .delete()
            .eq("session_id", str(session_id))
            .eq("foto_id", photo)
            .eq("user_id", str(identity))
            .eq("generation", generation)
            .eq("is_admin_vote", True),
            "replace admin vote",
        )


def _parse_row(row: dict[str, object]) -> VoteRecord:
    created_raw = row.get("created_at")
    return VoteRecord(
        id=UUID(str(row["id"])),
        session_id=UUID(str(row["session_id"])),
        photo=int(row["foto_id"]),
        identity=UUID(str(row["user_id"])),
        response=_PARSED_RESPONSES.get(
            str(row.get("resposta")), VoteResponse.NOT_ANSWERED
        ),
        elapsed_ms=int(row.get("tempo_gasto") or 0),
        demographics=DemographicSnapshot(
            gender=row.get("genero"),
            age_bracket=row.get("faixa_etaria"),
            region=row.get("regiao"),
        ),
        is_admin_vote=bool(row.get("is_admin_vote")),
        generation=int(row.get("generation") or 0),
        created_at=datetime.fromisoformat(created_raw)
        if isinstance(created_raw, str) and created_raw
        else datetime.min,
    )

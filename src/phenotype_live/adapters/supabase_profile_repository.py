"""Supabase read access to participant profiles."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from phenotype_live.adapters.supabase_errors import execute
from phenotype_live.domain.profiles import DemographicProfile
from phenotype_live.services.votes import ProfileRepository


@dataclass
class SupabaseProfileRepository(ProfileRepository):
    """Supabase implementation for profile lookups."""

    client: Client

    def get_profile(self, identity: UUID) -> DemographicProfile | None:
        """Return the demographic profile for a user id."""
        response = execute(
            self.client.table("profiles")
            .select(
                "user_id, genero, faixa_etaria, estado, regiao, "
                "pertencimento_racial, experiencia_bancas"
            )
            .eq("user_id", str(identity))
            .limit(1),
            "load profile",
        )
        if not response.data:
            return None
        row = response.data[0]
        return DemographicProfile(
            identity=UUID(str(row["user_id"])),
            gender=row.get("genero"),
            age_bracket=row.get("faixa_etaria"),
            state=row.get("estado"),
            region=row.get("regiao"),
            racial_identity=row.get("pertencimento_racial"),
            prior_experience=row.get("experiencia_bancas"),
        )

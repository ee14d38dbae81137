from sqlalchemy.orm import Session
from typing import Any, Dict, Optional

from .. import models


class CRUDClientProfile:
    def get_profile(self, db: Session, client_id: str) -> Optional[models.ClientProfile]:
        return (
            db.query(models.ClientProfile)
            .filter(models.ClientProfile.client_id == client_id)
            .first()
        )

    def get_profile_data(self, db: Session, client_id: str) -> Optional[Dict[str, Any]]:
        profile = self.get_profile(db, client_id)
        if profile is None:
            return None
        return dict(profile.data or {})

    def upsert_profile(
        self, db: Session, client_id: str, fields: Dict[str, Any]
    ) -> models.ClientProfile:
        """Merge ``fields`` into the stored document key by key."""
        profile = self.get_profile(db, client_id)
        if profile is None:
            profile = models.ClientProfile(client_id=client_id, data=dict(fields))
            db.add(profile)
        else:
            merged = dict(profile.data or {})
            merged.update(fields)
            # Reassign so the JSON column registers the change
            profile.data = merged
        db.commit()
        db.refresh(profile)
        return profile


client_profile = CRUDClientProfile()

import datetime
import uuid

from delve import db


def _new_id() -> str:
    return uuid.uuid4().hex


class DungeonLayoutRecord(db.Model):
    """A generated layout stored as an opaque JSON document."""

    __tablename__ = "dungeon_layouts"
    id = db.Column(db.String(32), primary_key=True, default=_new_id)
    seed = db.Column(db.BigInteger, nullable=False)
    params = db.Column(db.JSON, nullable=False, default=dict)
    layout = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.datetime.now(datetime.timezone.utc))

    def to_dict(self) -> dict:
        return {"id": self.id, "seed": self.seed, "params": self.params, "layout": self.layout}

    def __repr__(self):
        return f"<DungeonLayoutRecord {self.id} seed={self.seed}>"

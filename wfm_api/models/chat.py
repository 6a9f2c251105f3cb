from datetime import datetime

from wfm_api.extensions import db

ROOM_TYPES = ("direct", "group", "channel")


class ChatRoom(db.Model):
    __tablename__ = "chat_rooms"

    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(
        db.Integer, db.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = db.Column(db.String(20), nullable=False)
    name = db.Column(db.String(255))
    description = db.Column(db.Text)
    is_private = db.Column(db.Boolean, nullable=False, default=False)
    created_by = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    participants = db.relationship(
        "ChatParticipant", back_populates="room", cascade="all, delete-orphan", lazy="selectin"
    )


class ChatParticipant(db.Model):
    __tablename__ = "chat_participants"

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    role = db.Column(db.String(20), nullable=False, default="member")
    joined_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    last_read_at = db.Column(db.DateTime)
    is_muted = db.Column(db.Boolean, nullable=False, default=False)

    __table_args__ = (
        db.UniqueConstraint("room_id", "user_id", name="uq_chat_participant_room_user"),
    )

    room = db.relationship("ChatRoom", back_populates="participants")
    user = db.relationship("Profile")


class ChatMessage(db.Model):
    __tablename__ = "chat_messages"

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("profiles.id", ondelete="SET NULL"))
    content = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False, default="text")
    reply_to_id = db.Column(db.Integer, db.ForeignKey("chat_messages.id", ondelete="SET NULL"))
    # "metadata" is reserved on declarative models
    extra = db.Column("metadata", db.JSON)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sender = db.relationship("Profile")

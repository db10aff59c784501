import datetime
import uuid
from typing import List, Dict, Any, Optional, Iterable
from sqlalchemy import create_engine, Column, String, Text, Integer, DateTime, ForeignKey
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker, relationship
from sqlalchemy.pool import StaticPool

from reportai.errors import InvalidInput, NotFound

MESSAGE_ROLES = ("user", "bot", "system")
CONVERSATION_TYPES = ("single", "compare")
CONTEXT_FIELDS = ("document_text", "left_text", "right_text", "differences_text")

# Engine & base (bound by init_db)
engine = None
Base = declarative_base()
SessionLocal = sessionmaker(autocommit=False, autoflush=False)

# --- Models ---
class User(Base):
    __tablename__ = 'users'
    user_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False, unique=True, index=True)
    password = Column(String, nullable=False)  # bcrypt hash
    created_at = Column(DateTime, default=datetime.datetime.now)
    last_login = Column(DateTime, default=datetime.datetime.now)
    conversations = relationship("Conversation", back_populates="user")

class Conversation(Base):
    __tablename__ = 'conversations'
    conversation_id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey('users.user_id'), index=True, nullable=False)
    title = Column(String, nullable=False)
    type = Column(String, nullable=False, default="single")
    # context: either document_text, or left/right/differences for comparisons
    document_text = Column(Text, nullable=True)
    left_text = Column(Text, nullable=True)
    right_text = Column(Text, nullable=True)
    differences_text = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.now)
    updated_at = Column(DateTime, default=datetime.datetime.now)
    user = relationship("User", back_populates="conversations")
    messages = relationship(
        "Message", back_populates="conversation",
        order_by="Message.message_id", cascade="all, delete-orphan"
    )

class Message(Base):
    __tablename__ = 'messages'
    message_id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(String, ForeignKey('conversations.conversation_id'), index=True)
    role = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.now)
    conversation = relationship("Conversation", back_populates="messages")

# --- Database helper functions ---
def init_db(database_url: str):
    """Bind the session factory to ``database_url`` and create tables."""
    global engine
    kwargs: Dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
    engine = create_engine(database_url, **kwargs)
    SessionLocal.configure(bind=engine)
    Base.metadata.create_all(bind=engine)
    return engine

def _user_dict(user: User, with_password: bool = False) -> Dict[str, Any]:
    data = {
        "id": user.user_id,
        "name": user.name,
        "email": user.email,
        "created_at": user.created_at,
        "last_login": user.last_login,
    }
    if with_password:
        data["password"] = user.password
    return data

def _message_dict(message: Message) -> Dict[str, Any]:
    return {"role": message.role, "content": message.content, "created_at": message.created_at}

def _check_messages(messages: Iterable[Dict[str, str]]) -> List[Dict[str, str]]:
    checked = []
    for m in messages:
        role, content = m.get("role"), m.get("content")
        if role not in MESSAGE_ROLES or not content:
            raise InvalidInput("Each message needs a role (user, bot, system) and content")
        checked.append({"role": role, "content": content})
    return checked

def create_user(name: str, email: str, password_hash: str) -> Dict[str, Any]:
    """Add a new user; the email is stored trimmed and lower-cased."""
    db = SessionLocal()
    try:
        user = User(
            user_id=str(uuid.uuid4()),
            name=name.strip(),
            email=email.strip().lower(),
            password=password_hash,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            raise InvalidInput("User with this email already exists")
        db.refresh(user)
        return _user_dict(user)
    finally:
        db.close()

def get_user_by_email(email: str) -> Optional[Dict[str, Any]]:
    """Return the user (including password hash) or None."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.email == email.strip().lower()).first()
        return _user_dict(user, with_password=True) if user else None
    finally:
        db.close()

def get_user(user_id: str) -> Optional[Dict[str, Any]]:
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.user_id == user_id).first()
        return _user_dict(user) if user else None
    finally:
        db.close()

def update_last_login(user_id: str):
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.user_id == user_id).first()
        if user:
            user.last_login = datetime.datetime.now()
            db.commit()
    finally:
        db.close()

def create_conversation(
    user_id: str,
    title: str,
    type: str = "single",
    context: Optional[Dict[str, str]] = None,
    initial_messages: Iterable[Dict[str, str]] = (),
) -> str:
    """Persist a conversation with its context and seed messages; return its id."""
    if not title:
        raise InvalidInput("title is required")
    if type not in CONVERSATION_TYPES:
        raise InvalidInput("type must be 'single' or 'compare'")
    seed = _check_messages(initial_messages)
    context = context or {}

    db = SessionLocal()
    try:
        convo = Conversation(
            conversation_id=str(uuid.uuid4()),
            user_id=user_id,
            title=title,
            type=type,
            **{field: context.get(field) for field in CONTEXT_FIELDS},
        )
        convo.messages = [Message(role=m["role"], content=m["content"]) for m in seed]
        db.add(convo)
        db.commit()
        return convo.conversation_id
    finally:
        db.close()

def list_conversations(user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
    """Conversation summaries for a user, most recently updated first."""
    db = SessionLocal()
    try:
        convos = (
            db.query(Conversation)
            .filter(Conversation.user_id == user_id)
            .order_by(Conversation.updated_at.desc())
            .limit(limit)
            .all()
        )
        return [
            {
                "id": c.conversation_id,
                "title": c.title,
                "type": c.type,
                "created_at": c.created_at,
                "updated_at": c.updated_at,
            }
            for c in convos
        ]
    finally:
        db.close()

def _owned_conversation(db, conversation_id: str, user_id: str) -> Conversation:
    convo = (
        db.query(Conversation)
        .filter(Conversation.conversation_id == conversation_id, Conversation.user_id == user_id)
        .first()
    )
    if convo is None:
        raise NotFound("Conversation not found")
    return convo

def get_conversation(conversation_id: str, user_id: str) -> Dict[str, Any]:
    """Full conversation with messages in insertion order."""
    db = SessionLocal()
    try:
        convo = _owned_conversation(db, conversation_id, user_id)
        return {
            "id": convo.conversation_id,
            "title": convo.title,
            "type": convo.type,
            "context": {field: getattr(convo, field) for field in CONTEXT_FIELDS},
            "messages": [_message_dict(m) for m in convo.messages],
            "created_at": convo.created_at,
            "updated_at": convo.updated_at,
        }
    finally:
        db.close()

def append_messages(conversation_id: str, user_id: str, messages: Iterable[Dict[str, str]]) -> int:
    """Append messages in call order; existing messages are left untouched.

    Returns the new message count.
    """
    new_messages = _check_messages(messages)
    if not new_messages:
        raise InvalidInput("role/content or paired messages required")
    db = SessionLocal()
    try:
        convo = _owned_conversation(db, conversation_id, user_id)
        for m in new_messages:
            convo.messages.append(Message(role=m["role"], content=m["content"]))
        convo.updated_at = datetime.datetime.now()
        db.commit()
        return len(convo.messages)
    finally:
        db.close()

def rename_conversation(conversation_id: str, user_id: str, title: str) -> Dict[str, Any]:
    if not title:
        raise InvalidInput("title is required")
    db = SessionLocal()
    try:
        convo = _owned_conversation(db, conversation_id, user_id)
        convo.title = title
        db.commit()
        return {"id": convo.conversation_id, "title": convo.title}
    finally:
        db.close()

"""
app/activitypub/activities.py

Atividades reconhecidas pelo relay.

Entrada: cada tipo de atividade recebida vira uma dataclass própria, e o
conjunto fechado delas é o `InboundActivity`. O dispatcher faz match
exaustivo sobre ele; qualquer coisa que não se encaixe vira `Unsupported`.

Saída: construtores do JSON ActivityStreams das atividades que o relay
envia (Follow, Accept, Reject, Undo).
"""

import enum
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping

AS_CONTEXT = "https://www.w3.org/ns/activitystreams"


class Outcome(enum.Enum):
    """Resultado do processamento de uma atividade recebida."""

    HANDLED = "handled"
    # Atividade válida, mas sem interesse (post sem hashtag, follow inválido...)
    DISCARDED = "discarded"
    UNSUPPORTED = "unsupported"


# ---------------------------------------------------------------------------
# Conteúdo
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Tag:
    kind: str
    name: str
    href: str | None = None


@dataclass(frozen=True)
class Post:
    """Um Note recebido, reduzido ao que o classificador precisa."""

    uri: str
    author: str
    content: str = ""
    in_reply_to: str | None = None
    tags: tuple[Tag, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Atividades recebidas
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FollowRequest:
    id: str
    actor: str
    object: str


@dataclass(frozen=True)
class FollowAccepted:
    id: str
    actor: str
    follow_uri: str


@dataclass(frozen=True)
class FollowRejected:
    id: str
    actor: str
    follow_uri: str


@dataclass(frozen=True)
class FollowUndone:
    id: str
    actor: str
    follow_uri: str


@dataclass(frozen=True)
class NoteCreated:
    id: str
    actor: str
    note: Post


@dataclass(frozen=True)
class NoteDeleted:
    id: str
    actor: str
    object_uri: str


@dataclass(frozen=True)
class NoteLiked:
    id: str
    actor: str
    note_uri: str


@dataclass(frozen=True)
class NoteUnliked:
    id: str
    actor: str
    note_uri: str


@dataclass(frozen=True)
class Unsupported:
    kind: str | None
    id: str | None
    reason: str


InboundActivity = (
    FollowRequest
    | FollowAccepted
    | FollowRejected
    | FollowUndone
    | NoteCreated
    | NoteDeleted
    | NoteLiked
    | NoteUnliked
    | Unsupported
)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _id_of(value: Any) -> str | None:
    """Aceita tanto a referência por URI quanto o objeto embutido."""
    if isinstance(value, str):
        return value
    if isinstance(value, Mapping):
        ref = value.get("id")
        return ref if isinstance(ref, str) else None
    return None


def _type_of(value: Any) -> str | None:
    if isinstance(value, Mapping):
        kind = value.get("type")
        return kind if isinstance(kind, str) else None
    return None


def _parse_tags(raw: Any) -> tuple[Tag, ...]:
    if isinstance(raw, Mapping):
        raw = [raw]
    if not isinstance(raw, list):
        return ()
    tags = []
    for entry in raw:
        if not isinstance(entry, Mapping):
            continue
        tags.append(
            Tag(
                kind=str(entry.get("type") or ""),
                name=str(entry.get("name") or ""),
                href=entry.get("href") if isinstance(entry.get("href"), str) else None,
            )
        )
    return tuple(tags)


def parse_post(data: Mapping[str, Any], default_author: str) -> Post | None:
    uri = _id_of(data)
    if uri is None:
        return None
    content = data.get("content")
    return Post(
        uri=uri,
        author=_id_of(data.get("attributedTo")) or default_author,
        content=content if isinstance(content, str) else "",
        in_reply_to=_id_of(data.get("inReplyTo")),
        tags=_parse_tags(data.get("tag")),
    )


def parse_activity(data: Mapping[str, Any]) -> InboundActivity:
    """Converte o JSON de uma atividade já verificada na variante correspondente."""
    kind = _type_of(data)
    activity_id = _id_of(data)
    actor = _id_of(data.get("actor"))
    obj = data.get("object")

    if kind is None or activity_id is None or actor is None:
        return Unsupported(kind, activity_id, "missing type, id or actor")

    object_id = _id_of(obj)
    object_kind = _type_of(obj)

    match kind:
        case "Follow" if object_id is not None:
            return FollowRequest(id=activity_id, actor=actor, object=object_id)
        case "Accept" | "Reject" if object_id is not None and object_kind in (None, "Follow"):
            variant = FollowAccepted if kind == "Accept" else FollowRejected
            return variant(id=activity_id, actor=actor, follow_uri=object_id)
        case "Undo" if object_kind == "Follow" and object_id is not None:
            return FollowUndone(id=activity_id, actor=actor, follow_uri=object_id)
        case "Undo" if object_kind == "Like":
            note_uri = _id_of(obj.get("object"))
            if note_uri is not None:
                return NoteUnliked(id=activity_id, actor=actor, note_uri=note_uri)
        case "Create" if object_kind == "Note":
            post = parse_post(obj, default_author=actor)
            if post is not None:
                return NoteCreated(id=activity_id, actor=actor, note=post)
        case "Delete" if object_id is not None:
            return NoteDeleted(id=activity_id, actor=actor, object_uri=object_id)
        case "Like" if object_id is not None:
            return NoteLiked(id=activity_id, actor=actor, note_uri=object_id)

    return Unsupported(kind, activity_id, f"unsupported {kind} of {object_kind or 'reference'}")


# ---------------------------------------------------------------------------
# Atividades enviadas
# ---------------------------------------------------------------------------


def new_activity_id(domain: str) -> str:
    return f"https://{domain}/activity/{uuid.uuid4()}"


def follow_object(follow_uri: str, actor: str, target: str) -> dict:
    """O Follow como objeto embutido em Accept, Reject e Undo."""
    return {"type": "Follow", "id": follow_uri, "actor": actor, "object": target}


def follow_activity(follow_uri: str, actor: str, target: str) -> dict:
    return {"@context": AS_CONTEXT, **follow_object(follow_uri, actor, target)}


def _wrap(kind: str, activity_id: str, actor: str, obj: dict) -> dict:
    return {
        "@context": AS_CONTEXT,
        "type": kind,
        "id": activity_id,
        "actor": actor,
        "object": obj,
    }


def accept_activity(activity_id: str, actor: str, follow: dict) -> dict:
    return _wrap("Accept", activity_id, actor, follow)


def reject_activity(activity_id: str, actor: str, follow: dict) -> dict:
    return _wrap("Reject", activity_id, actor, follow)


def undo_activity(activity_id: str, actor: str, follow: dict) -> dict:
    return _wrap("Undo", activity_id, actor, follow)

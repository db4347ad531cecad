from apkit.models import Person, CryptographicKey
from app.config import settings
from app.activitypub.keys import load_public_key_pem


def local_actor_url() -> str:
    return f"https://{settings.domain}/users/{settings.username}"


def build_actor(public_key_pem: str | None = None) -> Person:
    actor_url = local_actor_url()

    return Person(
        id=actor_url,
        name=settings.display_name,
        preferredUsername=settings.username,
        summary=settings.summary,
        inbox=f"{actor_url}/inbox",
        outbox=f"{actor_url}/outbox",
        followers=f"{actor_url}/followers",
        publicKey=CryptographicKey(
            id=f"{actor_url}#main-key",
            owner=actor_url,
            publicKeyPem=public_key_pem or load_public_key_pem(),
        ),
        manuallyApprovesFollowers=False,
    )

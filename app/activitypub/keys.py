"""
app/activitypub/keys.py

Chave RSA da conta local.

Só a chave privada fica em disco (PRIVATE_KEY_PATH); a pública é sempre
derivada dela, então as duas nunca divergem.
"""

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from apkit.server.types import ActorKey
from app.config import settings


def load_private_key_pem() -> str:
    with open(settings.private_key_path) as f:
        return f.read()


def load_private_key(pem: str | None = None) -> rsa.RSAPrivateKey:
    data = (pem or load_private_key_pem()).encode()
    return serialization.load_pem_private_key(data, password=None)


def derive_public_key_pem(private_key) -> str:
    return private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


def load_public_key_pem() -> str:
    return derive_public_key_pem(load_private_key())


def key_id() -> str:
    return f"https://{settings.domain}/users/{settings.username}#main-key"


async def get_keys_for_actor(identifier: str) -> list[ActorKey]:
    """
    Callback exigido pelo apkit para assinar atividades de saída.
    Recebe o `identifier` (username na URL) e retorna a(s) chave(s) do actor.
    """
    if identifier == settings.username:
        return [ActorKey(key_id=key_id(), private_key=load_private_key())]
    return []


async def get_local_keys() -> list[ActorKey]:
    """Atalho usado pelo worker de entrega."""
    return await get_keys_for_actor(settings.username)


def generate_private_key_pem() -> str:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()

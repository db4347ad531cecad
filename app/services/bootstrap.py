"""
app/services/bootstrap.py

Garante que a conta local existe antes de o servidor aceitar atividades.
"""

import logging

from app.activitypub.actor import local_actor_url
from app.activitypub.keys import derive_public_key_pem, load_private_key, load_private_key_pem
from app.config import settings
from app.errors import AlreadyExists
from app.storage.base import Storage
from app.storage.types import Account, ActorDescriptor

log = logging.getLogger(__name__)


async def ensure_local_account(storage: Storage) -> Account:
    """
    Cria a conta local a partir das configurações e da chave em disco.

    Uma conta remota com a mesma URI (vista antes de a instância ser
    configurada) é substituída; uma conta local existente é mantida.
    """
    uri = local_actor_url()
    existing = await storage.account_by_uri(uri)
    if existing is not None:
        if existing.local:
            return existing
        log.warning(f"Conta remota {uri} ocupa a URI da conta local, substituindo")
        await storage.delete_account_by_uri(uri)

    private_key_pem = load_private_key_pem()
    actor = ActorDescriptor(
        uri=uri,
        username=settings.username,
        inbox=f"{uri}/inbox",
        outbox=f"{uri}/outbox",
        public_key=derive_public_key_pem(load_private_key(private_key_pem)),
    )
    try:
        account = await storage.create_account(actor, private_key=private_key_pem)
    except AlreadyExists:
        # Já existe outra conta local (ex: DOMAIN ou USERNAME mudaram)
        log.error(f"Não foi possível criar a conta local {uri}: já existe outra conta local")
        raise
    log.info(f"Conta local {uri} criada")
    return account

"""
app/errors.py

Hierarquia de exceções do relay.

- StorageError e subclasses: violações de restrição e falhas do backend
- ActivityError e subclasses: atividades inválidas e falhas de transporte

AlreadyExists e NotFound são esperados em entregas duplicadas ou
concorrentes e tratados localmente pelos serviços. InvalidAccount e
InvalidContent fazem a atividade ser descartada sem erro. Todo o resto
é falha dura da atividade em questão.
"""


class FediscusError(Exception):
    """Base de todas as exceções do relay."""


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class StorageError(FediscusError):
    """Falha do backend de armazenamento."""


class AlreadyExists(StorageError):
    """Violação de unicidade (URI, URL ou par de contas já existentes)."""


class NotFound(StorageError):
    """A entidade procurada não existe."""


class StorageInconsistency(StorageError):
    """
    O backend não conseguiu reler uma entidade que acabou de criar.
    Indica erro de configuração e nunca deve ser tratado como caso normal.
    """


# ---------------------------------------------------------------------------
# Atividades
# ---------------------------------------------------------------------------


class ActivityError(FediscusError):
    """Falha ao processar uma atividade recebida."""


class InvalidAccount(ActivityError):
    """O actor ou o objeto da atividade não é aceitável (ex: follow remoto→remoto)."""


class InvalidContent(ActivityError):
    """O conteúdo da atividade não pôde ser interpretado."""


class TransportError(ActivityError):
    """Falha ao buscar um objeto remoto ou ao enfileirar uma entrega."""

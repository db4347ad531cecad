"""
Gera a chave RSA da conta local em PRIVATE_KEY_PATH.
A chave pública é derivada dela em tempo de execução.
Uso: uv run python scripts/generate_keys.py
"""

from pathlib import Path

from app.activitypub.keys import generate_private_key_pem
from app.config import settings


def main() -> None:
    path = Path(settings.private_key_path)
    if path.exists():
        print(f"✗ {path} já existe; remova o arquivo para gerar uma nova chave.")
        return

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_private_key_pem())
    path.chmod(0o600)

    print(f"✓ {path} gerada com sucesso.")


if __name__ == "__main__":
    main()

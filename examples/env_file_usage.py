"""Exemplo de cofre em disco com credencial mestra em arquivo .env."""

import tempfile
from pathlib import Path

from credential_vault import VaultConfig, open_vault


def main() -> None:
    """Demonstra persistência do cofre entre execuções."""
    workdir = Path(tempfile.mkdtemp(prefix="vault-example-"))
    config = VaultConfig(
        database_path=str(workdir / "vault.db"),
        credential_file=str(workdir / "credential.env"),
    )

    # 1) Primeira execução: inicializar e gravar uma entrada
    vault = open_vault(config)
    vault.auth.initialize("correct horse")
    entry_id = vault.add_entry("bank", "alice", "s3cr3t")
    vault.store.close()
    print(f"Cofre criado em: {workdir}")

    # 2) Conteúdo do arquivo de credencial (hash, salt e parâmetros, nunca a chave)
    print("\nConteúdo do arquivo de credencial:")
    for line in Path(config.credential_file).read_text().splitlines():
        if line.startswith("#"):
            continue
        print(f"  {line}")

    # 3) Segunda execução: abrir com a senha mestra
    config.master_password = "correct horse"
    vault = open_vault(config)
    print(f"\nSegredo recuperado: {vault.get_entry(entry_id).secret}")
    vault.auth.cleanup()
    vault.store.close()


if __name__ == "__main__":
    main()

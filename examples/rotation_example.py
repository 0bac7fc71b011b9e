"""Exemplo de troca de senha mestra com rotação de chave."""

import logging

from credential_vault import (
    AuthManager,
    InMemoryCredentialStore,
    InMemoryMasterCredentialStore,
    IntegrityError,
    VaultService,
)

# Configurar logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    """Demonstra a troca de senha mestra."""

    print("\n=== Credential Vault - Troca de Senha Mestra ===\n")

    credentials = InMemoryMasterCredentialStore()
    auth = AuthManager(credentials, InMemoryCredentialStore(), logger=logger)
    vault = VaultService(auth, logger=logger)

    # 1. Cofre inicial
    print("1. Inicializando com a senha 'correct horse'...")
    auth.initialize("correct horse")
    old_salt = credentials.load().salt

    # 2. Entradas cifradas com a chave atual
    print("\n2. Adicionando entradas...")
    ids = [
        vault.add_entry("bank", "alice", "s3cr3t"),
        vault.add_entry("email", "alice@example.com", "hunter2"),
        vault.add_entry("vpn", "alice", "correct-battery"),
    ]
    old_blobs = {entry_id: vault.store.get(entry_id).secret for entry_id in ids}
    print(f"   ✓ {len(ids)} entradas cifradas")

    # 3. Trocar a senha: nova chave, novo salt, entradas recifradas
    print("\n3. Trocando a senha mestra para 'battery staple'...")
    count = vault.change_master_password("correct horse", "battery staple")
    print(f"   ✓ {count} entrada(s) recriptografada(s)")
    print(f"   Salt mudou: {credentials.load().salt != old_salt}")

    # 4. Entradas continuam legíveis
    print("\n4. Lendo entradas após a troca...")
    for entry in vault.list_entries():
        print(f"   ✓ {entry.title}: {entry.secret[:4]}...")

    # 5. Senhas
    print("\n5. Verificando senhas...")
    print(f"   antiga: {auth.verify('correct horse')}")
    print(f"   nova:   {auth.verify('battery staple')}")

    # 6. Blobs antigos não decifram com a nova chave
    print("\n6. Blobs anteriores à troca com a chave nova...")
    with auth.session() as s:
        for entry_id, blob in old_blobs.items():
            try:
                s.decrypt(blob)
                print(f"   ✗ {entry_id} decifrou (inesperado)")
            except IntegrityError:
                print(f"   ✓ {entry_id} rejeitado")

    # 7. Estatísticas
    print("\n7. Estatísticas de uso:")
    for key, value in auth.get_statistics().items():
        print(f"   {key}: {value}")

    auth.cleanup()
    print("\n=== Fim do exemplo ===\n")


if __name__ == "__main__":
    main()

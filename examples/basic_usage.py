"""Exemplo básico de uso do cofre de credenciais."""

import logging

from credential_vault import (
    AuthManager,
    InMemoryCredentialStore,
    InMemoryMasterCredentialStore,
    VaultService,
)

# Configurar logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def main():
    """Demonstra uso básico do VaultService."""

    print("\n=== Credential Vault - Exemplo Básico ===\n")

    # 1. Montar armazenamentos em memória
    print("1. Criando armazenamentos em memória...")
    auth = AuthManager(
        InMemoryMasterCredentialStore(),
        InMemoryCredentialStore(),
        logger=logger,
    )
    vault = VaultService(auth, logger=logger)
    print(f"   Estado: {auth.state.value}")

    # 2. Inicializar com a senha mestra
    print("\n2. Inicializando o cofre...")
    auth.initialize("correct horse")
    print(f"   Estado: {auth.state.value}")

    # 3. Adicionar entradas
    print("\n3. Adicionando entradas...")
    entries = [
        ("bank", "alice", "s3cr3t"),
        ("email", "alice@example.com", "super-secret-123"),
        ("api", "service", "sk-1234567890"),
    ]
    ids = []
    for title, username, secret in entries:
        ids.append(vault.add_entry(title, username, secret))
        print(f"   ✓ Adicionada: {title}")

    # 4. O armazenamento só contém segredos cifrados
    print("\n4. Conteúdo armazenado (cifrado):")
    stored = vault.store.get(ids[0])
    print(f"   {stored.title}: {stored.secret.to_b64()[:40]}...")

    # 5. Ler entradas decifradas
    print("\n5. Lendo entradas...")
    for entry in vault.list_entries():
        print(f"   ✓ {entry.title} / {entry.username}: {entry.secret[:4]}...")

    # 6. Verificar senha
    print("\n6. Verificando senhas...")
    print(f"   'correct horse': {auth.verify('correct horse')}")
    print(f"   'wrong':         {auth.verify('wrong')}")

    # 7. Estatísticas
    print("\n7. Estatísticas de uso:")
    for key, value in auth.get_statistics().items():
        print(f"   {key}: {value}")

    # 8. Limpar material criptográfico sensível
    print("\n8. Limpando material sensível da memória...")
    auth.cleanup()
    print("   ✓ Limpeza de segurança concluída")

    print("\n=== Fim do exemplo ===\n")


if __name__ == "__main__":
    main()

"""Two-chain deployment from an empty address book to configured flags."""

from __future__ import annotations

from vault_deploy.constants import DEFAULT_ADMIN_ROLE
from vault_deploy.orchestrator import configure_peers

from conftest import ADMIN, FakeWorld


def test_deploy_configure_validate_and_mark(world: FakeWorld) -> None:
    for index in range(2):
        world.components(index).orchestrator.run()
    for index in range(2):
        c = world.components(index)
        configure_peers(world.config, c.sub_chain, c.operations)

    for index in range(2):
        c = world.components(index)
        c.validator.run()
        c.validator.mark_configured(c.operations)

    for index in range(2):
        e = world.config.sub_chain(index).essential
        chain = world.chains[index]
        assert chain.contract_at(e.vault_proxy_contract_address).state["configured"] is True
        assert chain.contract_at(e.portal_proxy_contract_address).state["configured"] is True
        roles = chain.contract_at(e.owner_contract_address).state["roles"][DEFAULT_ADMIN_ROLE]
        assert roles == {ADMIN.address.lower()}

    saved = world.persisted[-1]["SUB_CHAIN_CONFIGS"]
    assert all(cfg["ESSENTIAL"]["VAULT_PROXY_CONTRACT_ADDRESS"] for cfg in saved)
    assert world.release_loads == 2

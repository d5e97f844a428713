"""
E2E scenarios against real containers

Scenarios:
- DEX: asset creation, deposits, limit orders (make/take/cancel)
- IBC: cosmos -> GGX deposit and GGX -> cosmos withdrawal through hermes
- BTC relay: vault relays regtest bitcoin headers into the parachain

Requires a Docker daemon and:
- GGX_E2E=1
- GGX_NETWORK: brooklyn (default) or sydney

Run:
    python e2e/run_e2e.py -v
"""

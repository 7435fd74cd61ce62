"""ecoserv.models

Ecosystem-service models:
- ecoserv.models.climate_regulation → capacity_climate_reg()
- ecoserv.models.pollination        → demand_pollination()

Run `python -m ecoserv.models --help` for the CLI.
"""

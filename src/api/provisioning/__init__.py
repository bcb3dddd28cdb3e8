"""Provisioning bounded context.

Creates scoped MySQL databases and least-privilege accounts for allowlisted
identities, records every attempt in a local ledger, and keeps the ledger
consistent with the live server.
"""
